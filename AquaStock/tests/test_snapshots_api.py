from datetime import timedelta
from decimal import Decimal

import pytest

from models import Estanque, PlanInventario, PlanBloque
from utils.datetime_utils import today_mazatlan


@pytest.fixture
def plan(db):
    estanque = Estanque(nombre="Estanque 1", codigo="EST-01", superficie_m2=Decimal("540"))
    plan = PlanInventario(nombre="Plan temporada", activo=True)
    db.add_all([estanque, plan])
    db.flush()
    db.add(PlanBloque(
        plan_id=plan.plan_id,
        estanque_id=estanque.estanque_id,
        generacion_codigo="G-64",
        estado="growout",
        poblacion=100000,
        peso_promedio_g=Decimal("10"),
        semana_inicio=6,
        duracion_semanas=16,
        peso_cosecha_g=Decimal("25"),
    ))
    db.commit()
    return plan.plan_id


def rango(semanas=3):
    hoy = today_mazatlan()
    return {"start": hoy.isoformat(), "end": (hoy + timedelta(weeks=semanas)).isoformat()}


def test_generar_y_listar(client, plan):
    resp = client.post(f"/snapshots/planes/{plan}/generar", json={"date_range": rango(), "force_regenerate": True})
    assert resp.status_code == 200, resp.text
    metrics = resp.json()
    assert metrics["snapshots_created"] > 0
    assert metrics["data_source_records"] == 1

    filas = client.get(f"/snapshots/planes/{plan}").json()
    assert len(filas) == metrics["snapshots_created"]
    assert {f["estanque_id"] for f in filas} == {1}


def test_force_regenerate_dos_veces_deja_el_mismo_conteo(client, plan):
    body = {"date_range": rango(), "force_regenerate": True}
    primera = client.post(f"/snapshots/planes/{plan}/generar", json=body).json()
    segunda = client.post(f"/snapshots/planes/{plan}/generar", json=body).json()

    assert segunda["snapshots_created"] == primera["snapshots_created"]
    assert segunda["snapshots_deleted"] == primera["snapshots_created"]
    assert len(client.get(f"/snapshots/planes/{plan}").json()) == primera["snapshots_created"]


def test_sin_force_actualiza(client, plan):
    body = {"date_range": rango()}
    primera = client.post(f"/snapshots/planes/{plan}/generar", json=body).json()
    segunda = client.post(f"/snapshots/planes/{plan}/generar", json=body).json()

    assert segunda["snapshots_created"] == 0
    assert segunda["snapshots_updated"] == primera["snapshots_created"]


def test_generar_sin_body_usa_horizonte_por_defecto(client, plan):
    resp = client.post(f"/snapshots/planes/{plan}/generar")
    assert resp.status_code == 200, resp.text
    assert resp.json()["snapshots_created"] > 0


def test_plan_inactivo_es_conflicto(client, plan, db):
    db.get(PlanInventario, plan).activo = False
    db.commit()

    resp = client.post(f"/snapshots/planes/{plan}/generar", json={"force_regenerate": True})
    assert resp.status_code == 409
    assert resp.json()["error"] == "configuration_error"


def test_rango_invertido_es_422(client, plan):
    hoy = today_mazatlan()
    resp = client.post(
        f"/snapshots/planes/{plan}/generar",
        json={"date_range": {"start": hoy.isoformat(), "end": (hoy - timedelta(days=1)).isoformat()}},
    )
    assert resp.status_code == 422


def test_stale_antes_y_despues_de_generar(client, plan):
    antes = client.get(f"/snapshots/planes/{plan}/stale").json()
    assert antes["is_stale"]
    assert antes["semanas"]

    client.post(f"/snapshots/planes/{plan}/generar", json={"force_regenerate": True})
    despues = client.get(f"/snapshots/planes/{plan}/stale").json()
    assert not despues["is_stale"]
    assert despues["semanas"] == []


def test_validacion_y_limpieza(client, plan):
    sin_datos = client.get(f"/snapshots/planes/{plan}/validacion").json()
    assert not sin_datos["is_valid"]

    client.post(f"/snapshots/planes/{plan}/generar", json={"force_regenerate": True})
    validacion = client.get(f"/snapshots/planes/{plan}/validacion").json()
    assert validacion["is_valid"]
    assert validacion["last_generated"] is not None

    limpieza = client.delete(f"/snapshots/planes/{plan}/antiguos", params={"dias": 30}).json()
    assert limpieza == {"plan_id": plan, "retention_days": 30, "deleted": 0}


def test_plan_inexistente_404(client):
    assert client.get("/snapshots/planes/999/stale").status_code == 404


def test_regenerar_sin_force_no_acumula_tallas_viejas(client, plan, db):
    hoy = today_mazatlan()
    body = {"date_range": {"start": hoy.isoformat(), "end": hoy.isoformat()}}
    client.post(f"/snapshots/planes/{plan}/generar", json=body)

    bloque = db.query(PlanBloque).filter(PlanBloque.plan_id == plan).one()
    bloque.peso_promedio_g = Decimal("30")
    db.commit()

    metrics = client.post(f"/snapshots/planes/{plan}/generar", json=body).json()
    assert metrics["snapshots_deleted"] == 2

    filas = client.get(f"/snapshots/planes/{plan}").json()
    assert {f["talla_comercial"] for f in filas} == {"41-50", "31-40", "26-30", "21-25"}
    assert sum(f["inventario_total_kg"] for f in filas) == pytest.approx(3000.0)
