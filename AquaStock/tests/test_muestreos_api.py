from datetime import date
from decimal import Decimal

import pytest

from models import Estanque, Generacion


@pytest.fixture
def cadena(db):
    estanque = Estanque(nombre="Estanque 1", codigo="EST-01", superficie_m2=Decimal("540"))
    db.add(estanque)
    db.flush()
    generacion = Generacion(
        codigo="G-64",
        estanque_id=estanque.estanque_id,
        poblacion_inicial=10000,
        fecha_siembra=date(2025, 9, 1),
    )
    db.add(generacion)
    db.commit()
    return estanque.estanque_id, generacion.generacion_id


def registrar(client, estanque_id, generacion_id, fecha, **extra):
    payload = {"estanque_id": estanque_id, "generacion_id": generacion_id, "fecha": fecha}
    payload.update(extra)
    return client.post("/muestreos/sesiones", json=payload)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_registrar_sesion_calcula_metricas(client, cadena):
    estanque_id, generacion_id = cadena
    resp = registrar(client, estanque_id, generacion_id, "2025-10-29", peso_promedio_lab_g=150)

    assert resp.status_code == 201, resp.text
    data = resp.json()
    sesion = data["sesion"]
    assert sesion["biomasa_kg"] == 81.0
    assert sesion["poblacion_estimada"] == 540
    assert sesion["semana_cultivo"] == 1
    assert sesion["supervivencia_pct"] == 5.4
    assert data["advertencias"] == []


def test_sesion_sin_peso_devuelve_advertencia(client, cadena):
    estanque_id, generacion_id = cadena
    resp = registrar(client, estanque_id, generacion_id, "2025-10-29")

    assert resp.status_code == 201, resp.text
    assert [w["code"] for w in resp.json()["advertencias"]] == ["sin_peso"]


def test_mediana_de_mediciones(client, cadena):
    estanque_id, generacion_id = cadena
    resp = registrar(client, estanque_id, generacion_id, "2025-10-29", mediciones=[10, 14, 12, 30])

    assert resp.status_code == 201, resp.text
    assert resp.json()["sesion"]["peso_promedio_g"] == 13.0


def test_cadena_se_ordena_por_fecha_real(client, cadena):
    estanque_id, generacion_id = cadena
    registrar(client, estanque_id, generacion_id, "2025-11-12", peso_promedio_lab_g=12)
    registrar(client, estanque_id, generacion_id, "2025-10-29", peso_promedio_lab_g=8)
    registrar(client, estanque_id, generacion_id, "2025-11-05", peso_promedio_lab_g=10)

    resp = client.get(f"/muestreos/estanques/{estanque_id}/generaciones/{generacion_id}")
    assert resp.status_code == 200
    data = resp.json()
    assert [s["fecha"] for s in data] == ["2025-10-29", "2025-11-05", "2025-11-12"]
    assert [s["semana_cultivo"] for s in data] == [1, 2, 3]
    assert [s["crecimiento_g"] for s in data] == [0.0, 2.0, 2.0]


def test_fecha_duplicada_es_conflicto(client, cadena):
    estanque_id, generacion_id = cadena
    registrar(client, estanque_id, generacion_id, "2025-10-29", peso_promedio_lab_g=8)
    resp = registrar(client, estanque_id, generacion_id, "2025-10-29", peso_promedio_lab_g=9)
    assert resp.status_code == 409


def test_estanque_inexistente(client, cadena):
    _, generacion_id = cadena
    resp = registrar(client, 999, generacion_id, "2025-10-29", peso_promedio_lab_g=8)
    assert resp.status_code == 404


def test_medicion_negativa_es_422(client, cadena):
    estanque_id, generacion_id = cadena
    resp = registrar(client, estanque_id, generacion_id, "2025-10-29", mediciones=[-1])
    assert resp.status_code == 422


def test_correccion_reancla_semanas_y_deja_bitacora(client, cadena):
    estanque_id, generacion_id = cadena
    primera = registrar(client, estanque_id, generacion_id, "2025-10-29", peso_promedio_lab_g=8).json()
    registrar(client, estanque_id, generacion_id, "2025-11-05", peso_promedio_lab_g=10)
    sesion_id = primera["sesion"]["sesion_muestreo_id"]

    resp = client.patch(
        f"/muestreos/sesiones/{sesion_id}",
        json={"motivo": "Semana capturada en campo", "changed_by": "operador", "semana_cultivo_manual": 5},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["cambios_semana_cultivo"] == 2

    data = client.get(f"/muestreos/estanques/{estanque_id}/generaciones/{generacion_id}").json()
    assert [s["semana_cultivo"] for s in data] == [5, 6]

    historial = client.get(f"/muestreos/sesiones/{sesion_id}/historial").json()
    assert len(historial) == 1
    assert historial[0]["campo"] == "semana_cultivo_manual"
    assert historial[0]["valor_anterior"] is None
    assert historial[0]["valor_nuevo"] == "5"
    assert historial[0]["changed_by"] == "operador"


def test_correccion_con_mediciones_null_no_cambia_nada(client, cadena):
    estanque_id, generacion_id = cadena
    sesion = registrar(client, estanque_id, generacion_id, "2025-10-29", mediciones=[10, 12, 14]).json()["sesion"]
    sesion_id = sesion["sesion_muestreo_id"]

    resp = client.patch(f"/muestreos/sesiones/{sesion_id}", json={"motivo": "Sin cambios", "mediciones": None})
    assert resp.status_code == 200, resp.text
    assert resp.json()["sesion"]["mediciones"] == [10.0, 12.0, 14.0]
    assert resp.json()["sesion"]["peso_promedio_g"] == 12.0

    assert client.get(f"/muestreos/sesiones/{sesion_id}/historial").json() == []


def test_correccion_del_total_manual_de_cosecha(client, cadena):
    estanque_id, generacion_id = cadena
    sesion = registrar(client, estanque_id, generacion_id, "2025-10-29", peso_promedio_lab_g=8).json()["sesion"]
    sesion_id = sesion["sesion_muestreo_id"]

    resp = client.patch(
        f"/muestreos/sesiones/{sesion_id}",
        json={"motivo": "Total de cosecha capturado en bitácora", "cosecha_total_manual_kg": 300},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["sesion"]["cosecha_acum_kg"] == 300.0

    historial = client.get(f"/muestreos/sesiones/{sesion_id}/historial").json()
    assert [h["campo"] for h in historial] == ["cosecha_total_manual_kg"]
    assert historial[0]["valor_anterior"] is None


def test_correccion_requiere_motivo(client, cadena):
    estanque_id, generacion_id = cadena
    sesion = registrar(client, estanque_id, generacion_id, "2025-10-29", peso_promedio_lab_g=8).json()["sesion"]
    resp = client.patch(f"/muestreos/sesiones/{sesion['sesion_muestreo_id']}", json={"cosecha_kg": 10})
    assert resp.status_code == 422


def test_cosecha_del_libro_se_concilia_en_la_cadena(client, cadena):
    estanque_id, generacion_id = cadena
    registrar(client, estanque_id, generacion_id, "2025-10-29", peso_promedio_lab_g=8)
    registrar(client, estanque_id, generacion_id, "2025-11-06", peso_promedio_lab_g=10)

    resp = client.post("/cosechas", json={
        "folio": "C-100",
        "fecha_cosecha": "2025-11-05",
        "estanques": [{"nombre_estanque": "EST-01", "peso_kg": 100}],
    })
    assert resp.status_code == 201, resp.text

    data = client.get(f"/muestreos/estanques/{estanque_id}/generaciones/{generacion_id}").json()
    assert [s["cosecha_semanal_kg"] for s in data] == [0.0, 100.0]
    assert [s["cosecha_acum_kg"] for s in data] == [0.0, 100.0]
    assert data[1]["poblacion_cosechada_acum"] == 10000

    semana = client.get(f"/cosechas/estanques/{estanque_id}/semana", params={"fecha": "2025-11-06"}).json()
    assert semana["peso_kg"] == 100.0
    assert semana["semana_inicio"] == "2025-11-05"
    assert semana["semana_fin"] == "2025-11-11"
    assert semana["folios"] == ["C-100"]


def test_cosecha_semanal_sin_registros(client, cadena):
    estanque_id, _ = cadena
    resp = client.get(f"/cosechas/estanques/{estanque_id}/semana", params={"fecha": "2025-11-20"})
    assert resp.status_code == 200
    assert resp.json()["peso_kg"] == 0.0
