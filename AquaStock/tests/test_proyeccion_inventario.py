from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from schemas.snapshot import BloquePlan, PlanInfo, RangoFechas, SnapshotGenerationOptions
from services.proyeccion_inventario_service import (
    InventorySnapshotGenerator,
    biomass_by_size,
    grams_to_size,
    logistic_weight,
    projected_weight,
    week_start,
)
from services.cosecha_semanal_service import week_anchor
from utils.errors import ConfigurationError, PartialWriteError
from tests.fakes import FakePlanStore, FakeSnapshotStore

AHORA = datetime(2025, 11, 12, 8, 0)  # miércoles
PLAN = PlanInfo(plan_id=1, nombre="Plan 2025", activo=True)


def bloque(**kwargs):
    datos = dict(
        plan_bloque_id=1,
        estanque_id=1,
        generacion_codigo="G-64",
        estado="growout",
        poblacion=100000,
        peso_promedio_g=Decimal("10"),
        semana_inicio=6,
        duracion_semanas=16,
        peso_cosecha_g=Decimal("25"),
    )
    datos.update(kwargs)
    return BloquePlan(**datos)


def generador(bloques, store=None, plan=PLAN, batch_size=100):
    return InventorySnapshotGenerator(
        FakePlanStore(plan, bloques),
        store or FakeSnapshotStore(),
        batch_size=batch_size,
        growth_rate_k=0.5,
        default_cycle_weeks=12,
        reloj=lambda: AHORA,
    )


def opciones(start=date(2025, 11, 12), end=date(2025, 12, 10), **kwargs):
    return SnapshotGenerationOptions(plan_id=1, date_range=RangoFechas(start=start, end=end), **kwargs)


def test_logistica_ciclo_completo_devuelve_peso_final():
    assert logistic_weight(25, 12, 12) == Decimal("25")
    assert logistic_weight(25, 20, 12) == Decimal("25")


def test_logistica_punto_medio_y_piso_de_un_gramo():
    assert logistic_weight(25, 6, 12) == Decimal("12.5")
    assert logistic_weight(2, 0, 12) == Decimal("1")


def test_peso_proyectado_nunca_baja_del_actual():
    b = bloque(peso_promedio_g=Decimal("20"), semana_inicio=1)
    assert projected_weight(b, 1, 0.5, 12) == Decimal("20")
    assert projected_weight(bloque(peso_cosecha_g=None), 5, 0.5, 12) == Decimal("10")


def test_tallas_comerciales():
    assert grams_to_size(10) == "61-70"
    assert grams_to_size(20) == "41-50"
    assert grams_to_size(50) == "16-20"
    assert grams_to_size(0) == "61-70"


def test_biomasa_por_talla_reparte_el_total():
    por_talla = biomass_by_size(Decimal("1000"), Decimal("10"))
    assert por_talla == {"61-70": Decimal("700"), "51-60": Decimal("200"), "41-50": Decimal("100")}


def test_semanas_alineadas_a_lunes():
    store = FakeSnapshotStore()
    metrics = generador([bloque()], store).generate_snapshots(opciones())

    semanas = sorted({r.fecha_semana for r in store.rows.values()})
    assert semanas == [date(2025, 11, 10) + timedelta(weeks=i) for i in range(5)]
    assert all(s.weekday() == 0 for s in semanas)
    assert metrics.snapshots_created == len(store.rows)
    assert metrics.data_source_records == 1


def test_semana_actual_usa_biomasa_actual():
    store = FakeSnapshotStore()
    generador([bloque()], store).generate_snapshots(opciones(end=date(2025, 11, 12)))

    por_talla = {r.talla_comercial: r.inventario_total_kg for r in store.rows.values()}
    assert por_talla == {"61-70": Decimal("700"), "51-60": Decimal("200"), "41-50": Decimal("100")}
    fila = next(iter(store.rows.values()))
    assert fila.source_block_id == 1
    assert fila.block_info["generacion_codigo"] == "G-64"


def test_no_proyecta_despues_de_la_cosecha():
    store = FakeSnapshotStore()
    generador([bloque(fecha_cosecha=date(2025, 11, 19))], store).generate_snapshots(opciones())

    assert {r.fecha_semana for r in store.rows.values()} == {date(2025, 11, 10), date(2025, 11, 17)}


def test_bloques_sin_poblacion_o_fuera_de_growout_se_omiten():
    store = FakeSnapshotStore()
    metrics = generador(
        [bloque(poblacion=0), bloque(plan_bloque_id=2, estado="siembra"), bloque(plan_bloque_id=3, peso_promedio_g=None)],
        store,
    ).generate_snapshots(opciones())

    assert metrics.snapshots_created == 0
    assert store.insert_calls == 0


def test_plan_inactivo_falla_antes_de_escribir():
    store = FakeSnapshotStore()
    with pytest.raises(ConfigurationError):
        generador([bloque()], store, plan=PLAN.model_copy(update={"activo": False})).generate_snapshots(
            opciones(force_regenerate=True)
        )
    assert store.delete_calls == 0
    assert store.insert_calls == 0


def test_plan_inexistente():
    with pytest.raises(ConfigurationError):
        generador([bloque()], plan=None).generate_snapshots(opciones())


def test_lote_fallido_conserva_los_previos():
    store = FakeSnapshotStore(fail_on_insert_call=2)
    with pytest.raises(PartialWriteError) as exc_info:
        generador([bloque()], store, batch_size=2).generate_snapshots(opciones(end=date(2025, 11, 12)))

    assert exc_info.value.created == 2
    assert len(store.rows) == 2


def test_force_regenerate_es_idempotente():
    store = FakeSnapshotStore()
    gen = generador([bloque()], store)

    primera = gen.generate_snapshots(opciones(force_regenerate=True))
    conteo = len(store.rows)
    segunda = gen.generate_snapshots(opciones(force_regenerate=True))

    assert segunda.snapshots_created == primera.snapshots_created
    assert segunda.snapshots_deleted == conteo
    assert len(store.rows) == conteo


def test_sin_force_actualiza_en_lugar_de_duplicar():
    store = FakeSnapshotStore()
    gen = generador([bloque()], store)

    primera = gen.generate_snapshots(opciones())
    segunda = gen.generate_snapshots(opciones())

    assert segunda.snapshots_created == 0
    assert segunda.snapshots_updated == primera.snapshots_created
    assert len(store.rows) == primera.snapshots_created


def test_semana_de_plan_es_lunes_y_distinta_de_la_de_muestreo():
    assert week_start(date(2025, 11, 12)) == date(2025, 11, 10)
    assert week_start(date(2025, 11, 10)) == date(2025, 11, 10)
    assert week_anchor(date(2025, 11, 10)) == date(2025, 11, 5)


def test_sin_force_borra_tallas_que_ya_no_se_proyectan():
    store = FakeSnapshotStore()
    gen = generador([bloque(peso_promedio_g=Decimal("15"))], store)
    gen.generate_snapshots(opciones(end=date(2025, 11, 12)))
    assert {r.talla_comercial for r in store.rows.values()} == {"61-70", "51-60", "41-50"}

    gen.plan_store.bloques = [bloque(peso_promedio_g=Decimal("30"))]
    metrics = gen.generate_snapshots(opciones(end=date(2025, 11, 12)))

    assert metrics.snapshots_deleted == 2
    assert metrics.snapshots_updated == 1
    assert metrics.snapshots_created == 3
    assert {r.talla_comercial for r in store.rows.values()} == {"41-50", "31-40", "26-30", "21-25"}
    assert sum(r.inventario_total_kg for r in store.rows.values()) == Decimal("3000")
