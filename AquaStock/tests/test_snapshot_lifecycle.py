from datetime import date, datetime, timedelta
from decimal import Decimal

from schemas.snapshot import PlanInfo, SnapshotRow
from services.proyeccion_inventario_service import TALLAS_COMERCIALES
from services.snapshot_lifecycle_service import SnapshotLifecycleManager
from tests.fakes import FakePlanStore, FakeSnapshotStore

AHORA = datetime(2025, 11, 12, 8, 0)


def fila(generado_en, fecha_semana=date(2025, 11, 10), talla="41-50", estanque_id=1):
    return SnapshotRow(
        plan_id=1,
        estanque_id=estanque_id,
        fecha_semana=fecha_semana,
        talla_comercial=talla,
        inventario_total_kg=Decimal("100"),
        source_block_id=1,
        snapshot_date=generado_en,
    )


def manager(rows=(), last_mutation_at=None):
    store = FakeSnapshotStore()
    store.batch_insert(list(rows))
    plan = PlanInfo(plan_id=1, nombre="Plan 2025", activo=True, last_mutation_at=last_mutation_at)
    return SnapshotLifecycleManager(1, FakePlanStore(plan), store, reloj=lambda: AHORA), store


def test_limpieza_respeta_retencion():
    mgr, store = manager([
        fila(AHORA - timedelta(days=40), talla="41-50"),
        fila(AHORA - timedelta(days=10), talla="31-40"),
    ])

    assert mgr.cleanup_old_snapshots(30) == 1
    assert [r.talla_comercial for r in store.rows.values()] == ["31-40"]


def test_horizonte_en_lunes():
    mgr, _ = manager()
    semanas = mgr.horizon_weeks()

    assert semanas[0] == date(2025, 11, 3)
    assert all(s.weekday() == 0 for s in semanas)
    assert semanas[-1] <= AHORA.date() + timedelta(weeks=16)


def test_sin_snapshots_todo_el_horizonte_esta_obsoleto():
    mgr, _ = manager()
    assert mgr.get_stale_snapshots() == mgr.horizon_weeks()
    assert mgr.is_stale()


def test_plan_modificado_despues_del_snapshot():
    mgr, _ = manager([fila(AHORA - timedelta(days=2))], last_mutation_at=AHORA - timedelta(days=1))
    assert mgr.is_stale()


def test_plan_sin_cambios_no_esta_obsoleto():
    mgr, _ = manager([fila(AHORA - timedelta(days=1))], last_mutation_at=AHORA - timedelta(days=3))
    assert mgr.get_stale_snapshots() == []
    assert not mgr.is_stale()


def test_validacion_sin_snapshots_es_error():
    mgr, _ = manager()
    resultado = mgr.validate_snapshots()

    assert not resultado.is_valid
    assert resultado.errors
    assert resultado.snapshot_count == 0
    assert resultado.last_generated is None


def test_validacion_advierte_cobertura_y_antiguedad():
    mgr, _ = manager([fila(AHORA - timedelta(days=10))])
    resultado = mgr.validate_snapshots()

    assert resultado.is_valid
    assert len(resultado.warnings) == 2
    assert resultado.snapshot_count == 1


def test_validacion_con_cobertura_completa():
    semanas = SnapshotLifecycleManager(1, FakePlanStore(None), FakeSnapshotStore(), reloj=lambda: AHORA).horizon_weeks()
    rows = [fila(AHORA - timedelta(hours=1), fecha_semana=s, talla=t) for s in semanas for t in TALLAS_COMERCIALES]
    mgr, _ = manager(rows)
    resultado = mgr.validate_snapshots()

    assert resultado.is_valid
    assert resultado.warnings == []
    assert resultado.last_generated == AHORA - timedelta(hours=1)
