from typing import Optional

from celery.utils.log import get_task_logger

from workers.celery_config import app
from utils.db import SessionLocal
from models.plan import PlanInventario
from schemas.snapshot import SnapshotGenerationOptions, RangoFechas
from services.snapshot_store import build_generator, build_lifecycle
from utils.errors import ConfigurationError

logger = get_task_logger(__name__)


@app.task(bind=True, max_retries=2)
def generar_snapshots_plan(
        self,
        plan_id: int,
        force_regenerate: bool = True,
        start: Optional[str] = None,
        end: Optional[str] = None,
        version_id: Optional[str] = None,
):
    """Genera los snapshots de un plan. Fechas en ISO (YYYY-MM-DD)."""
    db = SessionLocal()
    try:
        date_range = RangoFechas(start=start, end=end) if start and end else None
        metrics = build_generator(db).generate_snapshots(SnapshotGenerationOptions(
            plan_id=plan_id,
            date_range=date_range,
            force_regenerate=force_regenerate,
            version_id=version_id,
        ))
        return metrics.model_dump()

    except ConfigurationError as exc:
        # Plan inexistente o inactivo: reintentar no cambia nada
        logger.warning("Plan %s no generado: %s", plan_id, exc.message)
        return {"status": "skipped", "detail": exc.message}

    except Exception as exc:
        db.rollback()
        logger.exception("Falló la generación de snapshots del plan %s", plan_id)
        raise self.retry(exc=exc, countdown=30)

    finally:
        db.close()


@app.task
def regenerar_planes_stale():
    """Encola la regeneración de cada plan activo cuyo snapshot quedó obsoleto."""
    db = SessionLocal()
    try:
        plan_ids = [
            pid for (pid,) in db.query(PlanInventario.plan_id).filter(PlanInventario.activo.is_(True)).all()
        ]
        stale = [pid for pid in plan_ids if build_lifecycle(db, pid).is_stale()]
    finally:
        db.close()

    for plan_id in stale:
        generar_snapshots_plan.delay(plan_id, force_regenerate=True)
    logger.info("Planes obsoletos encolados: %d de %d", len(stale), len(plan_ids))
    return {"planes_encolados": stale}


@app.task
def limpiar_snapshots_antiguos(retention_days: Optional[int] = None):
    """Aplica la retención de snapshots a todos los planes."""
    db = SessionLocal()
    try:
        total = 0
        for (plan_id,) in db.query(PlanInventario.plan_id).all():
            total += build_lifecycle(db, plan_id).cleanup_old_snapshots(retention_days)
    finally:
        db.close()

    logger.info("Snapshots eliminados por retención: %d", total)
    return {"deleted": total}
