from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from utils.db import get_db
from models.plan import PlanInventario
from schemas.snapshot import (
    SnapshotGenerateIn,
    SnapshotGenerationOptions,
    SnapshotMetrics,
    SnapshotOut,
    StaleSnapshotsOut,
    CleanupOut,
    ValidationResult,
)
from services.snapshot_store import SqlAlchemySnapshotStore, build_generator, build_lifecycle
from config.settings import settings

router = APIRouter(prefix="/snapshots", tags=["snapshots"])


def _get_plan_or_404(db: Session, plan_id: int) -> PlanInventario:
    plan = db.get(PlanInventario, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plan no encontrado")
    return plan


@router.post(
    "/planes/{plan_id}/generar",
    response_model=SnapshotMetrics,
    summary="Generar snapshots de inventario proyectado",
    description=(
        "Proyecta los bloques en growout del plan a cada semana (lunes) del rango y "
        "escribe la biomasa por talla comercial.\n\n"
        "- Sin `date_range` se usa el horizonte por defecto (1 semana atrás, 16 adelante).\n"
        "- `force_regenerate=true` borra el rango antes de insertar; repetir la corrida "
        "deja el mismo resultado.\n"
        "- Sin force, las filas existentes se actualizan en lugar de duplicarse.\n\n"
        "Un plan inactivo responde 409. Si falla un lote a mitad de corrida responde 500 "
        "con los conteos de lo que sí quedó escrito."
    )
)
def generar_snapshots(
    plan_id: int = Path(..., gt=0),
    payload: Optional[SnapshotGenerateIn] = None,
    db: Session = Depends(get_db),
):
    payload = payload or SnapshotGenerateIn()
    options = SnapshotGenerationOptions(plan_id=plan_id, **payload.model_dump())
    return build_generator(db).generate_snapshots(options)


@router.get(
    "/planes/{plan_id}",
    response_model=List[SnapshotOut],
    summary="Listar snapshots de un plan"
)
def list_snapshots(
    plan_id: int = Path(..., gt=0),
    desde: Optional[date] = Query(None),
    hasta: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    _get_plan_or_404(db, plan_id)
    return SqlAlchemySnapshotStore(db).list_for_plan(plan_id, desde, hasta)


@router.get(
    "/planes/{plan_id}/stale",
    response_model=StaleSnapshotsOut,
    summary="Semanas con snapshots obsoletos"
)
def get_stale(
    plan_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    _get_plan_or_404(db, plan_id)
    semanas = build_lifecycle(db, plan_id).get_stale_snapshots()
    return StaleSnapshotsOut(plan_id=plan_id, is_stale=bool(semanas), semanas=semanas)


@router.delete(
    "/planes/{plan_id}/antiguos",
    response_model=CleanupOut,
    summary="Eliminar snapshots fuera de retención"
)
def cleanup_snapshots(
    plan_id: int = Path(..., gt=0),
    dias: Optional[int] = Query(None, ge=0, description="Días de retención (default: configuración)"),
    db: Session = Depends(get_db),
):
    _get_plan_or_404(db, plan_id)
    retention = settings.SNAPSHOT_RETENTION_DAYS if dias is None else dias
    deleted = build_lifecycle(db, plan_id).cleanup_old_snapshots(retention)
    return CleanupOut(plan_id=plan_id, retention_days=retention, deleted=deleted)


@router.get(
    "/planes/{plan_id}/validacion",
    response_model=ValidationResult,
    summary="Validar cobertura y vigencia de los snapshots"
)
def validate_snapshots(
    plan_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    _get_plan_or_404(db, plan_id)
    return build_lifecycle(db, plan_id).validate_snapshots()
