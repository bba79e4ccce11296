"""
Ciclo de vida de los snapshots de inventario proyectado:
detección de obsolescencia, limpieza por retención y validación de cobertura.

Los hallazgos de calidad (cobertura baja, snapshots viejos) se devuelven como
datos; solo se propagan las fallas del almacén.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from config.settings import settings
from schemas.snapshot import ValidationResult
from services.proyeccion_inventario_service import (
    PlanStore, SnapshotStore, TALLAS_COMERCIALES, default_date_range
)
from utils.datetime_utils import now_mazatlan, mondays_in_range

logger = logging.getLogger(__name__)


class SnapshotLifecycleManager:

    def __init__(
            self,
            plan_id: int,
            plan_store: PlanStore,
            snapshot_store: SnapshotStore,
            *,
            reloj: Callable[[], datetime] = now_mazatlan,
    ):
        self.plan_id = plan_id
        self.plan_store = plan_store
        self.snapshot_store = snapshot_store
        self.reloj = reloj

    def horizon_weeks(self) -> List[date]:
        """Lunes del horizonte por defecto (una semana atrás, 16 adelante)."""
        rango = default_date_range(
            self.reloj().date(),
            settings.SNAPSHOT_HORIZON_WEEKS_BACK,
            settings.SNAPSHOT_HORIZON_WEEKS_AHEAD,
        )
        return mondays_in_range(rango.start, rango.end)

    def get_stale_snapshots(self) -> List[date]:
        """
        Semanas cuyo snapshot está obsoleto.

        - Sin snapshots => todo el horizonte.
        - Plan modificado después del último snapshot => todo el horizonte.
        - En otro caso => ninguna.
        """
        ultimo_snapshot = self.snapshot_store.query_latest(self.plan_id)
        if ultimo_snapshot is None:
            return self.horizon_weeks()

        plan = self.plan_store.get_plan(self.plan_id)
        if plan and plan.last_mutation_at and plan.last_mutation_at > ultimo_snapshot:
            return self.horizon_weeks()

        return []

    def is_stale(self) -> bool:
        return bool(self.get_stale_snapshots())

    def cleanup_old_snapshots(self, retention_days: Optional[int] = None) -> int:
        """Borra los snapshots generados antes de ahora − retention_days."""
        dias = settings.SNAPSHOT_RETENTION_DAYS if retention_days is None else retention_days
        corte = self.reloj() - timedelta(days=dias)
        borrados = self.snapshot_store.delete_older_than(self.plan_id, corte)
        logger.info("Plan %s: %d snapshots anteriores a %s eliminados", self.plan_id, borrados, corte)
        return borrados

    def validate_snapshots(self) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        snapshot_count = self.snapshot_store.count(self.plan_id)
        ultimo_snapshot = self.snapshot_store.query_latest(self.plan_id)

        esperado = len(self.horizon_weeks()) * len(TALLAS_COMERCIALES)
        if snapshot_count < esperado * settings.SNAPSHOT_MIN_COVERAGE_PCT / 100:
            warnings.append(f"Cobertura baja de snapshots: {snapshot_count}/{esperado} esperados")

        if ultimo_snapshot is None:
            errors.append("No se encontraron snapshots")
        else:
            dias = (self.reloj() - ultimo_snapshot).days
            if dias > settings.SNAPSHOT_STALE_AFTER_DAYS:
                warnings.append(f"Los snapshots tienen {dias} días de antigüedad")

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            snapshot_count=snapshot_count,
            last_generated=ultimo_snapshot,
        )
