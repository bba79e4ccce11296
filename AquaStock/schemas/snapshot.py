from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RangoFechas(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _check_range(self):
        if self.start > self.end:
            raise ValueError("start no puede ser mayor a end")
        return self


class SnapshotGenerationOptions(BaseModel):
    plan_id: int
    date_range: Optional[RangoFechas] = None
    force_regenerate: bool = False
    version_id: Optional[str] = None


class SnapshotGenerateIn(BaseModel):
    """Body del endpoint de generación (el plan viene en la ruta)."""
    date_range: Optional[RangoFechas] = None
    force_regenerate: bool = False
    version_id: Optional[str] = None


class SnapshotMetrics(BaseModel):
    generation_time_ms: int
    snapshots_created: int
    snapshots_updated: int
    snapshots_deleted: int
    data_source_records: int


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    snapshot_count: int = 0
    last_generated: Optional[datetime] = None


class StaleSnapshotsOut(BaseModel):
    plan_id: int
    is_stale: bool
    semanas: List[date] = Field(default_factory=list)


class CleanupOut(BaseModel):
    plan_id: int
    retention_days: int
    deleted: int


# =====================================================
# Datos en memoria del proyector
# =====================================================

class PlanInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_id: int
    nombre: str
    activo: bool
    last_mutation_at: Optional[datetime] = None


class BloquePlan(BaseModel):
    """Generación activa en un estanque, según el planner."""
    model_config = ConfigDict(frozen=True)

    plan_bloque_id: Optional[int] = None
    estanque_id: int
    version_id: Optional[str] = None
    generacion_codigo: Optional[str] = None
    estado: str = "growout"
    poblacion: Optional[int] = None
    peso_promedio_g: Optional[Decimal] = None
    densidad: Optional[Decimal] = None
    semana_inicio: Optional[int] = None
    duracion_semanas: Optional[int] = None
    fecha_cosecha: Optional[date] = None
    peso_cosecha_g: Optional[Decimal] = None


class SnapshotRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_id: int
    version_id: Optional[str] = None
    estanque_id: int
    fecha_semana: date
    talla_comercial: str
    inventario_total_kg: Decimal
    source_block_id: Optional[int] = None
    block_info: Dict[str, Any] = Field(default_factory=dict)
    snapshot_date: datetime

    @property
    def key(self) -> tuple:
        return (self.version_id, self.estanque_id, self.fecha_semana, self.talla_comercial, self.source_block_id)


class SnapshotOut(BaseModel):
    snapshot_id: int
    plan_id: int
    version_id: Optional[str] = None
    estanque_id: int
    fecha_semana: date
    talla_comercial: str
    inventario_total_kg: float
    source_block_id: Optional[int] = None
    snapshot_date: datetime

    class Config:
        from_attributes = True
