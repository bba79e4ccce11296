from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CosechaEstanqueLinea(BaseModel):
    """Peso cosechado de un estanque dentro de una cosecha."""
    model_config = ConfigDict(frozen=True)

    estanque_id: Optional[int] = None
    nombre: Optional[str] = Field(None, description="Nombre legado en texto libre (EST-05, Estanque 5, ...)")
    peso_kg: Decimal = Decimal("0")


class RegistroCosecha(BaseModel):
    """Registro del libro de cosechas."""
    model_config = ConfigDict(frozen=True)

    cosecha_id: Optional[int] = None
    folio: Optional[str] = None
    fecha: date
    estanques: List[CosechaEstanqueLinea] = Field(default_factory=list)
    tallas: Dict[str, Decimal] = Field(default_factory=dict)


class TotalesCosechaSesion(BaseModel):
    """Cosecha semanal y acumulada asignada a una sesión de muestreo."""
    model_config = ConfigDict(frozen=True)

    sesion_id: Optional[int] = None
    fecha: date
    semana_muestreo: date
    cosecha_semanal_kg: Decimal
    cosecha_acum_kg: Decimal
    conciliada: bool = Field(..., description="True si el valor viene del libro de cosechas")


class CosechaSemanalOut(BaseModel):
    estanque_id: int
    fecha_muestreo: date
    semana_inicio: date = Field(..., description="Miércoles que abre la semana de muestreo")
    semana_fin: date = Field(..., description="Martes que cierra la semana de muestreo")
    peso_kg: float
    folios: List[str] = Field(default_factory=list)


# =====================================================
# API
# =====================================================

class CosechaEstanqueIn(BaseModel):
    estanque_id: Optional[int] = Field(None, gt=0)
    nombre_estanque: Optional[str] = Field(None, max_length=120)
    peso_kg: Decimal = Field(..., ge=0, max_digits=14, decimal_places=3)

    @model_validator(mode="after")
    def _identidad(self):
        if self.estanque_id is None and not self.nombre_estanque:
            raise ValueError("Se requiere estanque_id o nombre_estanque")
        return self


class CosechaCreate(BaseModel):
    """Alta de un registro del libro de cosechas."""
    folio: Optional[str] = Field(None, max_length=40)
    fecha_cosecha: date
    estanques: List[CosechaEstanqueIn] = Field(..., min_length=1)
    tallas: Dict[str, Decimal] = Field(default_factory=dict, description="kg por talla comercial")


class CosechaEstanqueOut(BaseModel):
    cosecha_estanque_id: int
    estanque_id: Optional[int] = None
    nombre_estanque: Optional[str] = None
    peso_kg: float

    class Config:
        from_attributes = True


class CosechaOut(BaseModel):
    cosecha_id: int
    folio: Optional[str] = None
    fecha_cosecha: date
    tallas: Optional[Dict[str, float]] = None
    estanques: List[CosechaEstanqueOut] = Field(default_factory=list)

    class Config:
        from_attributes = True
