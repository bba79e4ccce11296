from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal

from utils.errors import DataQualityWarning

# =====================================================
# 🧮 NÚCLEO (datos en memoria, sin validación de rango:
#    el núcleo lanza ValidationError propio)
# =====================================================

class SesionMuestreoData(BaseModel):
    """
    Una sesión de muestreo tal como la entrega el almacén de muestreos.

    `semana_cultivo` es el valor almacenado actualmente (puede estar
    desactualizado); `semana_cultivo_manual` es la corrección capturada a mano.
    """
    model_config = ConfigDict(frozen=True)

    sesion_id: Optional[int] = None
    estanque_id: int
    generacion_id: int
    fecha: date
    mediciones: List[Decimal] = Field(default_factory=list)
    peso_promedio_lab_g: Optional[Decimal] = None
    cosecha_kg: Optional[Decimal] = None
    cosecha_total_manual_kg: Optional[Decimal] = None
    semana_cultivo_manual: Optional[int] = None
    semana_cultivo: Optional[int] = None


class MetricasSesion(BaseModel):
    """Métricas derivadas de una sesión dentro de su cadena."""
    model_config = ConfigDict(frozen=True)

    sesion_id: Optional[int] = None
    fecha: date
    peso_promedio_g: Decimal
    biomasa_kg: Decimal
    biomasa_delta_kg: Decimal
    crecimiento_g: Decimal
    poblacion_estimada: int
    poblacion_cosechada_acum: int
    supervivencia_pct: Decimal
    semana_cultivo: Optional[int] = None
    cosecha_semanal_kg: Decimal
    cosecha_acum_kg: Decimal
    productividad: Decimal
    peso_medido: bool = Field(True, description="False si la sesión no traía mediciones ni peso de laboratorio")
    advertencias: List[DataQualityWarning] = Field(default_factory=list)


class CambioSemanaCultivo(BaseModel):
    model_config = ConfigDict(frozen=True)

    sesion_id: Optional[int] = None
    fecha: date
    semana_anterior: Optional[int] = None
    semana_nueva: int


class RecalculoSemanas(BaseModel):
    """Resultado del recálculo de semanas de cultivo de una cadena."""
    estanque_id: int
    generacion_id: int
    semanas: List[int] = Field(default_factory=list, description="Semana calculada por sesión, en orden de fecha")
    cambios: List[CambioSemanaCultivo] = Field(default_factory=list)
    total_cambios: int = 0
    ancla_sesion_id: Optional[int] = None


# =====================================================
# 🟢 INPUT SCHEMAS
# =====================================================

class SesionMuestreoCreate(BaseModel):
    """Schema para registrar una nueva sesión de muestreo de un estanque."""
    estanque_id: int = Field(..., gt=0)
    generacion_id: int = Field(..., gt=0)
    fecha: date
    mediciones: List[condecimal(ge=0, max_digits=8, decimal_places=3)] = Field(
        default_factory=list, description="Pesos individuales en gramos, en orden de lance"
    )
    peso_promedio_lab_g: Optional[condecimal(ge=0, max_digits=8, decimal_places=3)] = Field(
        None, description="Peso promedio contado en laboratorio. Si viene, tiene prioridad sobre la mediana"
    )
    cosecha_kg: Optional[condecimal(ge=0, max_digits=14, decimal_places=3)] = None
    cosecha_total_manual_kg: Optional[condecimal(ge=0, max_digits=14, decimal_places=3)] = None
    semana_cultivo_manual: Optional[int] = Field(None, ge=0)
    notas: Optional[str] = Field(None, max_length=255)


class SesionMuestreoCorreccion(BaseModel):
    """
    Corrección manual de una sesión. Cada campo que cambie genera una entrada
    en la bitácora con el motivo indicado.
    """
    motivo: str = Field(..., min_length=3, max_length=255)
    changed_by: Optional[str] = Field(None, max_length=120)

    fecha: Optional[date] = None
    mediciones: Optional[List[condecimal(ge=0, max_digits=8, decimal_places=3)]] = None
    peso_promedio_lab_g: Optional[condecimal(ge=0, max_digits=8, decimal_places=3)] = None
    cosecha_kg: Optional[condecimal(ge=0, max_digits=14, decimal_places=3)] = None
    cosecha_total_manual_kg: Optional[condecimal(ge=0, max_digits=14, decimal_places=3)] = Field(
        None, description="Total acumulado capturado a mano; base del acumulado de cosecha"
    )
    semana_cultivo_manual: Optional[int] = Field(None, ge=0)


# =====================================================
# 🟣 OUTPUT SCHEMAS
# =====================================================

class SesionMuestreoOut(BaseModel):
    sesion_muestreo_id: int
    estanque_id: int
    generacion_id: int
    fecha: date

    mediciones: List[float]
    peso_promedio_lab_g: Optional[float] = None
    cosecha_kg: Optional[float] = None
    semana_cultivo_manual: Optional[int] = None
    notas: Optional[str] = None

    peso_promedio_g: Optional[float] = None
    biomasa_kg: Optional[float] = None
    biomasa_delta_kg: Optional[float] = None
    crecimiento_g: Optional[float] = None
    poblacion_estimada: Optional[int] = None
    poblacion_cosechada_acum: Optional[int] = None
    supervivencia_pct: Optional[float] = None
    semana_cultivo: Optional[int] = None
    cosecha_semanal_kg: Optional[float] = None
    cosecha_acum_kg: Optional[float] = None
    productividad: Optional[float] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MuestreoEditLogOut(BaseModel):
    muestreo_edit_log_id: int
    sesion_muestreo_id: int
    campo: str
    valor_anterior: Optional[str] = None
    valor_nuevo: Optional[str] = None
    motivo: str
    changed_by: Optional[str] = None
    changed_at: datetime

    class Config:
        from_attributes = True


class RecalculoCadenaOut(BaseModel):
    """Respuesta de registrar/corregir: la sesión guardada y el efecto sobre su cadena."""
    sesion: SesionMuestreoOut
    sesiones_actualizadas: int
    cambios_semana_cultivo: int
    advertencias: List[DataQualityWarning] = Field(default_factory=list)

    class Config:
        from_attributes = True
