from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from utils.db import get_db
from schemas.muestreo import (
    SesionMuestreoCreate,
    SesionMuestreoCorreccion,
    SesionMuestreoOut,
    MuestreoEditLogOut,
    RecalculoCadenaOut,
)
from services.muestreo_service import MuestreoService

router = APIRouter(prefix="/muestreos", tags=["muestreos"])


@router.post(
    "/sesiones",
    response_model=RecalculoCadenaOut,
    status_code=status.HTTP_201_CREATED,
    summary="Registrar sesión de muestreo",
    description=(
        "Registra una sesión de muestreo de un estanque y recalcula toda su cadena "
        "(estanque, generación):\n\n"
        "- **Peso promedio**: peso de laboratorio si viene; si no, mediana de las mediciones.\n"
        "- **Cosecha**: después de la fecha de corte se concilia contra el libro de cosechas "
        "(semana miércoles a martes).\n"
        "- **Semana de cultivo**: se reancla en la primera sesión con semana manual.\n\n"
        "Las advertencias de calidad de datos (sin peso, supervivencia > 100%, ...) "
        "se devuelven en `advertencias`; no bloquean el registro."
    )
)
def registrar_sesion(
    payload: SesionMuestreoCreate,
    db: Session = Depends(get_db),
):
    return MuestreoService.registrar_sesion(db, payload)


@router.patch(
    "/sesiones/{sesion_id}",
    response_model=RecalculoCadenaOut,
    summary="Corregir sesión de muestreo",
    description=(
        "Corrige campos capturados de una sesión existente. Cada campo modificado "
        "queda en la bitácora con su valor anterior, el nuevo y el motivo. "
        "La cadena completa se recalcula en la misma transacción."
    )
)
def corregir_sesion(
    payload: SesionMuestreoCorreccion,
    sesion_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    return MuestreoService.corregir_sesion(db, sesion_id, payload)


@router.get(
    "/sesiones/{sesion_id}",
    response_model=SesionMuestreoOut,
    summary="Obtener sesión de muestreo"
)
def get_sesion(
    sesion_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    return MuestreoService.get_by_id(db, sesion_id)


@router.get(
    "/sesiones/{sesion_id}/historial",
    response_model=List[MuestreoEditLogOut],
    summary="Bitácora de correcciones de una sesión"
)
def get_historial(
    sesion_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    return MuestreoService.list_edit_log(db, sesion_id)


@router.get(
    "/estanques/{estanque_id}/generaciones/{generacion_id}",
    response_model=List[SesionMuestreoOut],
    summary="Cadena de muestreos de una generación en un estanque",
    description="Sesiones en orden de fecha real con sus métricas derivadas."
)
def list_cadena(
    estanque_id: int = Path(..., gt=0),
    generacion_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    return MuestreoService.list_chain(db, estanque_id, generacion_id)


@router.post(
    "/estanques/{estanque_id}/generaciones/{generacion_id}/recalcular",
    summary="Recalcular cadena",
    description="Recalcula la cadena sin modificar capturas (p. ej. después de cargar cosechas)."
)
def recalcular_cadena(
    estanque_id: int = Path(..., gt=0),
    generacion_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    return MuestreoService.recalcular(db, estanque_id, generacion_id)
