from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from utils.db import get_db
from schemas.cosecha import CosechaCreate, CosechaOut, CosechaSemanalOut
from services.cosecha_service import CosechaService

router = APIRouter(prefix="/cosechas", tags=["cosechas"])


@router.post(
    "",
    response_model=CosechaOut,
    status_code=status.HTTP_201_CREATED,
    summary="Registrar cosecha en el libro",
    description=(
        "Registra una cosecha con su desglose por estanque. Cada línea lleva "
        "`estanque_id` o, para registros legados, `nombre_estanque` "
        "(EST-05, Estanque 5, ...). Las cadenas de muestreo de los estanques "
        "involucrados se recalculan."
    )
)
def create_cosecha(
    payload: CosechaCreate,
    db: Session = Depends(get_db),
):
    return CosechaService.create(db, payload)


@router.get(
    "/{cosecha_id}",
    response_model=CosechaOut,
    summary="Obtener cosecha"
)
def get_cosecha(
    cosecha_id: int = Path(..., gt=0),
    db: Session = Depends(get_db),
):
    return CosechaService.get_by_id(db, cosecha_id)


@router.get(
    "/estanques/{estanque_id}/semana",
    response_model=CosechaSemanalOut,
    summary="Cosecha semanal de un estanque",
    description=(
        "Suma los kg cosechados del estanque en la semana de muestreo "
        "(miércoles a martes) que contiene `fecha`. Devuelve 0 si no hay cosechas."
    )
)
def get_cosecha_semanal(
    estanque_id: int = Path(..., gt=0),
    fecha: date = Query(..., description="Fecha del muestreo"),
    db: Session = Depends(get_db),
):
    return CosechaService.semana(db, estanque_id, fecha)
