from __future__ import annotations

import logging
from datetime import date
from typing import Set

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from config.settings import settings
from models.harvest import Cosecha, CosechaEstanque
from models.muestreo import SesionMuestreo
from models.pond import Estanque
from schemas.cosecha import CosechaCreate, CosechaSemanalOut
from services.cosecha_semanal_service import (
    canonicalize_pond_id, collect_harvest_for_pond_week, week_bounds
)
from services.metricas_service import CERO, Q_KG
from services.muestreo_service import MuestreoService, load_harvest_records
from utils.transactions import uow

logger = logging.getLogger(__name__)


class CosechaService:
    """Libro de cosechas: alta de registros y consulta por semana de muestreo."""

    @staticmethod
    def create(db: Session, payload: CosechaCreate) -> Cosecha:
        """
        Registra una cosecha y recalcula las cadenas de los estanques que toca,
        para que la cosecha semanal conciliada refleje el nuevo registro.
        """
        with uow(db, label="alta de cosecha"):
            cosecha = Cosecha(
                folio=payload.folio,
                fecha_cosecha=payload.fecha_cosecha,
                tallas={k: float(v) for k, v in payload.tallas.items()} or None,
            )
            for linea in payload.estanques:
                if linea.estanque_id is not None and not db.get(Estanque, linea.estanque_id):
                    raise HTTPException(
                        status_code=status.HTTP_404_NOT_FOUND,
                        detail=f"Estanque {linea.estanque_id} no encontrado"
                    )
                cosecha.estanques.append(CosechaEstanque(
                    estanque_id=linea.estanque_id,
                    nombre_estanque=linea.nombre_estanque,
                    peso_kg=linea.peso_kg,
                ))
            db.add(cosecha)

        estanques: Set[int] = {
            pid for pid in (
                canonicalize_pond_id(linea.estanque_id, linea.nombre_estanque) for linea in payload.estanques
            ) if pid is not None
        }
        CosechaService._recalcular_estanques(db, estanques)

        db.refresh(cosecha)
        return cosecha

    @staticmethod
    def _recalcular_estanques(db: Session, estanques: Set[int]) -> None:
        if not estanques:
            return
        cadenas = (
            db.query(SesionMuestreo.estanque_id, SesionMuestreo.generacion_id)
            .filter(SesionMuestreo.estanque_id.in_(estanques))
            .distinct()
            .all()
        )
        for estanque_id, generacion_id in cadenas:
            MuestreoService.recalcular(db, estanque_id, generacion_id)
        logger.info("Cosecha registrada: %d cadenas recalculadas", len(cadenas))

    @staticmethod
    def get_by_id(db: Session, cosecha_id: int) -> Cosecha:
        cosecha = (
            db.query(Cosecha)
            .options(selectinload(Cosecha.estanques))
            .filter(Cosecha.cosecha_id == cosecha_id)
            .first()
        )
        if not cosecha:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cosecha no encontrada")
        return cosecha

    @staticmethod
    def semana(db: Session, estanque_id: int, fecha: date) -> CosechaSemanalOut:
        """Kg cosechados del estanque en la semana de muestreo (miércoles a martes) de `fecha`."""
        if not db.get(Estanque, estanque_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Estanque no encontrado")

        inicio, fin = week_bounds(fecha)
        registros = load_harvest_records(db, inicio, fin)
        encontradas = collect_harvest_for_pond_week(
            estanque_id, fecha, registros, settings.HARVEST_TRUST_CUTOVER_DATE
        )
        total = sum((peso for _, peso in encontradas), CERO).quantize(Q_KG)

        return CosechaSemanalOut(
            estanque_id=estanque_id,
            fecha_muestreo=fecha,
            semana_inicio=inicio,
            semana_fin=fin,
            peso_kg=float(total),
            folios=[r.folio for r, _ in encontradas if r.folio],
        )
