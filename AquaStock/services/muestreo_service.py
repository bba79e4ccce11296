from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from config.settings import settings
from enums.enums import MuestreoCampoEditableEnum
from models.pond import Estanque
from models.generacion import Generacion
from models.muestreo import SesionMuestreo, MuestreoEditLog
from models.harvest import Cosecha
from schemas.cosecha import RegistroCosecha, CosechaEstanqueLinea
from schemas.muestreo import (
    SesionMuestreoData, SesionMuestreoCreate, SesionMuestreoCorreccion, MetricasSesion
)
from services.cosecha_semanal_service import attach_harvest_totals
from services.metricas_service import compute_chain_metrics, sort_chain
from services.semana_cultivo_service import recompute_culture_weeks
from utils.errors import DataQualityWarning
from utils.transactions import uow

logger = logging.getLogger(__name__)

# Campos de la sesión que una corrección manual puede tocar
CAMPOS_CORREGIBLES = tuple(campo.value for campo in MuestreoCampoEditableEnum)
CAMPOS_NO_NULOS = (MuestreoCampoEditableEnum.fecha.value, MuestreoCampoEditableEnum.mediciones.value)
CAMPOS_DECIMALES = (
    MuestreoCampoEditableEnum.peso_promedio_lab_g.value,
    MuestreoCampoEditableEnum.cosecha_kg.value,
    MuestreoCampoEditableEnum.cosecha_total_manual_kg.value,
)

# Columnas de caché que se recalculan con la cadena
CAMPOS_DERIVADOS = (
    "peso_promedio_g", "biomasa_kg", "biomasa_delta_kg", "crecimiento_g",
    "poblacion_estimada", "poblacion_cosechada_acum", "supervivencia_pct",
    "cosecha_semanal_kg", "cosecha_acum_kg", "productividad",
)


def _dec(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def to_session_data(sesion: SesionMuestreo) -> SesionMuestreoData:
    return SesionMuestreoData(
        sesion_id=sesion.sesion_muestreo_id,
        estanque_id=sesion.estanque_id,
        generacion_id=sesion.generacion_id,
        fecha=sesion.fecha,
        mediciones=[Decimal(str(m)) for m in (sesion.mediciones or [])],
        peso_promedio_lab_g=_dec(sesion.peso_promedio_lab_g),
        cosecha_kg=_dec(sesion.cosecha_kg),
        cosecha_total_manual_kg=_dec(sesion.cosecha_total_manual_kg),
        semana_cultivo_manual=sesion.semana_cultivo_manual,
        semana_cultivo=sesion.semana_cultivo,
    )


def to_harvest_record(cosecha: Cosecha) -> RegistroCosecha:
    return RegistroCosecha(
        cosecha_id=cosecha.cosecha_id,
        folio=cosecha.folio,
        fecha=cosecha.fecha_cosecha,
        estanques=[
            CosechaEstanqueLinea(
                estanque_id=linea.estanque_id,
                nombre=linea.nombre_estanque,
                peso_kg=Decimal(str(linea.peso_kg)),
            )
            for linea in cosecha.estanques
        ],
        tallas={k: Decimal(str(v)) for k, v in (cosecha.tallas or {}).items()},
    )


def load_harvest_records(db: Session, desde: date, hasta: date) -> List[RegistroCosecha]:
    """Libro de cosechas entre dos fechas (con una semana de margen a cada lado)."""
    cosechas = (
        db.query(Cosecha)
        .options(selectinload(Cosecha.estanques))
        .filter(
            Cosecha.fecha_cosecha >= desde - timedelta(days=7),
            Cosecha.fecha_cosecha <= hasta + timedelta(days=7),
        )
        .order_by(Cosecha.fecha_cosecha.asc())
        .all()
    )
    return [to_harvest_record(c) for c in cosechas]


class MuestreoService:
    """
    Almacén de sesiones de muestreo y disparador del recálculo de cadena.

    Flujo al guardar una sesión:
    1. Cosecha semanal/acumulada conciliada contra el libro de cosechas.
    2. Métricas de cada sesión de la cadena (peso, biomasa, población, ...).
    3. Semanas de cultivo de la cadena.
    Todo dentro de un mismo uow: la cadena se ve completa o no se ve.
    """

    # ==========================================
    # HELPERS INTERNOS
    # ==========================================

    @staticmethod
    def _validate_pond_and_generation(
            db: Session,
            estanque_id: int,
            generacion_id: int
    ) -> Tuple[Estanque, Generacion]:
        pond = db.get(Estanque, estanque_id)
        if not pond:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Estanque no encontrado")

        generacion = db.get(Generacion, generacion_id)
        if not generacion:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Generación no encontrada")

        if generacion.estanque_id != estanque_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="La generación no está asignada a este estanque"
            )
        return pond, generacion

    @staticmethod
    def _ensure_unique_date(db: Session, estanque_id: int, generacion_id: int, fecha: date, exclude_id: Optional[int] = None):
        query = db.query(SesionMuestreo).filter(
            SesionMuestreo.estanque_id == estanque_id,
            SesionMuestreo.generacion_id == generacion_id,
            SesionMuestreo.fecha == fecha,
        )
        if exclude_id is not None:
            query = query.filter(SesionMuestreo.sesion_muestreo_id != exclude_id)
        if query.first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un muestreo para el estanque {estanque_id} en {fecha.isoformat()}"
            )

    @staticmethod
    def _apply_metrics(sesion: SesionMuestreo, metricas: MetricasSesion, semana_cultivo: int) -> bool:
        """Copia las métricas a las columnas de caché. True si algo cambió."""
        cambio = False
        for campo in CAMPOS_DERIVADOS:
            nuevo = getattr(metricas, campo)
            actual = getattr(sesion, campo)
            if actual is None or _dec(actual) != _dec(nuevo):
                setattr(sesion, campo, nuevo)
                cambio = True
        if sesion.semana_cultivo != semana_cultivo:
            sesion.semana_cultivo = semana_cultivo
            cambio = True
        return cambio

    @staticmethod
    def _recalcular_cadena(
            db: Session,
            pond: Estanque,
            generacion: Generacion
    ) -> Tuple[int, int, List[MetricasSesion]]:
        """
        Recalcula y persiste (sin commit) las métricas de toda la cadena.
        Retorna (sesiones actualizadas, cambios de semana de cultivo, métricas).
        """
        filas = (
            db.query(SesionMuestreo)
            .filter(
                SesionMuestreo.estanque_id == pond.estanque_id,
                SesionMuestreo.generacion_id == generacion.generacion_id,
            )
            .with_for_update()
            .all()
        )
        if not filas:
            return 0, 0, []

        cadena = sort_chain([to_session_data(f) for f in filas])
        cosechas = load_harvest_records(db, cadena[0].fecha, cadena[-1].fecha)
        totales = attach_harvest_totals(
            pond.estanque_id, cadena, cosechas, settings.HARVEST_TRUST_CUTOVER_DATE
        )

        conciliadas = [
            sesion.model_copy(update={
                "cosecha_kg": total.cosecha_semanal_kg,
                "cosecha_total_manual_kg": None if total.conciliada else sesion.cosecha_total_manual_kg,
            })
            for sesion, total in zip(cadena, totales)
        ]
        metricas = compute_chain_metrics(conciliadas, pond.superficie_m2, generacion.poblacion_inicial)
        semanas = recompute_culture_weeks(pond.estanque_id, generacion.generacion_id, cadena)

        por_id = {f.sesion_muestreo_id: f for f in filas}
        actualizadas = 0
        for metrica, semana in zip(metricas, semanas.semanas):
            if MuestreoService._apply_metrics(por_id[metrica.sesion_id], metrica, semana):
                actualizadas += 1

        logger.info(
            "Cadena estanque=%s generación=%s: %d sesiones, %d actualizadas, %d cambios de semana",
            pond.estanque_id, generacion.generacion_id, len(filas), actualizadas, semanas.total_cambios,
        )
        return actualizadas, semanas.total_cambios, [
            m.model_copy(update={"semana_cultivo": s}) for m, s in zip(metricas, semanas.semanas)
        ]

    @staticmethod
    def _warnings_for(metricas: List[MetricasSesion], sesion_id: int) -> List[DataQualityWarning]:
        for metrica in metricas:
            if metrica.sesion_id == sesion_id:
                return list(metrica.advertencias)
        return []

    # ==========================================
    # COMANDOS PÚBLICOS
    # ==========================================

    @staticmethod
    def registrar_sesion(db: Session, payload: SesionMuestreoCreate) -> dict:
        """Registra una sesión y recalcula su cadena."""
        with uow(db, label=f"muestreo estanque={payload.estanque_id}"):
            pond, generacion = MuestreoService._validate_pond_and_generation(
                db, payload.estanque_id, payload.generacion_id
            )
            MuestreoService._ensure_unique_date(db, payload.estanque_id, payload.generacion_id, payload.fecha)

            sesion = SesionMuestreo(
                estanque_id=payload.estanque_id,
                generacion_id=payload.generacion_id,
                fecha=payload.fecha,
                mediciones=[float(m) for m in payload.mediciones],
                peso_promedio_lab_g=payload.peso_promedio_lab_g,
                cosecha_kg=payload.cosecha_kg,
                cosecha_total_manual_kg=payload.cosecha_total_manual_kg,
                semana_cultivo_manual=payload.semana_cultivo_manual,
                notas=payload.notas,
            )
            db.add(sesion)
            db.flush()

            actualizadas, cambios_semana, metricas = MuestreoService._recalcular_cadena(db, pond, generacion)

        db.refresh(sesion)
        return {
            "sesion": sesion,
            "sesiones_actualizadas": actualizadas,
            "cambios_semana_cultivo": cambios_semana,
            "advertencias": MuestreoService._warnings_for(metricas, sesion.sesion_muestreo_id),
        }

    @staticmethod
    def corregir_sesion(db: Session, sesion_id: int, payload: SesionMuestreoCorreccion) -> dict:
        """
        Corrección manual de una sesión histórica. Cada campo modificado deja una
        entrada en la bitácora y la cadena se recalcula hacia adelante.
        """
        with uow(db, label=f"corrección sesión={sesion_id}"):
            sesion = MuestreoService.get_by_id(db, sesion_id)
            pond, generacion = MuestreoService._validate_pond_and_generation(
                db, sesion.estanque_id, sesion.generacion_id
            )

            cambios = payload.model_dump(include=set(CAMPOS_CORREGIBLES), exclude_unset=True)
            if "fecha" in cambios and cambios["fecha"] is not None:
                MuestreoService._ensure_unique_date(
                    db, sesion.estanque_id, sesion.generacion_id, cambios["fecha"], exclude_id=sesion_id
                )
            if "mediciones" in cambios and cambios["mediciones"] is not None:
                cambios["mediciones"] = [float(m) for m in cambios["mediciones"]]

            for campo, nuevo in cambios.items():
                # Columnas NOT NULL: null en la corrección significa "sin cambio"
                if campo in CAMPOS_NO_NULOS and nuevo is None:
                    continue
                anterior = getattr(sesion, campo)
                if campo in CAMPOS_DECIMALES:
                    iguales = _dec(anterior) == _dec(nuevo)
                else:
                    iguales = anterior == nuevo
                if iguales:
                    continue
                db.add(MuestreoEditLog(
                    sesion_muestreo_id=sesion.sesion_muestreo_id,
                    campo=campo,
                    valor_anterior=None if anterior is None else str(anterior),
                    valor_nuevo=None if nuevo is None else str(nuevo),
                    motivo=payload.motivo,
                    changed_by=payload.changed_by,
                ))
                setattr(sesion, campo, nuevo)

            db.flush()
            actualizadas, cambios_semana, metricas = MuestreoService._recalcular_cadena(db, pond, generacion)

        db.refresh(sesion)
        return {
            "sesion": sesion,
            "sesiones_actualizadas": actualizadas,
            "cambios_semana_cultivo": cambios_semana,
            "advertencias": MuestreoService._warnings_for(metricas, sesion.sesion_muestreo_id),
        }

    @staticmethod
    def recalcular(db: Session, estanque_id: int, generacion_id: int) -> dict:
        """Recalcula una cadena completa sin modificar capturas (p. ej. tras cargar cosechas)."""
        with uow(db, label=f"cadena {estanque_id}/{generacion_id}"):
            pond, generacion = MuestreoService._validate_pond_and_generation(db, estanque_id, generacion_id)
            actualizadas, cambios_semana, _ = MuestreoService._recalcular_cadena(db, pond, generacion)
        return {"sesiones_actualizadas": actualizadas, "cambios_semana_cultivo": cambios_semana}

    @staticmethod
    def get_by_id(db: Session, sesion_id: int) -> SesionMuestreo:
        sesion = db.get(SesionMuestreo, sesion_id)
        if not sesion:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sesión de muestreo no encontrada")
        return sesion

    @staticmethod
    def list_chain(db: Session, estanque_id: int, generacion_id: int) -> List[SesionMuestreo]:
        """Cadena (estanque, generación) en orden de fecha real."""
        return (
            db.query(SesionMuestreo)
            .filter(
                SesionMuestreo.estanque_id == estanque_id,
                SesionMuestreo.generacion_id == generacion_id,
            )
            .order_by(SesionMuestreo.fecha.asc(), SesionMuestreo.sesion_muestreo_id.asc())
            .all()
        )

    @staticmethod
    def list_edit_log(db: Session, sesion_id: int) -> List[MuestreoEditLog]:
        MuestreoService.get_by_id(db, sesion_id)
        return (
            db.query(MuestreoEditLog)
            .filter(MuestreoEditLog.sesion_muestreo_id == sesion_id)
            .order_by(MuestreoEditLog.changed_at.asc(), MuestreoEditLog.muestreo_edit_log_id.asc())
            .all()
        )
