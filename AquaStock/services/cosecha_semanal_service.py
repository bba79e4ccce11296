"""
Conciliación de cosechas contra semanas de muestreo.

Los muestreos de campo se hacen en miércoles, así que la "semana de muestreo"
va del miércoles 00:00 al martes siguiente 23:59:59. Esta semana NO es la
semana de plan (lunes) que usan los snapshots de inventario.

Una cosecha cae en exactamente una semana de muestreo: la de su miércoles ancla.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from schemas.cosecha import RegistroCosecha, TotalesCosechaSesion
from schemas.muestreo import SesionMuestreoData
from services.metricas_service import acumular_cosecha, sort_chain, CERO, Q_KG
from utils.datetime_utils import as_date
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

MIERCOLES = 2  # date.weekday()

# Codificaciones legadas del nombre del estanque en el libro de cosechas
_RE_SOLO_NUMERO = re.compile(r"^\s*0*(\d+)\s*$")
_RE_ESTANQUE = re.compile(r"\bestanque[\s\-_]*0*(\d+)\b")
_RE_EST = re.compile(r"\best[\s\-_]*0*(\d+)\b")
_RE_NUMERO_FINAL = re.compile(r"[\s\-_]0*(\d+)\s*:?\s*$")


# ==================== SEMANA DE MUESTREO ====================

def week_anchor(value: date | datetime) -> date:
    """
    Miércoles que abre la semana de muestreo de `value`.

    Lunes y martes retroceden al miércoles anterior; de miércoles a domingo se
    toma el miércoles de esa misma semana.
    """
    d = as_date(value)
    return d - timedelta(days=(d.weekday() - MIERCOLES) % 7)


def week_bounds(value: date | datetime) -> Tuple[date, date]:
    """(miércoles, martes) de la semana de muestreo de `value`."""
    inicio = week_anchor(value)
    return inicio, inicio + timedelta(days=6)


def same_sampling_week(a: date | datetime, b: date | datetime) -> bool:
    return week_anchor(a) == week_anchor(b)


# ==================== IDENTIDAD DEL ESTANQUE ====================

def canonicalize_pond_id(estanque_id: Optional[int], nombre: Optional[str] = None) -> Optional[int]:
    """
    Resuelve el id de estanque de una línea de cosecha.

    La llave explícita `estanque_id` siempre gana. Solo si falta se interpreta
    el nombre legado: "EST-05", "EST-5", "Est5", "Estanque 5", "Estanque-5",
    "Estanque 5:", "Norte 5" (número final) o "5". Un nombre que no encaja en
    ningún formato resuelve a None.
    """
    if estanque_id is not None:
        return int(estanque_id)
    if not nombre:
        return None

    texto = nombre.strip().lower()
    for patron in (_RE_SOLO_NUMERO, _RE_ESTANQUE, _RE_EST, _RE_NUMERO_FINAL):
        match = patron.search(texto)
        if match:
            return int(match.group(1))
    return None


# ==================== AGREGACIÓN ====================

def _is_trusted(fecha_cosecha: date, fecha_corte: Optional[date]) -> bool:
    return fecha_corte is None or fecha_cosecha >= fecha_corte


def collect_harvest_for_pond_week(
    estanque_id: int,
    fecha_muestreo: date | datetime,
    cosechas: Iterable[RegistroCosecha],
    fecha_corte: Optional[date] = None
) -> List[Tuple[RegistroCosecha, Decimal]]:
    """
    Cosechas del estanque en la semana de muestreo de `fecha_muestreo`, con el
    peso que aporta cada una. Las cosechas anteriores a `fecha_corte` se excluyen.
    """
    ancla = week_anchor(fecha_muestreo)
    encontradas: List[Tuple[RegistroCosecha, Decimal]] = []

    for cosecha in cosechas:
        fecha_cosecha = as_date(cosecha.fecha)
        if not _is_trusted(fecha_cosecha, fecha_corte):
            continue
        if week_anchor(fecha_cosecha) != ancla:
            continue

        peso = CERO
        for linea in cosecha.estanques:
            if canonicalize_pond_id(linea.estanque_id, linea.nombre) != estanque_id:
                continue
            if linea.peso_kg < 0:
                raise ValidationError(
                    "peso_kg de cosecha no puede ser negativo",
                    folio=cosecha.folio, estanque_id=estanque_id,
                )
            peso += linea.peso_kg

        if peso > 0:
            encontradas.append((cosecha, peso))

    return encontradas


def aggregate_harvest_for_pond_week(
    estanque_id: int,
    fecha_muestreo: date | datetime,
    cosechas: Iterable[RegistroCosecha],
    fecha_corte: Optional[date] = None
) -> Decimal:
    """
    Kg cosechados del estanque en la semana de muestreo de `fecha_muestreo`.
    Devuelve 0 (nunca None) si no hay coincidencias.
    """
    total = sum(
        (peso for _, peso in collect_harvest_for_pond_week(estanque_id, fecha_muestreo, cosechas, fecha_corte)),
        CERO,
    )
    return total.quantize(Q_KG)


def attach_harvest_totals(
    estanque_id: int,
    sesiones: Sequence[SesionMuestreoData],
    cosechas: Sequence[RegistroCosecha],
    fecha_corte: Optional[date] = None
) -> List[TotalesCosechaSesion]:
    """
    Cosecha semanal y acumulada para cada sesión de la cadena, en orden de fecha.

    - Sesiones posteriores a `fecha_corte`: la cosecha semanal sale del libro de cosechas.
    - Sesiones hasta `fecha_corte`: conservan lo capturado a mano; su último total
      manual es la base sobre la que se suman las cosechas conciliadas.
    - Cada semana de muestreo se suma una sola vez al acumulado, aunque la
      cadena tenga dos sesiones en la misma semana.
    """
    semanas_contadas: set[date] = set()
    acumulado = CERO
    resultado: List[TotalesCosechaSesion] = []

    for sesion in sort_chain(sesiones):
        ancla = week_anchor(sesion.fecha)
        conciliada = fecha_corte is None or sesion.fecha > fecha_corte

        if conciliada:
            total_manual = None
            if ancla in semanas_contadas:
                semanal = CERO.quantize(Q_KG)
            else:
                semanal = aggregate_harvest_for_pond_week(estanque_id, sesion.fecha, cosechas, fecha_corte)
        else:
            total_manual = sesion.cosecha_total_manual_kg
            semanal = (sesion.cosecha_kg or CERO).quantize(Q_KG)

        semanas_contadas.add(ancla)
        acumulado, aviso = acumular_cosecha(acumulado, semanal, total_manual)
        if aviso:
            logger.warning("Estanque %s, sesión %s: %s", estanque_id, sesion.fecha, aviso.message)

        resultado.append(TotalesCosechaSesion(
            sesion_id=sesion.sesion_id,
            fecha=sesion.fecha,
            semana_muestreo=ancla,
            cosecha_semanal_kg=semanal,
            cosecha_acum_kg=acumulado,
            conciliada=conciliada,
        ))

    return resultado
