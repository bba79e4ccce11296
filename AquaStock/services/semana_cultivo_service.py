"""
Semanas de cultivo por cadena (estanque, generación).

Regla por defecto: la primera sesión (por fecha real) es la semana 1 y cada
sesión siguiente suma 1.

Regla de ancla: la primera sesión, en orden cronológico, que trae una semana
capturada a mano se vuelve el ancla. Su valor se respeta tal cual y el resto de
la cadena se renumera relativo a ella:

    semana[i] = valor_ancla + (i - indice_ancla)

Las capturas manuales posteriores al ancla no abren un ancla nueva.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from schemas.muestreo import SesionMuestreoData, CambioSemanaCultivo, RecalculoSemanas
from services.metricas_service import sort_chain


def _find_anchor(cadena: Sequence[SesionMuestreoData]) -> Optional[int]:
    for idx, sesion in enumerate(cadena):
        if sesion.semana_cultivo_manual is not None:
            return idx
    return None


def compute_culture_weeks(cadena: Sequence[SesionMuestreoData]) -> List[int]:
    """
    Semana de cultivo para cada sesión de una cadena YA ordenada por fecha.
    """
    if not cadena:
        return []

    anchor_idx = _find_anchor(cadena)
    if anchor_idx is None:
        return [idx + 1 for idx in range(len(cadena))]

    anchor_value = cadena[anchor_idx].semana_cultivo_manual
    return [
        anchor_value if idx == anchor_idx else anchor_value + (idx - anchor_idx)
        for idx in range(len(cadena))
    ]


def recompute_culture_weeks(
    estanque_id: int,
    generacion_id: int,
    sesiones: Sequence[SesionMuestreoData]
) -> RecalculoSemanas:
    """
    Recalcula las semanas de cultivo de la cadena (estanque, generación).

    Las sesiones de otras cadenas se ignoran, así que se puede pasar el
    historial completo del estanque. La lista recibida no se modifica: se
    trabaja sobre una copia reordenada por fecha.

    Devuelve las semanas calculadas (en orden de fecha) y las sesiones cuyo
    valor almacenado difiere del calculado, para que el almacén las persista.
    """
    cadena = sort_chain([
        s for s in sesiones
        if s.estanque_id == estanque_id and s.generacion_id == generacion_id
    ])
    semanas = compute_culture_weeks(cadena)

    cambios = [
        CambioSemanaCultivo(
            sesion_id=sesion.sesion_id,
            fecha=sesion.fecha,
            semana_anterior=sesion.semana_cultivo,
            semana_nueva=semana,
        )
        for sesion, semana in zip(cadena, semanas)
        if sesion.semana_cultivo != semana
    ]

    anchor_idx = _find_anchor(cadena)
    return RecalculoSemanas(
        estanque_id=estanque_id,
        generacion_id=generacion_id,
        semanas=semanas,
        cambios=cambios,
        total_cambios=len(cambios),
        ancla_sesion_id=cadena[anchor_idx].sesion_id if anchor_idx is not None else None,
    )
