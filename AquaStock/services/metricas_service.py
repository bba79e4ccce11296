"""
Servicio de métricas por sesión de muestreo.

Aritmética pura sobre datos ya cargados en memoria: no consulta la base de datos.
Nunca falla por campos opcionales ausentes (degrada a 0 y deja una advertencia);
solo lanza ValidationError ante entrada estructuralmente inválida.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from statistics import median
from typing import Any, List, Optional, Sequence, Tuple

from schemas.muestreo import SesionMuestreoData, MetricasSesion
from utils.errors import ValidationError, DataQualityWarning

CERO = Decimal("0")
MIL = Decimal("1000")
CIEN = Decimal("100")

Q_PESO = Decimal("0.001")
Q_KG = Decimal("0.001")
Q_PCT = Decimal("0.01")
Q_PRODUCTIVIDAD = Decimal("0.0001")


# ==================== HELPERS ====================

def _to_decimal(value: Any, field_name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field_name} inválido: {value!r}", field=field_name)


def _non_negative(value: Any, field_name: str) -> Optional[Decimal]:
    """Convierte a Decimal; None pasa tal cual. Negativo => ValidationError."""
    if value is None:
        return None
    dec_value = _to_decimal(value, field_name)
    if dec_value < 0:
        raise ValidationError(f"{field_name} no puede ser negativo", field=field_name, value=str(dec_value))
    return dec_value


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def chain_sort_key(sesion: SesionMuestreoData) -> tuple:
    """
    Orden de una cadena: fecha real de muestreo; a igual fecha, id de sesión
    (las sesiones sin id todavía van al final).
    """
    return (sesion.fecha, sesion.sesion_id is None, sesion.sesion_id or 0)


def sort_chain(sesiones: Sequence[SesionMuestreoData]) -> List[SesionMuestreoData]:
    """Copia ordenada de la cadena; nunca depende del orden de inserción."""
    return sorted(sesiones, key=chain_sort_key)


# ==================== CÁLCULOS BÁSICOS ====================

def calculate_peso_promedio(sesion: SesionMuestreoData) -> Optional[Decimal]:
    """
    Peso promedio de la sesión en gramos.

    - Si hay peso contado en laboratorio, se usa ese.
    - Si no, la mediana de las mediciones.
    - Sin ninguno de los dos => None (peso desconocido).
    """
    lab = _non_negative(sesion.peso_promedio_lab_g, "peso_promedio_lab_g")
    if lab is not None:
        return lab.quantize(Q_PESO)

    mediciones = [_non_negative(m, "mediciones") for m in sesion.mediciones]
    if not mediciones:
        return None
    return Decimal(median(mediciones)).quantize(Q_PESO)


def calculate_biomasa_kg(peso_promedio_g: Decimal, superficie_m2: Decimal) -> Decimal:
    """
    Fórmula:
    biomasa_kg = (peso_promedio_g / 1000) × superficie
    """
    return (peso_promedio_g / MIL * superficie_m2).quantize(Q_KG)


def calculate_poblacion(biomasa_kg: Decimal, peso_promedio_g: Decimal) -> int:
    """
    Fórmula:
    poblacion = round(biomasa_kg × 1000 / peso_promedio_g)   (0 si peso <= 0)
    """
    if peso_promedio_g <= 0:
        return 0
    return _round_half_up(biomasa_kg * MIL / peso_promedio_g)


def calculate_poblacion_cosechada(cosecha_kg: Optional[Decimal], peso_promedio_g: Optional[Decimal]) -> int:
    """Organismos retirados en una cosecha; 0 si no hubo cosecha o no hay peso."""
    if cosecha_kg is None or cosecha_kg <= 0:
        return 0
    if peso_promedio_g is None or peso_promedio_g <= 0:
        return 0
    return _round_half_up(cosecha_kg * MIL / peso_promedio_g)


def calculate_supervivencia_pct(
    poblacion_estimada: int,
    poblacion_cosechada_acum: int,
    poblacion_inicial: Optional[int]
) -> Decimal:
    """
    Fórmula:
    supervivencia% = (poblacion_estimada + poblacion_cosechada_acum) / poblacion_inicial × 100

    Sin población inicial (0 o desconocida) => 0. No se recorta a 100.
    """
    if not poblacion_inicial:
        return CERO.quantize(Q_PCT)
    total = Decimal(poblacion_estimada + poblacion_cosechada_acum)
    return (total / Decimal(poblacion_inicial) * CIEN).quantize(Q_PCT)


def calculate_productividad(biomasa_kg: Decimal, cosecha_acum_kg: Decimal, superficie_m2: Decimal) -> Decimal:
    """
    Fórmula:
    productividad = (biomasa_kg + cosecha_acum_kg) / superficie
    """
    if superficie_m2 <= 0:
        return CERO.quantize(Q_PRODUCTIVIDAD)
    return ((biomasa_kg + cosecha_acum_kg) / superficie_m2).quantize(Q_PRODUCTIVIDAD)


def acumular_cosecha(
    cosecha_acum_anterior: Decimal,
    cosecha_semanal_kg: Decimal,
    cosecha_total_manual_kg: Optional[Decimal] = None
) -> Tuple[Decimal, Optional[DataQualityWarning]]:
    """
    Cosecha acumulada de la sesión.

    Un total capturado a mano es la base confiable y reemplaza la suma corrida,
    salvo que sea menor que lo ya acumulado (la serie nunca decrece): en ese caso
    se ignora y se devuelve una advertencia.
    """
    corrida = (cosecha_acum_anterior + cosecha_semanal_kg).quantize(Q_KG)
    if cosecha_total_manual_kg is None:
        return corrida, None
    if cosecha_total_manual_kg >= cosecha_acum_anterior:
        return cosecha_total_manual_kg.quantize(Q_KG), None
    return corrida, DataQualityWarning(
        code="cosecha_total_manual_inconsistente",
        message="El total manual de cosecha es menor que el acumulado previo; se usa la suma calculada",
        context={
            "cosecha_total_manual_kg": str(cosecha_total_manual_kg),
            "cosecha_acum_anterior_kg": str(cosecha_acum_anterior),
        },
    )


# ==================== MÉTRICAS DE SESIÓN ====================

def compute_session_metrics(
    current: SesionMuestreoData,
    previous: Optional[MetricasSesion],
    pond_area: Any,
    initial_population: Optional[int],
    last_weighed: Optional[MetricasSesion] = None
) -> MetricasSesion:
    """
    Calcula las métricas derivadas de `current` dada la sesión anterior de su
    cadena (ya calculada) o None si es la primera.

    Crecimiento y delta de biomasa se miden contra la última sesión con peso
    conocido (`last_weighed`; por defecto `previous` si tuvo peso). Sin esa
    referencia ambos valen 0.

    Los acumulados (población cosechada, cosecha en kg) se arrastran desde
    `previous`, así que recorrer la cadena en orden de fecha da la suma sobre
    todas las sesiones hasta la actual.
    """
    if pond_area is None:
        raise ValidationError("superficie_m2 es requerida", field="superficie_m2")
    superficie = _non_negative(pond_area, "superficie_m2")
    if initial_population is not None and initial_population < 0:
        raise ValidationError("poblacion_inicial no puede ser negativa", field="poblacion_inicial")

    cosecha_kg = _non_negative(current.cosecha_kg, "cosecha_kg")
    total_manual = _non_negative(current.cosecha_total_manual_kg, "cosecha_total_manual_kg")
    advertencias: List[DataQualityWarning] = []

    peso = calculate_peso_promedio(current)
    if peso is None:
        advertencias.append(DataQualityWarning(
            code="sin_peso",
            message="La sesión no tiene mediciones ni peso de laboratorio",
            context={"fecha": current.fecha.isoformat()},
        ))
    peso_g = peso if peso is not None else CERO.quantize(Q_PESO)

    biomasa = calculate_biomasa_kg(peso_g, superficie)
    poblacion = calculate_poblacion(biomasa, peso_g)

    referencia = last_weighed
    if referencia is None and previous is not None and previous.peso_medido:
        referencia = previous

    if referencia is None or peso is None:
        biomasa_delta = CERO.quantize(Q_KG)
        crecimiento = CERO.quantize(Q_PESO)
    else:
        biomasa_delta = (biomasa - referencia.biomasa_kg).quantize(Q_KG)
        crecimiento = (peso_g - referencia.peso_promedio_g).quantize(Q_PESO)

    pob_cosechada_prev = previous.poblacion_cosechada_acum if previous else 0
    pob_cosechada_acum = pob_cosechada_prev + calculate_poblacion_cosechada(cosecha_kg, peso)

    cosecha_semanal = (cosecha_kg or CERO).quantize(Q_KG)
    cosecha_acum_prev = previous.cosecha_acum_kg if previous else CERO
    cosecha_acum, aviso = acumular_cosecha(cosecha_acum_prev, cosecha_semanal, total_manual)
    if aviso:
        advertencias.append(aviso)

    supervivencia = calculate_supervivencia_pct(poblacion, pob_cosechada_acum, initial_population)
    if supervivencia > CIEN:
        advertencias.append(DataQualityWarning(
            code="supervivencia_mayor_100",
            message="La supervivencia supera 100%; revisar la población inicial",
            context={"supervivencia_pct": str(supervivencia), "poblacion_inicial": initial_population},
        ))

    return MetricasSesion(
        sesion_id=current.sesion_id,
        fecha=current.fecha,
        peso_promedio_g=peso_g,
        biomasa_kg=biomasa,
        biomasa_delta_kg=biomasa_delta,
        crecimiento_g=crecimiento,
        poblacion_estimada=poblacion,
        poblacion_cosechada_acum=pob_cosechada_acum,
        supervivencia_pct=supervivencia,
        semana_cultivo=current.semana_cultivo,
        cosecha_semanal_kg=cosecha_semanal,
        cosecha_acum_kg=cosecha_acum,
        productividad=calculate_productividad(biomasa, cosecha_acum, superficie),
        peso_medido=peso is not None,
        advertencias=advertencias,
    )


def compute_chain_metrics(
    sesiones: Sequence[SesionMuestreoData],
    pond_area: Any,
    initial_population: Optional[int]
) -> List[MetricasSesion]:
    """Métricas de toda una cadena, en orden de fecha."""
    resultado: List[MetricasSesion] = []
    previous: Optional[MetricasSesion] = None
    ultimo_pesado: Optional[MetricasSesion] = None
    for sesion in sort_chain(sesiones):
        previous = compute_session_metrics(sesion, previous, pond_area, initial_population, ultimo_pesado)
        if previous.peso_medido:
            ultimo_pesado = previous
        resultado.append(previous)
    return resultado
