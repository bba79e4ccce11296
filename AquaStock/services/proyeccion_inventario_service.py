# services/proyeccion_inventario_service.py
"""
Inventario proyectado por talla comercial.

Para cada bloque en growout del planner:
1. Biomasa actual = población × peso promedio.
2. Peso semana a semana hasta la cosecha con una curva logística entre el peso
   actual y el peso esperado de cosecha.
3. Reparto de la biomasa en tallas comerciales (modelo de distribución de pesos).
4. Una fila de snapshot por (estanque, semana de plan, talla) con biomasa > 0.

Las semanas de plan inician en LUNES. No confundir con la semana de muestreo
(miércoles) de services/cosecha_semanal_service.py.
"""
from __future__ import annotations

import logging
import math
import threading
import time
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Sequence, Set

from config.settings import settings
from enums.enums import BloqueEstadoEnum, TallaComercialEnum
from schemas.snapshot import (
    BloquePlan, PlanInfo, RangoFechas, SnapshotGenerationOptions, SnapshotMetrics, SnapshotRow
)
from utils.datetime_utils import now_mazatlan, get_week_start, mondays_in_range
from utils.errors import ConfigurationError, PartialWriteError

logger = logging.getLogger(__name__)

Q_KG = Decimal("0.001")
Q_PESO = Decimal("0.001")


# ===================================
# TALLAS COMERCIALES
# ===================================

# (etiqueta, piezas/kg mín, piezas/kg máx), de la más chica a la más grande
TALLAS_COMERCIALES_RANGES = [
    ("61-70", 61, 70),
    ("51-60", 51, 60),
    ("41-50", 41, 50),
    ("31-40", 31, 40),
    ("31-35", 31, 35),
    ("26-30", 26, 30),
    ("21-25", 21, 25),
    ("16-20", 16, 20),
]

TALLAS_COMERCIALES = [talla.value for talla in TallaComercialEnum]

# Distribución simplificada alrededor de la talla promedio
DISTRIBUCIONES: Dict[str, Dict[str, Decimal]] = {
    "61-70": {"61-70": Decimal("0.7"), "51-60": Decimal("0.2"), "41-50": Decimal("0.1")},
    "51-60": {"61-70": Decimal("0.1"), "51-60": Decimal("0.6"), "41-50": Decimal("0.2"), "31-40": Decimal("0.1")},
    "41-50": {"51-60": Decimal("0.1"), "41-50": Decimal("0.6"), "31-40": Decimal("0.2"), "26-30": Decimal("0.1")},
    "31-40": {"41-50": Decimal("0.1"), "31-40": Decimal("0.6"), "26-30": Decimal("0.2"), "21-25": Decimal("0.1")},
    "31-35": {"31-40": Decimal("0.3"), "31-35": Decimal("0.5"), "26-30": Decimal("0.2")},
    "26-30": {"31-40": Decimal("0.1"), "26-30": Decimal("0.6"), "21-25": Decimal("0.2"), "16-20": Decimal("0.1")},
    "21-25": {"26-30": Decimal("0.1"), "21-25": Decimal("0.6"), "16-20": Decimal("0.3")},
    "16-20": {"21-25": Decimal("0.2"), "16-20": Decimal("0.8")},
}

DistribucionTallas = Callable[[Decimal], Dict[str, Decimal]]


def grams_to_size(peso_g: Decimal | float) -> str:
    """Peso por pieza (g) => talla comercial (piezas por kg)."""
    peso = float(peso_g)
    if peso <= 0:
        return "61-70"

    conteo_kg = round(1000 / peso)
    for label, minimo, maximo in TALLAS_COMERCIALES_RANGES:
        if minimo <= conteo_kg <= maximo:
            return label

    if conteo_kg > 70:
        return "61-70"  # más chico que el rango comercial
    if conteo_kg < 16:
        return "16-20"  # más grande que el rango comercial
    return "41-50"


def size_distribution(peso_g: Decimal | float) -> Dict[str, Decimal]:
    """Fracción de la población en cada talla para un peso promedio dado."""
    return DISTRIBUCIONES.get(grams_to_size(peso_g), {"41-50": Decimal("1")})


def biomass_by_size(
    biomasa_total_kg: Decimal,
    peso_promedio_g: Decimal,
    distribucion: DistribucionTallas = size_distribution
) -> Dict[str, Decimal]:
    """Biomasa por talla, en el orden de TALLAS_COMERCIALES."""
    fracciones = distribucion(peso_promedio_g)
    return {
        talla: (biomasa_total_kg * Decimal(str(fracciones[talla]))).quantize(Q_KG)
        for talla in TALLAS_COMERCIALES
        if talla in fracciones
    }


# ===================================
# CRECIMIENTO
# ===================================

def logistic_weight(
    peso_final: Decimal | float,
    semanas_transcurridas: float,
    ciclo_total_semanas: float,
    k: float = 0.5
) -> Decimal:
    """
    Curva logística de crecimiento:

        peso(t) = peso_final × sigmoid(k × (t × 12 − 6)),  t = transcurridas / ciclo_total

    Con el ciclo completo devuelve el peso final; nunca baja de 1 g.
    """
    final = float(peso_final)
    if ciclo_total_semanas <= 0 or semanas_transcurridas >= ciclo_total_semanas:
        return Decimal(str(final)).quantize(Q_PESO)

    t = max(0.0, semanas_transcurridas / ciclo_total_semanas)
    crecimiento = 1 / (1 + math.exp(-k * (t * 12 - 6)))
    return Decimal(str(max(1.0, final * crecimiento))).quantize(Q_PESO)


def week_start(value: date | datetime) -> date:
    """Lunes de la semana de plan de `value`."""
    return get_week_start(value)


def harvest_date_for_block(bloque: BloquePlan, hoy: date, ciclo_default: int) -> date:
    """Fecha de cosecha del bloque; si no está capturada, la deriva de las semanas restantes del ciclo."""
    if bloque.fecha_cosecha:
        return bloque.fecha_cosecha
    duracion = bloque.duracion_semanas or ciclo_default
    restantes = max(0, duracion - (bloque.semana_inicio or 0))
    return hoy + timedelta(weeks=restantes)


def projected_weight(
    bloque: BloquePlan,
    semanas_adelante: int,
    k: float,
    ciclo_default: int
) -> Decimal:
    """
    Peso esperado del bloque `semanas_adelante` semanas después de hoy.

    Sin peso de cosecha esperado no hay curva: se usa el peso actual. Con él,
    la curva logística nunca devuelve menos que el último peso muestreado.
    """
    peso_actual = Decimal(str(bloque.peso_promedio_g))
    if not bloque.peso_cosecha_g or semanas_adelante <= 0:
        return peso_actual.quantize(Q_PESO)

    transcurridas = (bloque.semana_inicio or 0) + semanas_adelante
    duracion = bloque.duracion_semanas or ciclo_default
    return max(peso_actual, logistic_weight(bloque.peso_cosecha_g, transcurridas, duracion, k)).quantize(Q_PESO)


# ===================================
# COLABORADORES
# ===================================

class PlanStore(Protocol):
    def get_plan(self, plan_id: int) -> Optional[PlanInfo]: ...

    def list_blocks(self, plan_id: int, version_id: Optional[str] = None) -> List[BloquePlan]: ...


class SnapshotStore(Protocol):
    def delete_range(self, plan_id: int, start: date, end: date, version_id: Optional[str] = None) -> int: ...

    def batch_insert(self, rows: Sequence[SnapshotRow]) -> int: ...

    def batch_update(self, rows: Sequence[SnapshotRow]) -> int: ...

    def existing_keys(self, plan_id: int, start: date, end: date, version_id: Optional[str] = None) -> Set[tuple]: ...

    def delete_keys(self, plan_id: int, keys: Set[tuple]) -> int: ...

    def query_latest(self, plan_id: int) -> Optional[datetime]: ...

    def count(self, plan_id: int) -> int: ...

    def delete_older_than(self, plan_id: int, cutoff: datetime) -> int: ...


# Escrituras de snapshots serializadas por plan (borrar-y-luego-insertar)
_plan_locks: Dict[int, threading.Lock] = {}
_plan_locks_guard = threading.Lock()


@contextmanager
def plan_write_lock(plan_id: int) -> Iterator[None]:
    with _plan_locks_guard:
        lock = _plan_locks.setdefault(plan_id, threading.Lock())
    with lock:
        yield


def default_date_range(hoy: date, weeks_back: int, weeks_ahead: int) -> RangoFechas:
    return RangoFechas(start=hoy - timedelta(weeks=weeks_back), end=hoy + timedelta(weeks=weeks_ahead))


# ===================================
# GENERADOR
# ===================================

class InventorySnapshotGenerator:
    """
    Genera los snapshots de inventario proyectado de un plan.

    La escritura va en lotes de `batch_size`. Si un lote falla se aborta el
    resto de la corrida y los lotes previos quedan confirmados (PartialWriteError).
    Con force_regenerate la corrida es borrar-rango-e-insertar, segura de repetir.
    """

    def __init__(
            self,
            plan_store: PlanStore,
            snapshot_store: SnapshotStore,
            *,
            batch_size: Optional[int] = None,
            growth_rate_k: Optional[float] = None,
            default_cycle_weeks: Optional[int] = None,
            distribucion: DistribucionTallas = size_distribution,
            reloj: Callable[[], datetime] = now_mazatlan,
    ):
        self.plan_store = plan_store
        self.snapshot_store = snapshot_store
        self.batch_size = batch_size or settings.SNAPSHOT_BATCH_SIZE
        self.k = growth_rate_k if growth_rate_k is not None else settings.GROWTH_RATE_K
        self.default_cycle_weeks = default_cycle_weeks or settings.DEFAULT_CYCLE_WEEKS
        self.distribucion = distribucion
        self.reloj = reloj

    # ---------- helpers ----------

    def _validated_plan(self, plan_id: int) -> PlanInfo:
        plan = self.plan_store.get_plan(plan_id)
        if plan is None:
            raise ConfigurationError(f"Plan no encontrado: {plan_id}", plan_id=plan_id)
        if not plan.activo:
            raise ConfigurationError(f"El plan no está activo: {plan.nombre}", plan_id=plan_id)
        return plan

    def default_date_range(self) -> RangoFechas:
        return default_date_range(
            self.reloj().date(),
            settings.SNAPSHOT_HORIZON_WEEKS_BACK,
            settings.SNAPSHOT_HORIZON_WEEKS_AHEAD,
        )

    def project_block(
            self,
            plan_id: int,
            bloque: BloquePlan,
            semanas: Sequence[date],
            generado_en: datetime
    ) -> List[SnapshotRow]:
        """Filas de snapshot de un bloque para las semanas de plan dadas."""
        hoy = generado_en.date()
        semana_actual = week_start(hoy)
        semana_cosecha = week_start(harvest_date_for_block(bloque, hoy, self.default_cycle_weeks))
        poblacion = Decimal(bloque.poblacion)

        rows: List[SnapshotRow] = []
        for semana in semanas:
            if semana > semana_cosecha:
                break
            semanas_adelante = max(0, (semana - semana_actual).days // 7)
            peso = projected_weight(bloque, semanas_adelante, self.k, self.default_cycle_weeks)
            biomasa_total = (poblacion * peso / Decimal("1000")).quantize(Q_KG)

            for talla, biomasa_kg in biomass_by_size(biomasa_total, peso, self.distribucion).items():
                if biomasa_kg <= 0:
                    continue
                rows.append(SnapshotRow(
                    plan_id=plan_id,
                    version_id=bloque.version_id,
                    estanque_id=bloque.estanque_id,
                    fecha_semana=semana,
                    talla_comercial=talla,
                    inventario_total_kg=biomasa_kg,
                    source_block_id=bloque.plan_bloque_id,
                    block_info={
                        "estanque_id": bloque.estanque_id,
                        "generacion_codigo": bloque.generacion_codigo,
                        "poblacion": bloque.poblacion,
                        "peso_promedio_g": float(bloque.peso_promedio_g),
                        "peso_proyectado_g": float(peso),
                        "densidad": float(bloque.densidad) if bloque.densidad is not None else None,
                        "semana_cosecha": semana_cosecha.isoformat(),
                    },
                    snapshot_date=generado_en,
                ))
        return rows

    def build_rows(
            self,
            plan_id: int,
            bloques: Sequence[BloquePlan],
            semanas: Sequence[date],
            generado_en: datetime
    ) -> List[SnapshotRow]:
        rows: List[SnapshotRow] = []
        growout = [b for b in bloques if (b.estado or "").lower() == BloqueEstadoEnum.growout.value]
        logger.info("Plan %s: %d bloques en growout de %d", plan_id, len(growout), len(bloques))

        for bloque in growout:
            if not bloque.poblacion or bloque.poblacion <= 0:
                logger.info("Plan %s: se omite bloque %s sin población", plan_id, bloque.plan_bloque_id)
                continue
            if not bloque.peso_promedio_g or bloque.peso_promedio_g <= 0:
                logger.warning("Plan %s: se omite bloque %s sin peso promedio", plan_id, bloque.plan_bloque_id)
                continue
            rows.extend(self.project_block(plan_id, bloque, semanas, generado_en))
        return rows

    def _write_batches(
            self,
            rows: Sequence[SnapshotRow],
            writer: Callable[[Sequence[SnapshotRow]], int],
            label: str,
            progreso: Dict[str, int]
    ) -> None:
        for i in range(0, len(rows), self.batch_size):
            batch = rows[i:i + self.batch_size]
            try:
                escritas = writer(batch)
            except Exception as exc:
                logger.error("Falló el lote %d (%s): %s", i // self.batch_size + 1, label, exc)
                raise PartialWriteError(
                    f"Falló la escritura del lote {i // self.batch_size + 1} de snapshots: {exc}",
                    created=progreso["created"],
                    updated=progreso["updated"],
                    deleted=progreso["deleted"],
                ) from exc
            progreso[label] += escritas
            logger.debug("Lote %d (%s): %d registros", i // self.batch_size + 1, label, escritas)

    # ---------- API pública ----------

    def generate_snapshots(self, options: SnapshotGenerationOptions) -> SnapshotMetrics:
        inicio = time.monotonic()
        plan_id = options.plan_id
        plan = self._validated_plan(plan_id)
        logger.info("Generando snapshots del plan %s (%s)", plan_id, plan.nombre)

        rango = options.date_range or self.default_date_range()
        semanas = mondays_in_range(rango.start, rango.end)
        progreso = {"created": 0, "updated": 0, "deleted": 0}

        with plan_write_lock(plan_id):
            if options.force_regenerate and semanas:
                progreso["deleted"] = self.snapshot_store.delete_range(
                    plan_id, semanas[0], rango.end, options.version_id
                )
                logger.info("Plan %s: %d snapshots borrados del rango", plan_id, progreso["deleted"])

            bloques = self.plan_store.list_blocks(plan_id, options.version_id)
            rows = self.build_rows(plan_id, bloques, semanas, self.reloj())

            if options.force_regenerate or not semanas:
                nuevas, existentes = list(rows), []
            else:
                claves = self.snapshot_store.existing_keys(plan_id, semanas[0], rango.end, options.version_id)
                candidatas = {r.key for r in rows}
                # Filas que la proyección actual ya no produce (p. ej. la talla cambió)
                obsoletas = claves - candidatas
                if obsoletas:
                    progreso["deleted"] = self.snapshot_store.delete_keys(plan_id, obsoletas)
                    logger.info("Plan %s: %d snapshots obsoletos borrados", plan_id, progreso["deleted"])
                nuevas = [r for r in rows if r.key not in claves]
                existentes = [r for r in rows if r.key in claves]

            self._write_batches(nuevas, self.snapshot_store.batch_insert, "created", progreso)
            self._write_batches(existentes, self.snapshot_store.batch_update, "updated", progreso)

        metrics = SnapshotMetrics(
            generation_time_ms=int((time.monotonic() - inicio) * 1000),
            snapshots_created=progreso["created"],
            snapshots_updated=progreso["updated"],
            snapshots_deleted=progreso["deleted"],
            data_source_records=len(bloques),
        )
        logger.info("Plan %s: snapshots generados %s", plan_id, metrics.model_dump())
        return metrics
