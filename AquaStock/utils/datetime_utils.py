"""
Utilidades centralizadas para manejo de fechas y timestamps.
Todas las operaciones usan America/Mazatlan como zona horaria de referencia.

Convención del sistema:
- Si un datetime llega **naive** (sin tzinfo), se interpreta como **hora de Mazatlán**.
- Si un datetime llega **aware** (con tzinfo), se convierte a **Mazatlán** y se
  persiste como naive en Mazatlán (sin tzinfo).

Dos convenciones de semana conviven en el sistema y NO deben mezclarse:
- Semana de plan: lunes a domingo (snapshots de inventario proyectado).
- Semana de muestreo: miércoles a martes (conciliación de cosechas, ver
  services/cosecha_semanal_service.py).
"""
from datetime import datetime, date, timedelta
from zoneinfo import ZoneInfo

MAZATLAN_TZ = ZoneInfo("America/Mazatlan")


def now_mazatlan() -> datetime:
    """
    Retorna el datetime actual en zona horaria de Mazatlán (naive para MySQL DATETIME).
    """
    return datetime.now(MAZATLAN_TZ).replace(tzinfo=None, microsecond=0)


def today_mazatlan() -> date:
    """
    Retorna la fecha actual (date) en zona horaria de Mazatlán.
    """
    return datetime.now(MAZATLAN_TZ).date()


def to_mazatlan_naive(dt: datetime) -> datetime:
    """
    Normaliza un datetime a hora de Mazatlán SIN tzinfo (naive) para persistencia.

    Regla:
    - Si dt es NAIVE (tzinfo=None) => se interpreta como hora de **Mazatlán** y
      se devuelve tal cual (limpiando microsegundos).
    - Si dt es AWARE => se convierte a Mazatlán y se devuelve sin tzinfo.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=None, microsecond=0)
    return dt.astimezone(MAZATLAN_TZ).replace(tzinfo=None, microsecond=0)


def as_date(value: date | datetime) -> date:
    """Reduce un datetime a su fecha; un date se devuelve igual."""
    if isinstance(value, datetime):
        return to_mazatlan_naive(value).date()
    return value


def get_week_start(value: date | datetime) -> date:
    """
    Lunes que inicia la semana calendario (semana de plan).
    """
    d = as_date(value)
    return d - timedelta(days=d.weekday())


def mondays_in_range(start: date, end: date) -> list[date]:
    """
    Lunes de cada semana entre start y end (inclusive).
    El primer elemento es el lunes de la semana de start aunque caiga antes de start.
    """
    weeks: list[date] = []
    current = get_week_start(start)
    while current <= end:
        weeks.append(current)
        current += timedelta(days=7)
    return weeks
