from __future__ import annotations

from datetime import datetime, date
from sqlalchemy import (
    Date, DateTime, ForeignKey, String, Numeric, Integer, JSON, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from utils.db import Base, BigIntPK
from utils.datetime_utils import now_mazatlan


class SesionMuestreo(Base):
    """
    Una sesión de muestreo por (estanque, generación, fecha).

    Las columnas de la sección "Métricas derivadas" son caché: se recalculan
    para toda la cadena cada vez que se agrega o corrige una sesión.
    """
    __tablename__ = "sesion_muestreo"
    __table_args__ = (
        Index("ix_sesion_muestreo_cadena", "estanque_id", "generacion_id", "fecha"),
    )

    sesion_muestreo_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    estanque_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("estanque.estanque_id"), nullable=False)
    generacion_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("generacion.generacion_id"), nullable=False)
    fecha: Mapped[date] = mapped_column(Date, nullable=False)

    # Captura
    mediciones: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # gramos, en orden de lance
    peso_promedio_lab_g: Mapped[float | None] = mapped_column(Numeric(8, 3))
    cosecha_kg: Mapped[float | None] = mapped_column(Numeric(14, 3))
    cosecha_total_manual_kg: Mapped[float | None] = mapped_column(Numeric(14, 3))
    semana_cultivo_manual: Mapped[int | None] = mapped_column(Integer)
    notas: Mapped[str | None] = mapped_column(String(255))

    # Métricas derivadas
    peso_promedio_g: Mapped[float | None] = mapped_column(Numeric(8, 3))
    biomasa_kg: Mapped[float | None] = mapped_column(Numeric(14, 3))
    biomasa_delta_kg: Mapped[float | None] = mapped_column(Numeric(14, 3))
    crecimiento_g: Mapped[float | None] = mapped_column(Numeric(8, 3))
    poblacion_estimada: Mapped[int | None] = mapped_column(Integer)
    poblacion_cosechada_acum: Mapped[int | None] = mapped_column(Integer)
    supervivencia_pct: Mapped[float | None] = mapped_column(Numeric(7, 2))
    semana_cultivo: Mapped[int | None] = mapped_column(Integer)
    cosecha_semanal_kg: Mapped[float | None] = mapped_column(Numeric(14, 3))
    cosecha_acum_kg: Mapped[float | None] = mapped_column(Numeric(14, 3))
    productividad: Mapped[float | None] = mapped_column(Numeric(10, 4))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        default=now_mazatlan,
        onupdate=now_mazatlan,
        nullable=False
    )

    # Relationships
    estanque: Mapped["Estanque"] = relationship("Estanque", foreign_keys=[estanque_id])
    generacion: Mapped["Generacion"] = relationship("Generacion", foreign_keys=[generacion_id])


class MuestreoEditLog(Base):
    """Bitácora de correcciones manuales sobre una sesión de muestreo."""
    __tablename__ = "muestreo_edit_log"

    muestreo_edit_log_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    sesion_muestreo_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("sesion_muestreo.sesion_muestreo_id", ondelete="CASCADE"), nullable=False, index=True
    )

    campo: Mapped[str] = mapped_column(String(40), nullable=False)
    valor_anterior: Mapped[str | None] = mapped_column(String(500))
    valor_nuevo: Mapped[str | None] = mapped_column(String(500))
    motivo: Mapped[str] = mapped_column(String(255), nullable=False)

    changed_by: Mapped[str | None] = mapped_column(String(120))
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, nullable=False)

    sesion: Mapped["SesionMuestreo"] = relationship("SesionMuestreo", foreign_keys=[sesion_muestreo_id])
