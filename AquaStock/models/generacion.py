from __future__ import annotations

from datetime import datetime, date
from sqlalchemy import String, DateTime, Date, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from utils.db import Base, BigIntPK
from utils.datetime_utils import now_mazatlan


class Generacion(Base):
    """Generación (cohorte) sembrada en un estanque. Solo lectura para el núcleo."""
    __tablename__ = "generacion"

    generacion_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    codigo: Mapped[str] = mapped_column(String(20), nullable=False, index=True)  # G-64
    estanque_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("estanque.estanque_id"), nullable=False, index=True)
    poblacion_inicial: Mapped[int | None] = mapped_column(Integer)
    fecha_siembra: Mapped[date | None] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, nullable=False)

    estanque: Mapped["Estanque"] = relationship("Estanque", foreign_keys=[estanque_id])
