# models/harvest.py
from __future__ import annotations

from datetime import datetime, date
from sqlalchemy import (
    Date, DateTime, ForeignKey, String, Numeric, JSON
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from utils.db import Base, BigIntPK
from utils.datetime_utils import now_mazatlan


class Cosecha(Base):
    """Libro de cosechas (externo). Una cosecha puede abarcar varios estanques."""
    __tablename__ = "cosecha"

    cosecha_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    folio: Mapped[str | None] = mapped_column(String(40), index=True)
    fecha_cosecha: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    tallas: Mapped[dict | None] = mapped_column(JSON)  # {"21-25": 120.5, ...} kg por talla

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, nullable=False)

    # Relationships
    estanques: Mapped[list["CosechaEstanque"]] = relationship(
        "CosechaEstanque", back_populates="cosecha", cascade="all, delete-orphan"
    )


class CosechaEstanque(Base):
    """
    Desglose por estanque de una cosecha.

    `estanque_id` es la llave explícita. Los registros históricos solo traen
    `nombre_estanque` en texto libre; ver canonicalize_pond_id.
    """
    __tablename__ = "cosecha_estanque"

    cosecha_estanque_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    cosecha_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("cosecha.cosecha_id", ondelete="CASCADE"), nullable=False, index=True)
    estanque_id: Mapped[int | None] = mapped_column(BigIntPK, ForeignKey("estanque.estanque_id"), index=True)
    nombre_estanque: Mapped[str | None] = mapped_column(String(120))
    peso_kg: Mapped[float] = mapped_column(Numeric(14, 3), nullable=False)

    # Relationships
    cosecha: Mapped["Cosecha"] = relationship("Cosecha", back_populates="estanques")
