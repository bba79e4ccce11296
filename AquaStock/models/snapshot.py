from __future__ import annotations

from datetime import datetime, date
from sqlalchemy import (
    Date, DateTime, ForeignKey, String, Numeric, JSON, Index
)
from sqlalchemy.orm import Mapped, mapped_column

from utils.db import Base, BigIntPK
from utils.datetime_utils import now_mazatlan


class SnapshotInventario(Base):
    """
    Inventario proyectado por (plan, estanque, semana de plan, talla comercial).
    `fecha_semana` siempre es lunes.
    """
    __tablename__ = "projected_inventory_snapshot"
    __table_args__ = (
        Index("ix_snapshot_plan_semana", "plan_id", "fecha_semana"),
        Index("ix_snapshot_plan_generado", "plan_id", "snapshot_date"),
    )

    snapshot_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("plan_inventario.plan_id", ondelete="CASCADE"), nullable=False)
    version_id: Mapped[str | None] = mapped_column(String(40))
    estanque_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("estanque.estanque_id"), nullable=False)
    fecha_semana: Mapped[date] = mapped_column(Date, nullable=False)
    talla_comercial: Mapped[str] = mapped_column(String(10), nullable=False)
    inventario_total_kg: Mapped[float] = mapped_column(Numeric(14, 3), nullable=False)

    source_block_id: Mapped[int | None] = mapped_column(BigIntPK)
    block_info: Mapped[dict | None] = mapped_column(JSON)
    snapshot_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, nullable=False)
