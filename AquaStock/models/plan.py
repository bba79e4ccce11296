from __future__ import annotations

from datetime import datetime, date
from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, String, Numeric, Integer
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from utils.db import Base, BigIntPK
from utils.datetime_utils import now_mazatlan
from enums.enums import BloqueEstadoEnum


class PlanInventario(Base):
    """Plan del planner de estanques. Los snapshots se generan por plan."""
    __tablename__ = "plan_inventario"

    plan_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    nombre: Mapped[str] = mapped_column(String(120), nullable=False)
    activo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, onupdate=now_mazatlan, nullable=False)

    bloques: Mapped[list["PlanBloque"]] = relationship(
        "PlanBloque", back_populates="plan", cascade="all, delete-orphan"
    )


class PlanBloque(Base):
    """
    Un bloque del planner: una generación ocupando un estanque dentro de una
    versión del plan. Solo los bloques en growout alimentan el inventario proyectado.
    """
    __tablename__ = "plan_bloque"

    plan_bloque_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("plan_inventario.plan_id", ondelete="CASCADE"), nullable=False, index=True)
    version_id: Mapped[str | None] = mapped_column(String(40), index=True)
    estanque_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("estanque.estanque_id"), nullable=False)
    generacion_codigo: Mapped[str | None] = mapped_column(String(20))

    estado: Mapped[str] = mapped_column(String(20), nullable=False, default=BloqueEstadoEnum.growout.value)
    poblacion: Mapped[int | None] = mapped_column(Integer)
    peso_promedio_g: Mapped[float | None] = mapped_column(Numeric(8, 3))
    densidad: Mapped[float | None] = mapped_column(Numeric(10, 4))

    semana_inicio: Mapped[int | None] = mapped_column(Integer)  # semana de cultivo actual del bloque
    duracion_semanas: Mapped[int | None] = mapped_column(Integer)
    fecha_cosecha: Mapped[date | None] = mapped_column(Date)
    peso_cosecha_g: Mapped[float | None] = mapped_column(Numeric(8, 3))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, onupdate=now_mazatlan, nullable=False)

    plan: Mapped["PlanInventario"] = relationship("PlanInventario", back_populates="bloques")
