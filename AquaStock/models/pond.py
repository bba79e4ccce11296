from __future__ import annotations

from datetime import datetime
from sqlalchemy import String, DateTime, Numeric, CHAR, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from utils.db import Base, BigIntPK
from utils.datetime_utils import now_mazatlan
from enums.enums import EstanqueStatusEnum

class Estanque(Base):
    """Registro de estanques. Lo administra un sistema externo; aquí solo se lee."""
    __tablename__ = "estanque"

    estanque_id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    nombre: Mapped[str] = mapped_column(String(120), nullable=False)
    codigo: Mapped[str | None] = mapped_column(String(20))  # EST-05
    superficie_m2: Mapped[float] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(CHAR(1), default=EstanqueStatusEnum.a.value, nullable=False)
    is_vigente: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=now_mazatlan, onupdate=now_mazatlan, nullable=False)
