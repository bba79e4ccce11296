from sqlalchemy import BigInteger, Integer, create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from config.settings import settings

# SQLite (desarrollo local) no comparte conexiones entre hilos por defecto
_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    pool_recycle=3600,
    connect_args=_connect_args,
    future=True,
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

# BIGINT en MySQL; INTEGER en SQLite para que el autoincremento funcione
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


def get_db():
    """Sesión por request para los routers (Depends)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
