# utils/transactions.py
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from utils.db import SessionLocal

logger = logging.getLogger(__name__)


@contextmanager
def uow(session: Optional[Session] = None, label: str = "uow") -> Iterator[Session]:
    """
    Unidad de trabajo: commit al salir, rollback ante cualquier excepción.

        with uow(db, label="cadena 3/12"):
            ...

    Si no se pasa sesión se abre (y se cierra) una propia. El recálculo de una
    cadena (estanque, generación) corre completo dentro de un mismo uow, así que
    ningún lector ve una cadena renumerada a medias.
    """
    owns_session = session is None
    db = session or SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning("Rollback de %s: %s", label, exc)
        raise
    finally:
        if owns_session:
            db.close()
