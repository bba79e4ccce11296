from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import IntegrityError


# =====================================================
# Taxonomía de errores del dominio
# =====================================================

class AquaStockError(Exception):
    """Base de los errores del dominio."""
    code = "aquastock_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(AquaStockError):
    """Entrada estructuralmente inválida (área o conteos negativos). Aborta solo la operación actual."""
    code = "validation_error"


class ConfigurationError(AquaStockError):
    """Plan inexistente o inactivo. Aborta la generación antes de cualquier escritura."""
    code = "configuration_error"


class PartialWriteError(AquaStockError):
    """
    Falló un lote a mitad de corrida. Los lotes ya confirmados NO se revierten;
    `created` y `updated` reportan lo que sí quedó escrito.
    """
    code = "partial_write_error"

    def __init__(self, message: str, *, created: int = 0, updated: int = 0, deleted: int = 0, **context: Any):
        super().__init__(message, **context)
        self.created = created
        self.updated = updated
        self.deleted = deleted


class DataQualityWarning(BaseModel):
    """
    Hallazgo de calidad de datos. Se devuelve como dato estructurado, nunca se lanza.
    """
    code: str
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


# =====================================================
# Handlers HTTP
# =====================================================

def _normalize_errors(errs):
    norm = []
    for e in errs:
        e = dict(e)
        val = e.get("input")
        if isinstance(val, (bytes, bytearray)):
            e["input"] = val.decode("utf-8", errors="ignore")
        norm.append(e)
    return norm


def install_error_handlers(app: FastAPI):
    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "validation_error", "detail": _normalize_errors(exc.errors())},
        )

    @app.exception_handler(IntegrityError)
    async def integrity_handler(request: Request, exc: IntegrityError):
        return JSONResponse(status_code=409, content={"error": "conflict", "detail": str(exc.orig)})

    @app.exception_handler(ValidationError)
    async def domain_validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"error": exc.code, "detail": exc.message})

    @app.exception_handler(ConfigurationError)
    async def configuration_handler(request: Request, exc: ConfigurationError):
        return JSONResponse(status_code=409, content={"error": exc.code, "detail": exc.message})

    @app.exception_handler(PartialWriteError)
    async def partial_write_handler(request: Request, exc: PartialWriteError):
        return JSONResponse(
            status_code=500,
            content={
                "error": exc.code,
                "detail": exc.message,
                "snapshots_created": exc.created,
                "snapshots_updated": exc.updated,
                "snapshots_deleted": exc.deleted,
            },
        )
