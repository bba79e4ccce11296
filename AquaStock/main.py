import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from config.settings import settings
from api.router import api_router
from utils.errors import install_error_handlers
from utils.logging_config import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "AquaStock iniciado (corte de conciliación de cosechas: %s, lote de snapshots: %d)",
        settings.HARVEST_TRUST_CUTOVER_DATE, settings.SNAPSHOT_BATCH_SIZE,
    )
    yield


app = FastAPI(
    title="AquaStock API",
    description="Biomasa por muestreo, conciliación de cosechas e inventario proyectado por talla.",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)
app.include_router(api_router)

@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}
