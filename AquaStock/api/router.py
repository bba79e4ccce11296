from fastapi import APIRouter
from .muestreos import router as muestreos_router
from .cosechas import router as cosechas_router
from .snapshots import router as snapshots_router

api_router = APIRouter()
api_router.include_router(muestreos_router)
api_router.include_router(cosechas_router)
api_router.include_router(snapshots_router)
