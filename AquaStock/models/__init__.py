# models/__init__.py
from utils.db import Base  # re-export
from .pond import Estanque
from .generacion import Generacion
from .muestreo import SesionMuestreo, MuestreoEditLog
from .harvest import Cosecha, CosechaEstanque
from .plan import PlanInventario, PlanBloque
from .snapshot import SnapshotInventario
