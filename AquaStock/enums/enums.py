from enum import Enum

# =====================================================
# 🧱 INFRAESTRUCTURA Y ESTANQUES
# =====================================================
class EstanqueStatusEnum(str, Enum):
    i = "i"  # Inactivo
    a = "a"  # Activo
    c = "c"  # Cerrado
    m = "m"  # Mantenimiento


# =====================================================
# 🗓️ PLANNER
# =====================================================
class BloqueEstadoEnum(str, Enum):
    preparacion = "preparacion"
    siembra = "siembra"
    growout = "growout"  # Único estado que se proyecta a inventario
    cosecha = "cosecha"


# =====================================================
# 🦐 TALLAS COMERCIALES (piezas por kg, de menor a mayor talla)
# =====================================================
class TallaComercialEnum(str, Enum):
    t61_70 = "61-70"
    t51_60 = "51-60"
    t41_50 = "41-50"
    t31_40 = "31-40"
    t31_35 = "31-35"
    t26_30 = "26-30"
    t21_25 = "21-25"
    t16_20 = "16-20"


# =====================================================
# 📝 AUDITORÍA DE MUESTREOS
# =====================================================
class MuestreoCampoEditableEnum(str, Enum):
    mediciones = "mediciones"
    peso_promedio_lab_g = "peso_promedio_lab_g"
    cosecha_kg = "cosecha_kg"
    cosecha_total_manual_kg = "cosecha_total_manual_kg"
    semana_cultivo_manual = "semana_cultivo_manual"
    fecha = "fecha"
