from datetime import date, timedelta

from schemas.muestreo import SesionMuestreoData
from services.semana_cultivo_service import compute_culture_weeks, recompute_culture_weeks


def sesion(sesion_id, fecha, manual=None, almacenada=None, generacion_id=1):
    return SesionMuestreoData(
        sesion_id=sesion_id,
        estanque_id=1,
        generacion_id=generacion_id,
        fecha=fecha,
        semana_cultivo_manual=manual,
        semana_cultivo=almacenada,
    )


def test_sin_ancla_numera_desde_1_en_orden_de_fecha():
    sesiones = [
        sesion(3, date(2025, 11, 19)),
        sesion(1, date(2025, 11, 5)),
        sesion(2, date(2025, 11, 12)),
    ]
    resultado = recompute_culture_weeks(1, 1, sesiones)

    assert resultado.semanas == [1, 2, 3]
    assert resultado.ancla_sesion_id is None
    # la lista recibida no se reordena
    assert [s.sesion_id for s in sesiones] == [3, 1, 2]


def test_ancla_manual_renumera_antes_y_despues():
    sesiones = [
        sesion(1, date(2025, 11, 5)),
        sesion(2, date(2025, 11, 12), manual=8),
        sesion(3, date(2025, 11, 19)),
        sesion(4, date(2025, 11, 26)),
    ]
    resultado = recompute_culture_weeks(1, 1, sesiones)

    assert resultado.semanas == [7, 8, 9, 10]
    assert resultado.ancla_sesion_id == 2


def test_primer_manual_cronologico_gana():
    sesiones = [
        sesion(1, date(2025, 11, 5)),
        sesion(2, date(2025, 11, 12), manual=4),
        sesion(3, date(2025, 11, 19), manual=20),
    ]
    assert compute_culture_weeks(sesiones) == [3, 4, 5]


def test_incremento_de_uno_en_toda_la_cadena():
    inicio = date(2025, 9, 3)
    sesiones = [sesion(i, inicio + timedelta(weeks=i)) for i in range(8, 0, -1)]
    semanas = recompute_culture_weeks(1, 1, sesiones).semanas

    assert all(b - a == 1 for a, b in zip(semanas, semanas[1:]))


def test_reporta_solo_sesiones_con_valor_distinto():
    sesiones = [
        sesion(1, date(2025, 11, 5), almacenada=1),
        sesion(2, date(2025, 11, 12), manual=5, almacenada=2),
        sesion(3, date(2025, 11, 19), almacenada=6),
    ]
    resultado = recompute_culture_weeks(1, 1, sesiones)

    assert resultado.semanas == [4, 5, 6]
    assert resultado.total_cambios == 2
    assert [(c.sesion_id, c.semana_anterior, c.semana_nueva) for c in resultado.cambios] == [(1, 1, 4), (2, 2, 5)]


def test_ignora_otras_generaciones():
    sesiones = [
        sesion(1, date(2025, 11, 5)),
        sesion(2, date(2025, 11, 12), manual=30, generacion_id=2),
        sesion(3, date(2025, 11, 19)),
    ]
    resultado = recompute_culture_weeks(1, 1, sesiones)

    assert resultado.semanas == [1, 2]


def test_cadena_vacia():
    resultado = recompute_culture_weeks(1, 1, [])
    assert resultado.semanas == []
    assert resultado.total_cambios == 0
