from celery import Celery
from celery.schedules import crontab
from config.settings import settings

app = Celery(
    'aquastock',
    broker=settings.REDIS_URL or 'redis://localhost:6380/0',
    backend=settings.REDIS_URL or 'redis://localhost:6380/0',
    include=['workers.tasks'],
)

app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='America/Mazatlan',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutos hard limit
    task_soft_time_limit=25 * 60,  # 25 minutos soft timeout
    # Cola dedicada; el worker que la consume corre con concurrency=1
    task_routes={
        'workers.tasks.generar_snapshots_plan': {'queue': 'snapshots'},
        'workers.tasks.regenerar_planes_stale': {'queue': 'snapshots'},
        'workers.tasks.limpiar_snapshots_antiguos': {'queue': 'snapshots'},
    },
    beat_schedule={
        'regenerar-planes-stale': {
            'task': 'workers.tasks.regenerar_planes_stale',
            'schedule': crontab(minute=0),
        },
        'limpiar-snapshots-antiguos': {
            'task': 'workers.tasks.limpiar_snapshots_antiguos',
            'schedule': crontab(minute=30, hour=3),
        },
    },
)
