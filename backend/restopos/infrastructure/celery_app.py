"""
Configuración de Celery para la cola de impresión
"""
from celery import Celery

from ..config import settings

celery_app = Celery(
    "restopos",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["restopos.infrastructure.print_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="America/Lima",
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_time_limit=60,
    task_soft_time_limit=45,
    result_expires=3600,
    task_routes={
        "restopos.infrastructure.print_tasks.*": {"queue": "printing"},
    },
)
