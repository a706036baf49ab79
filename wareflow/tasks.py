# wareflow/tasks.py

import logging
from celery import Celery, Task, shared_task
from flask import current_app

from wareflow.services import TransferService

logger = logging.getLogger(__name__)


def celery_init_app(app):
    """Create the Celery app for a Flask app and register it as an extension.

    Tasks run inside an application context of the Flask app, so they get
    their own database session and read settings from app.config. CELERY_*
    settings come from the CELERY mapping in the Flask config.
    """
    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app = Celery(app.name, task_cls=FlaskTask)
    celery_app.config_from_object(app.config['CELERY'])
    celery_app.set_default()
    app.extensions['celery'] = celery_app
    return celery_app


@shared_task(ignore_result=False)
def run_transition(verb, request_id, actor, comment=None):
    """Apply one lifecycle step to a stored transfer request in a worker.

    Returns:
        dict: Request id and its new status
    """
    request = TransferService.from_config(current_app.config).transition(
        verb, request_id, actor, comment
    )
    logger.info(f"Background {verb} of {request_id} finished: {request.status.value}")
    return {'id': request.id, 'status': request.status.value}
