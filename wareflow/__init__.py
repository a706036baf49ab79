# wareflow/__init__.py

import logging
import os
from collections.abc import Mapping
from logging.handlers import RotatingFileHandler

from flask import Flask

from config import ProductionConfig, get_config
from wareflow.extensions import db, engine_options_for, migrate


def configure_logging(app):
    """Attach stdout or rotating-file handlers outside development."""
    if app.config.get('LOG_TO_STDOUT'):
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        app.logger.addHandler(stream_handler)
    elif not app.debug and not app.testing:
        if not os.path.exists('logs'):
            os.mkdir('logs')
        file_handler = RotatingFileHandler('logs/wareflow.log',
                                           maxBytes=10240000,
                                           backupCount=10)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s '
            '[in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

    # app.logger is the 'wareflow' logger, so module loggers propagate to it
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))


def create_app(config_class=None):
    """Application bootstrap owning configuration, logging and the store.

    Args:
        config_class: Config class, or a mapping of overrides applied on
            top of the environment's config class

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    if config_class is None or isinstance(config_class, Mapping):
        app.config.from_object(get_config())
        if config_class:
            app.config.from_mapping(config_class)
    else:
        app.config.from_object(config_class)

    # Force production config if FLASK_ENV is production
    if os.environ.get('FLASK_ENV') == 'production':
        app.config.from_object(ProductionConfig)

    configure_logging(app)
    app.logger.info('Wareflow startup')

    app.config.setdefault(
        'SQLALCHEMY_ENGINE_OPTIONS',
        engine_options_for(app.config['SQLALCHEMY_DATABASE_URI'], app.config)
    )

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db, render_as_batch=True)

    from wareflow.tasks import celery_init_app
    celery_init_app(app)

    # Register CLI commands
    from wareflow.cli import init_cli
    init_cli(app)

    with app.app_context():
        from wareflow import models  # noqa: F401
        if os.environ.get('FLASK_ENV') != 'production':
            # Production schemas are managed with `flask db upgrade`
            db.create_all()

    return app
