# wareflow/extensions.py

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy.engine.url import make_url


def engine_options_for(uri, config):
    """Build SQLAlchemy engine options suited to the configured database.

    Args:
        uri: Database URL from SQLALCHEMY_DATABASE_URI
        config: Mapping holding optional pool settings

    Returns:
        dict: Options for SQLALCHEMY_ENGINE_OPTIONS
    """
    url = make_url(uri)

    # Common options safe for all databases
    options = {
        'pool_pre_ping': True,
    }

    if url.drivername.startswith('sqlite'):
        return options

    # Pool sizing only applies to server databases
    options.update({
        'pool_size': config.get('SQLALCHEMY_POOL_SIZE', 10),
        'pool_recycle': config.get('SQLALCHEMY_POOL_RECYCLE', 300),
        'pool_timeout': config.get('SQLALCHEMY_POOL_TIMEOUT', 20),
        'max_overflow': config.get('SQLALCHEMY_MAX_OVERFLOW', 5),
    })

    if url.drivername.startswith('postgresql'):
        options['connect_args'] = {
            'connect_timeout': config.get('SQLALCHEMY_CONNECT_TIMEOUT', 10),
            'keepalives': 1,
            'keepalives_idle': 30,
            'keepalives_interval': 10,
            'keepalives_count': 5
        }
    elif url.drivername.startswith('mysql'):
        options['connect_args'] = {
            'connect_timeout': config.get('SQLALCHEMY_CONNECT_TIMEOUT', 10)
        }

    return options


# Initialize Flask extensions
db = SQLAlchemy()
migrate = Migrate()
