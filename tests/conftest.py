import os
import tempfile
import pytest
from wareflow import create_app
from wareflow.extensions import db
from wareflow.models import User, Warehouse, InventoryItem


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    # Create a temporary file to isolate the database for each test
    db_fd, db_path = tempfile.mkstemp()

    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'LOG_TO_STDOUT': False,
        'TRANSFER_MAX_RETRIES': 3,
        'CELERY': {
            'broker_url': 'memory://',
            'result_backend': 'cache+memory://',
            'task_always_eager': True,
            'task_eager_propagates': True
        }
    })

    # Create the database and load test data
    with app.app_context():
        db.create_all()
        init_test_data()

    yield app

    with app.app_context():
        db.engine.dispose()

    # Close and remove the temporary database
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


def init_test_data():
    """Initialize test data."""
    owner = User(username='owner', name='Carlos Rodriguez', role='owner')
    main_manager = User(username='main.manager', name='Maria Gonzalez', role='manager')
    north_manager = User(username='north.manager', name='Jose Martinez', role='manager')
    clerk = User(username='clerk', name='Ana Lopez', role='staff')
    db.session.add_all([owner, main_manager, north_manager, clerk])

    main = Warehouse(code='wh-001', name='Main Warehouse', location='Havana Central', manager=main_manager)
    north = Warehouse(code='wh-002', name='North Branch', location='Havana North', manager=north_manager)
    south = Warehouse(code='wh-003', name='South Branch', location='Havana South')
    db.session.add_all([main, north, south])

    # Item ids follow insertion order: 1..4
    db.session.add_all([
        InventoryItem(
            product_id='P1', sku='RICE-5KG', product_name='Rice 5kg', category='Grains',
            unit='kg', current_stock=150, reserved_stock=25, min_threshold=50,
            max_threshold=300, cost_price=45.5, selling_price=55.0, warehouse=main
        ),
        InventoryItem(
            product_id='P2', sku='OIL-1L', product_name='Cooking Oil 1L', category='Oils',
            unit='l', current_stock=35, reserved_stock=10, min_threshold=40,
            max_threshold=120, cost_price=85.0, selling_price=95.0, warehouse=main
        ),
        InventoryItem(
            product_id='P3', sku='BEANS-1KG', product_name='Black Beans 1kg', category='Legumes',
            unit='kg', current_stock=0, reserved_stock=0, min_threshold=30,
            max_threshold=200, cost_price=25.0, selling_price=32.0, warehouse=main
        ),
        InventoryItem(
            product_id='P1', sku='RICE-5KG', product_name='Rice 5kg', category='Grains',
            unit='kg', current_stock=20, reserved_stock=0, min_threshold=10,
            max_threshold=100, cost_price=45.5, selling_price=55.0, warehouse=north
        ),
    ])

    db.session.commit()
