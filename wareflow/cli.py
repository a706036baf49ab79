import functools
import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError

from wareflow.domain import StockAdjustment
from wareflow.enums import AdjustmentReason, AdjustmentType, Role, TransferStatus
from wareflow.errors import WareflowError
from wareflow.extensions import db
from wareflow.interfaces import SystemClock
from wareflow.models import InventoryItem, User, Warehouse
from wareflow.services import InventoryService, TransferService, WarehouseService
from wareflow.stores import get_warehouse
from wareflow.tasks import run_transition
from wareflow.utils import format_timestamp, generate_excel, inventory_rows


def init_cli(app):
    for command in (
        init_db_command,
        seed_warehouses_command,
        create_user_command,
        add_item_command,
        adjust_stock_command,
        inventory_summary_command,
        export_inventory_command,
        create_transfer_command,
        approve_transfer_command,
        reject_transfer_command,
        dispatch_transfer_command,
        complete_transfer_command,
        show_transfer_command,
        list_transfers_command,
        transfer_stats_command,
        stock_history_command,
        create_warehouse_command,
        activate_warehouse_command,
        deactivate_warehouse_command,
        assign_manager_command,
    ):
        app.cli.add_command(command)


def reports_errors(f):
    """Print domain and database errors and exit non-zero."""
    @functools.wraps(f)
    def wrapped(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except (WareflowError, ValueError) as e:
            db.session.rollback()
            click.echo(f"Error: {e}", err=True)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.exception(f"Database error in {f.__name__}: {e}")
            click.echo("Error: database error, see logs for details", err=True)
        click.get_current_context().exit(1)
    return wrapped


def transfer_service():
    return TransferService.from_config(current_app.config)


def inventory_service():
    return InventoryService.from_config(current_app.config)


def parse_line(value):
    """Parse PRODUCT_ID:QUANTITY."""
    product_id, sep, quantity = value.rpartition(':')
    if not sep or not product_id:
        raise click.BadParameter(f"Expected PRODUCT_ID:QUANTITY, got '{value}'")
    try:
        return product_id, int(quantity)
    except ValueError:
        raise click.BadParameter(f"Quantity must be a whole number in '{value}'")


def echo_transfer(request):
    tz_name = current_app.config['TIMEZONE']
    click.echo(
        f"{request.id} [{request.status.value}] "
        f"{request.source_warehouse} -> {request.destination_warehouse}"
    )
    for line in request.products:
        click.echo(f"  {line.sku} {line.name} x{line.quantity}")
    for entry in request.history:
        stamp = format_timestamp(entry.timestamp, tz_name).strftime('%Y-%m-%d %H:%M')
        click.echo(f"  {stamp} {entry.action} ({entry.status.value}) by {entry.user}: {entry.comment or ''}")


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Initialize database tables"""
    db.drop_all()
    db.create_all()
    click.echo("Database tables created fresh.")


@click.command("seed-warehouses")
@with_appcontext
@reports_errors
def seed_warehouses_command():
    """Seed predefined warehouses"""
    for warehouse in Warehouse.get_predefined_warehouses():
        click.echo(f"{warehouse.code} - {warehouse.name} ({warehouse.location})")
    click.echo("Warehouses have been seeded/updated successfully!")


@click.command("create-user")
@click.option('--username', required=True, help='Actor identifier')
@click.option('--name', default=None, help='Display name')
@click.option('--email', default=None)
@click.option('--role', type=click.Choice([r.value for r in Role]), default=Role.STAFF.value)
@click.option('--manages', multiple=True, help='Warehouse code managed by the user')
@with_appcontext
@reports_errors
def create_user_command(username, name, email, role, manages):
    """Create a user, optionally as manager of warehouses"""
    if User.query.filter_by(username=username).first():
        click.echo(f"User '{username}' already exists")
        return

    user = User(username=username, name=name, email=email, role=role)
    db.session.add(user)
    for code in manages:
        get_warehouse(code).manager = user
    db.session.commit()
    click.echo(f"User '{username}' has been created")


@click.command("add-item")
@click.option('--warehouse', required=True)
@click.option('--product-id', required=True)
@click.option('--sku', required=True)
@click.option('--name', 'product_name', required=True)
@click.option('--category', default='Uncategorized')
@click.option('--unit', default='unit')
@click.option('--stock', 'current_stock', type=int, default=0)
@click.option('--reserved', 'reserved_stock', type=int, default=0)
@click.option('--min', 'min_threshold', type=int, default=0)
@click.option('--max', 'max_threshold', type=int, default=0)
@click.option('--cost', 'cost_price', type=float, default=0.0)
@click.option('--price', 'selling_price', type=float, default=0.0)
@with_appcontext
@reports_errors
def add_item_command(warehouse, **fields):
    """Provision a product in a warehouse"""
    record = inventory_service().add_item(warehouse, **fields)
    click.echo(f"Added item {record.id}: {record.sku} in {record.warehouse_id}")


@click.command("adjust-stock")
@click.argument('item_id', type=int)
@click.option('--type', 'adjustment_type', type=click.Choice([t.value for t in AdjustmentType]), default='add')
@click.option('--quantity', type=int, required=True)
@click.option('--reason', type=click.Choice([r.value for r in AdjustmentReason]), required=True)
@click.option('--notes', default=None)
@click.option('--actor', required=True)
@with_appcontext
@reports_errors
def adjust_stock_command(item_id, adjustment_type, quantity, reason, notes, actor):
    """Add, remove or set stock for an inventory item"""
    record = inventory_service().adjust(
        item_id,
        StockAdjustment(AdjustmentType(adjustment_type), quantity, AdjustmentReason(reason), notes),
        actor
    )
    click.echo(f"{record.sku} in {record.warehouse_id}: stock is now {record.current_stock}")


@click.command("inventory-summary")
@click.option('--warehouse', default=None, help='Restrict to one warehouse')
@with_appcontext
@reports_errors
def inventory_summary_command(warehouse):
    """Print stock status counts and top categories"""
    stats = inventory_service().summary(warehouse)
    click.echo(f"Total products: {stats.total_products}")
    click.echo(f"Total value: {stats.total_value:.2f}")
    click.echo(f"In stock: {stats.in_stock_items}")
    click.echo(f"Low stock: {stats.low_stock_items}")
    click.echo(f"Out of stock: {stats.out_of_stock_items}")
    click.echo(f"Overstock: {stats.overstock_items}")
    for category in stats.top_categories:
        click.echo(f"  {category.name}: {category.products} products, {category.value:.2f}")


@click.command("export-inventory")
@click.option('--warehouse', default=None)
@click.option('--output', type=click.Path(dir_okay=False, writable=True), default=None)
@with_appcontext
@reports_errors
def export_inventory_command(warehouse, output):
    """Export inventory to an Excel workbook"""
    tz_name = current_app.config['TIMEZONE']
    query = InventoryItem.query.join(Warehouse)
    if warehouse:
        query = query.filter(Warehouse.code == get_warehouse(warehouse).code)
    items = query.order_by(Warehouse.code, InventoryItem.sku).all()
    if not items:
        click.echo("No data available to export", err=True)
        return

    if output is None:
        stamp = format_timestamp(SystemClock().now(), tz_name)
        output = f"inventory_{warehouse or 'all'}_{stamp.strftime('%Y%m%d_%H%M%S')}.xlsx"
    with open(output, 'wb') as fh:
        fh.write(generate_excel(inventory_rows(items, tz_name)).getvalue())
    click.echo(f"Exported {len(items)} items to {output}")


@click.command("create-transfer")
@click.option('--source', required=True)
@click.option('--destination', required=True)
@click.option('--line', 'lines', multiple=True, required=True, help='PRODUCT_ID:QUANTITY')
@click.option('--justification', required=True)
@click.option('--actor', required=True)
@with_appcontext
@reports_errors
def create_transfer_command(source, destination, lines, justification, actor):
    """Submit a transfer request"""
    service = transfer_service()
    quantities = [parse_line(value) for value in lines]
    draft = service.build_draft(source, destination, quantities, justification)
    request = service.create(draft, actor)
    click.echo(f"Created transfer request {request.id} ({request.status.value})")


def apply_transition(verb, request_id, actor, comment=None, queue=False):
    """Run a lifecycle step now, or hand it to a Celery worker."""
    if queue:
        result = run_transition.delay(verb, request_id, actor, comment)
        click.echo(f"Queued {verb} of {request_id} as task {result.id}")
        return

    request = transfer_service().transition(verb, request_id, actor, comment)
    click.echo(f"{request.id} is now {request.status.value}")


@click.command("approve-transfer")
@click.argument('request_id')
@click.option('--actor', required=True)
@click.option('--comment', default=None)
@click.option('--queue', is_flag=True, help='Run in a background worker')
@with_appcontext
@reports_errors
def approve_transfer_command(request_id, actor, comment, queue):
    """Approve a pending transfer request"""
    apply_transition('approve', request_id, actor, comment, queue)


@click.command("reject-transfer")
@click.argument('request_id')
@click.option('--actor', required=True)
@click.option('--comment', required=True, help='Reason for rejection')
@click.option('--queue', is_flag=True, help='Run in a background worker')
@with_appcontext
@reports_errors
def reject_transfer_command(request_id, actor, comment, queue):
    """Reject a pending transfer request"""
    apply_transition('reject', request_id, actor, comment, queue)


@click.command("dispatch-transfer")
@click.argument('request_id')
@click.option('--actor', required=True)
@click.option('--comment', default=None)
@click.option('--queue', is_flag=True, help='Run in a background worker')
@with_appcontext
@reports_errors
def dispatch_transfer_command(request_id, actor, comment, queue):
    """Mark an approved transfer request as in transit"""
    apply_transition('dispatch', request_id, actor, comment, queue)


@click.command("complete-transfer")
@click.argument('request_id')
@click.option('--actor', required=True)
@click.option('--queue', is_flag=True, help='Run in a background worker')
@with_appcontext
@reports_errors
def complete_transfer_command(request_id, actor, queue):
    """Confirm receipt of a transfer at the destination"""
    apply_transition('complete', request_id, actor, queue=queue)


@click.command("show-transfer")
@click.argument('request_id')
@with_appcontext
@reports_errors
def show_transfer_command(request_id):
    """Print a transfer request with its history"""
    echo_transfer(transfer_service().get(request_id))


@click.command("transfer-stats")
@click.option('--warehouse', default=None)
@with_appcontext
@reports_errors
def transfer_stats_command(warehouse):
    """Print transfer request counters"""
    stats = transfer_service().stats(warehouse=warehouse, today=SystemClock().now().date())
    click.echo(f"Total: {stats.total}")
    for status in TransferStatus:
        click.echo(f"{status.value}: {getattr(stats, status.name.lower())}")
    if warehouse:
        click.echo(f"Incoming: {stats.incoming}")
        click.echo(f"Outgoing: {stats.outgoing}")
    click.echo(f"Today: {stats.today}")
    click.echo(f"Items in requests: {stats.total_items}")


@click.command("list-transfers")
@click.option('--warehouse', default=None, help='Requests to or from this warehouse')
@click.option('--status', type=click.Choice([s.value for s in TransferStatus]), default=None)
@with_appcontext
@reports_errors
def list_transfers_command(warehouse, status):
    """List transfer requests, newest first"""
    requests = transfer_service().list(warehouse=warehouse, status=status)
    if not requests:
        click.echo("No transfer requests found")
        return
    tz_name = current_app.config['TIMEZONE']
    for request in requests:
        stamp = format_timestamp(request.created_at, tz_name).strftime('%Y-%m-%d %H:%M')
        click.echo(
            f"{request.id} [{request.status.value}] "
            f"{request.source_warehouse} -> {request.destination_warehouse} "
            f"{request.total_items} items, {stamp} by {request.created_by}"
        )


@click.command("stock-history")
@click.argument('item_id', type=int)
@click.option('--limit', type=click.IntRange(min=1), default=None)
@with_appcontext
@reports_errors
def stock_history_command(item_id, limit):
    """Print the stock movements of an inventory item"""
    movements = inventory_service().history(item_id, limit=limit)
    if not movements:
        click.echo(f"No stock movements recorded for item {item_id}")
        return
    tz_name = current_app.config['TIMEZONE']
    for movement in movements:
        stamp = format_timestamp(movement.timestamp, tz_name).strftime('%Y-%m-%d %H:%M')
        detail = ' '.join(part for part in (movement.reason, movement.reference) if part)
        click.echo(
            f"{stamp} {movement.movement_type} {movement.stock_change:+d} "
            f"-> {movement.stock_after} by {movement.performed_by} {detail}".rstrip()
        )


@click.command("create-warehouse")
@click.option('--code', required=True)
@click.option('--name', required=True)
@click.option('--location', default=None)
@click.option('--manager', default=None, help='Username of the managing user')
@with_appcontext
@reports_errors
def create_warehouse_command(code, name, location, manager):
    """Create a warehouse"""
    warehouse = WarehouseService().create(code, name, location=location, manager=manager)
    click.echo(f"Warehouse {warehouse.code} - {warehouse.name} has been created")


@click.command("activate-warehouse")
@click.argument('code')
@with_appcontext
@reports_errors
def activate_warehouse_command(code):
    """Allow transfers to and from a warehouse again"""
    warehouse = WarehouseService().set_active(code, True)
    click.echo(f"Warehouse {warehouse.code} is active")


@click.command("deactivate-warehouse")
@click.argument('code')
@with_appcontext
@reports_errors
def deactivate_warehouse_command(code):
    """Stop transfers to and from a warehouse"""
    warehouse = WarehouseService().set_active(code, False)
    click.echo(f"Warehouse {warehouse.code} is inactive")


@click.command("assign-manager")
@click.argument('code')
@click.argument('username')
@with_appcontext
@reports_errors
def assign_manager_command(code, username):
    """Make a manager responsible for a warehouse"""
    warehouse = WarehouseService().assign_manager(code, username)
    click.echo(f"Warehouse {warehouse.code} is now managed by {username}")
