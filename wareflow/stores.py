# wareflow/stores.py

from wareflow.enums import MovementType, Role, TransferStatus
from wareflow.errors import InsufficientStockError, NotFoundError, ValidationError
from wareflow.extensions import db
from wareflow.models import InventoryItem, TransferRequestModel, User, Warehouse
from wareflow.utils import create_stock_movement


def find_item(product_id, warehouse_code):
    """Inventory item holding a product in a given warehouse, or None."""
    return InventoryItem.query\
        .join(Warehouse)\
        .filter(
            InventoryItem.product_id == product_id,
            Warehouse.code == Warehouse.normalize_code(warehouse_code)
        ).first()


def get_warehouse(code, active_only=False):
    """Warehouse by code, matched the way codes are stored.

    Raises:
        NotFoundError: No warehouse has that code
        ValidationError: active_only is set and the warehouse is deactivated
    """
    warehouse = Warehouse.query.filter_by(code=Warehouse.normalize_code(code)).first()
    if warehouse is None:
        raise NotFoundError(f"Warehouse {code} does not exist")
    if active_only and not warehouse.is_active:
        raise ValidationError(f"Warehouse {warehouse.code} is inactive", field='warehouse')
    return warehouse


def get_user(username):
    user = User.query.filter_by(username=username).first()
    if user is None:
        raise NotFoundError(f"User {username} does not exist")
    return user


class DatabaseActorDirectory:
    """Resolves roles and warehouse management from the user table.

    Unknown or deactivated users get the staff role and manage nothing.
    """

    def resolve_role(self, actor_id):
        user = User.query.filter_by(username=actor_id, is_active=True).first()
        if user is None:
            return Role.STAFF
        return Role(user.role)

    def manages_warehouse(self, actor_id, warehouse_id):
        managed = Warehouse.query\
            .join(User, Warehouse.manager_id == User.id)\
            .filter(
                User.username == actor_id,
                User.is_active.is_(True),
                Warehouse.code == warehouse_id
            ).first()
        return managed is not None


class DatabaseStockSnapshot:
    def available_quantity(self, product_id, warehouse_id):
        item = find_item(product_id, warehouse_id)
        return item.available_stock if item else 0


class DatabaseInventoryMutator:
    """Moves stock between warehouses for a completed transfer request.

    Changes are added to the current session and left uncommitted so the
    caller can commit them together with the status change.
    """

    def apply_transfer(self, request_id):
        row = db.session.get(TransferRequestModel, request_id)
        if row is None:
            raise NotFoundError(f"Transfer request {request_id} does not exist")
        if row.status != TransferStatus.COMPLETED.value:
            raise ValueError(f"Transfer request {request_id} is not completed")

        destination = get_warehouse(row.destination_warehouse)
        actor = row.history[-1].user if row.history else row.created_by
        timestamp = row.completed_at

        for line in row.lines:
            source_item = find_item(line.product_id, row.source_warehouse)
            available = source_item.available_stock if source_item else 0
            if line.quantity > available:
                raise InsufficientStockError(line.product_id, available, line.quantity)
            source_item.current_stock -= line.quantity

            target_item = find_item(line.product_id, destination.code)
            if target_item:
                target_item.current_stock += line.quantity
            else:
                clash = InventoryItem.query.filter_by(
                    sku=source_item.sku, warehouse_id=destination.id
                ).first()
                if clash is not None:
                    raise ValidationError(
                        f"{destination.code} already stocks SKU {clash.sku} "
                        f"as product {clash.product_id}, not {line.product_id}",
                        field='products'
                    )
                target_item = InventoryItem(
                    product_id=source_item.product_id,
                    sku=source_item.sku,
                    product_name=source_item.product_name,
                    category=source_item.category,
                    unit=source_item.unit,
                    current_stock=line.quantity,
                    reserved_stock=0,
                    min_threshold=source_item.min_threshold,
                    max_threshold=source_item.max_threshold,
                    cost_price=source_item.cost_price,
                    selling_price=source_item.selling_price,
                    warehouse=destination
                )
                db.session.add(target_item)

            create_stock_movement(
                source_item, MovementType.TRANSFER_OUT, -line.quantity, actor,
                reference=row.id,
                notes=f"Sent to {row.destination_warehouse}",
                timestamp=timestamp
            )
            create_stock_movement(
                target_item, MovementType.TRANSFER_IN, line.quantity, actor,
                reference=row.id,
                notes=f"Received from {row.source_warehouse}",
                timestamp=timestamp
            )


class TransferStore:
    """Loads and saves transfer requests through the current session."""

    def add(self, request):
        row = TransferRequestModel.from_domain(request)
        db.session.add(row)
        return row

    def get_row(self, request_id):
        row = db.session.get(TransferRequestModel, request_id)
        if row is None:
            raise NotFoundError(f"Transfer request {request_id} does not exist")
        return row

    def get(self, request_id):
        return self.get_row(request_id).to_domain()

    def list(self, warehouse=None, status=None):
        query = TransferRequestModel.query
        if warehouse:
            warehouse = Warehouse.normalize_code(warehouse)
            query = query.filter(db.or_(
                TransferRequestModel.source_warehouse == warehouse,
                TransferRequestModel.destination_warehouse == warehouse
            ))
        if status:
            query = query.filter(TransferRequestModel.status == TransferStatus(status).value)
        rows = query.order_by(TransferRequestModel.created_at.desc()).all()
        return [row.to_domain() for row in rows]
