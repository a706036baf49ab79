# wareflow/services.py

import logging
from dataclasses import replace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from wareflow.domain import ProductLine, TransferDraft
from wareflow.enums import MovementType
from wareflow.errors import ConcurrencyError, NotFoundError, ValidationError, WareflowError
from wareflow.extensions import db
from wareflow.interfaces import SystemClock, snapshot_from_provider
from wareflow.inventory import adjust, summarize
from wareflow.models import InventoryItem, StockMovement, Warehouse
from wareflow.stores import (
    DatabaseActorDirectory,
    DatabaseInventoryMutator,
    DatabaseStockSnapshot,
    TransferStore,
    find_item,
    get_user,
    get_warehouse,
)
from wareflow.transfers import TransferRequestEngine, default_id_factory, transfer_stats
from wareflow.utils import create_stock_movement

logger = logging.getLogger(__name__)

TRANSITIONS = ('approve', 'reject', 'dispatch', 'complete')


def run_with_retries(operation, max_retries, description):
    """Run a read-check-write operation and commit, retrying stale writes.

    The operation must re-read whatever it changes on every attempt so a
    retry re-checks its preconditions against fresh data. Domain errors
    roll back and propagate immediately.
    """
    for attempt in range(1, max_retries + 1):
        try:
            result = operation()
            db.session.commit()
            return result
        except StaleDataError:
            db.session.rollback()
            logger.warning(
                f"{description}: concurrent update detected "
                f"(attempt {attempt}/{max_retries})"
            )
        except (WareflowError, ValueError):
            db.session.rollback()
            raise
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception(f"{description}: database error")
            raise
    raise ConcurrencyError(
        f"{description} failed: the record was modified by another user. Please try again."
    )


class TransferService:
    """Persists transfer request transitions produced by the engine."""

    def __init__(self, engine, store=None, stock=None, mutator=None,
                 max_retries=3, apply_stock_on_complete=True):
        self.engine = engine
        self.store = store or TransferStore()
        self.stock = stock or DatabaseStockSnapshot()
        self.mutator = mutator or DatabaseInventoryMutator()
        self.max_retries = max_retries
        self.apply_stock_on_complete = apply_stock_on_complete

    @classmethod
    def from_config(cls, config, clock=None):
        engine = TransferRequestEngine(
            DatabaseActorDirectory(),
            clock=clock or SystemClock(),
            id_factory=default_id_factory(config.get('TRANSFER_ID_PREFIX', 'TR-')),
            elevated_roles=config.get('ELEVATED_ROLES', ('owner',))
        )
        return cls(
            engine,
            max_retries=config.get('TRANSFER_MAX_RETRIES', 3),
            apply_stock_on_complete=config.get('APPLY_STOCK_ON_COMPLETE', True)
        )

    def build_draft(self, source, destination, quantities, justification):
        """Turn (product_id, quantity) pairs into a draft priced from source stock.

        Products unknown at the source keep their id as name and SKU; the
        engine then rejects them for insufficient stock.
        """
        lines = []
        for product_id, quantity in quantities:
            item = find_item(product_id, source)
            if item is None:
                lines.append(ProductLine(product_id, product_id, product_id, quantity))
            else:
                lines.append(ProductLine(
                    product_id=item.product_id,
                    name=item.product_name,
                    sku=item.sku,
                    quantity=quantity,
                    unit_price=item.cost_price
                ))
        return TransferDraft(
            source_warehouse=source,
            destination_warehouse=destination,
            products=tuple(lines),
            justification=justification
        )

    def create(self, draft, actor):
        """Validate a draft against live stock and save it as a pending request.

        Warehouse codes are normalised before anything else, and both
        warehouses must exist and be active. Blank codes are left for the
        engine to reject.
        """
        draft = replace(
            draft,
            source_warehouse=Warehouse.normalize_code(draft.source_warehouse),
            destination_warehouse=Warehouse.normalize_code(draft.destination_warehouse)
        )
        for code in (draft.source_warehouse, draft.destination_warehouse):
            if code:
                get_warehouse(code, active_only=True)

        snapshot = snapshot_from_provider(self.stock, draft.products, draft.source_warehouse)
        request = self.engine.create(draft, actor, snapshot)
        try:
            self.store.add(request)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception(f"Could not save transfer request {request.id}")
            raise
        logger.info(
            f"Transfer request {request.id} created by {actor}: "
            f"{request.source_warehouse} -> {request.destination_warehouse}, "
            f"{request.total_items} items"
        )
        return request

    def get(self, request_id):
        return self.store.get(request_id)

    def list(self, warehouse=None, status=None):
        return self.store.list(warehouse=warehouse, status=status)

    def stats(self, warehouse=None, today=None):
        if warehouse:
            warehouse = Warehouse.normalize_code(warehouse)
        return transfer_stats(self.store.list(warehouse=warehouse), warehouse=warehouse, today=today)

    def approve(self, request_id, actor, comment=None):
        return self._transition(
            request_id, actor, 'approve',
            lambda request: self.engine.approve(request, actor, comment)
        )

    def reject(self, request_id, actor, comment):
        return self._transition(
            request_id, actor, 'reject',
            lambda request: self.engine.reject(request, actor, comment)
        )

    def dispatch(self, request_id, actor, comment=None):
        return self._transition(
            request_id, actor, 'dispatch',
            lambda request: self.engine.mark_in_transit(request, actor, comment)
        )

    def transition(self, verb, request_id, actor, comment=None):
        """Apply a lifecycle step by name, as used by the CLI and workers."""
        if verb not in TRANSITIONS:
            raise ValueError(f"Unknown transfer transition: {verb}")
        if verb == 'complete':
            return self.complete(request_id, actor)
        return getattr(self, verb)(request_id, actor, comment)

    def complete(self, request_id, actor):
        after = self.mutator.apply_transfer if self.apply_stock_on_complete else None
        return self._transition(
            request_id, actor, 'complete',
            lambda request: self.engine.complete(request, actor),
            after=after
        )

    def _transition(self, request_id, actor, verb, step, after=None):
        def operation():
            row = self.store.get_row(request_id)
            updated = step(row.to_domain())
            row.sync_from(updated)
            if after is not None:
                after(request_id)
            # Flush inside the retry window so version conflicts surface here
            db.session.flush()
            return updated

        updated = run_with_retries(
            operation, self.max_retries, f"Transfer {request_id} {verb}"
        )
        logger.info(f"Transfer request {request_id} is now {updated.status.value} ({verb} by {actor})")
        return updated


class InventoryService:
    """Provisioning, stock adjustments and inventory overviews."""

    def __init__(self, clock=None, max_retries=3, top_category_limit=5):
        self.clock = clock or SystemClock()
        self.max_retries = max_retries
        self.top_category_limit = top_category_limit

    @classmethod
    def from_config(cls, config, clock=None):
        return cls(
            clock=clock,
            max_retries=config.get('TRANSFER_MAX_RETRIES', 3),
            top_category_limit=config.get('TOP_CATEGORY_LIMIT', 5)
        )

    def add_item(self, warehouse_code, **fields):
        warehouse = get_warehouse(warehouse_code)
        item = InventoryItem(warehouse=warehouse, **fields)
        db.session.add(item)
        try:
            db.session.commit()
        except (SQLAlchemyError, ValueError):
            db.session.rollback()
            raise
        logger.info(f"Inventory item {item.sku} provisioned in {warehouse.code}")
        return item.to_record()

    def get_item(self, item_id):
        item = db.session.get(InventoryItem, item_id)
        if item is None:
            raise NotFoundError(f"Inventory item {item_id} does not exist")
        return item

    def adjust(self, item_id, adjustment, actor):
        """Apply a stock adjustment and record it in the movement ledger."""
        def operation():
            item = self.get_item(item_id)
            before = item.to_record()
            after = adjust(before, adjustment, self.clock.now())
            item.current_stock = after.current_stock
            item.updated_at = after.last_updated
            create_stock_movement(
                item, MovementType.ADJUSTMENT,
                after.current_stock - before.current_stock, actor,
                reason=adjustment.reason,
                notes=adjustment.notes,
                timestamp=after.last_updated
            )
            db.session.flush()
            return after

        record = run_with_retries(operation, self.max_retries, f"Stock adjustment on item {item_id}")
        logger.info(
            f"Stock of {record.sku} in {record.warehouse_id} set to "
            f"{record.current_stock} by {actor}"
        )
        return record

    def records(self, warehouse=None):
        query = InventoryItem.query.join(Warehouse)
        if warehouse:
            query = query.filter(Warehouse.code == Warehouse.normalize_code(warehouse))
        items = query.order_by(Warehouse.code, InventoryItem.sku).all()
        return [item.to_record() for item in items]

    def history(self, item_id, limit=None):
        """Stock movements of one item, newest first."""
        query = self.get_item(item_id).movements.order_by(
            StockMovement.timestamp.desc(), StockMovement.id.desc()
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def summary(self, warehouse=None):
        if warehouse:
            warehouse = get_warehouse(warehouse).code
        return summarize(self.records(), warehouse=warehouse, top_limit=self.top_category_limit)


class WarehouseService:
    """Warehouse provisioning, activation and manager assignment."""

    def create(self, code, name, location=None, manager=None):
        code = Warehouse.normalize_code(code)
        if Warehouse.query.filter_by(code=code).first():
            raise ValidationError(f"Warehouse {code} already exists", field='code')
        if Warehouse.query.filter_by(name=name).first():
            raise ValidationError(f"A warehouse named '{name}' already exists", field='name')

        warehouse = Warehouse(code=code, name=name, location=location)
        if manager:
            warehouse.manager = self._manager(manager)
        db.session.add(warehouse)
        self._commit(f"Could not create warehouse {code}")
        logger.info(f"Warehouse {warehouse.code} created")
        return warehouse

    def set_active(self, code, active):
        warehouse = get_warehouse(code)
        warehouse.is_active = active
        self._commit(f"Could not update warehouse {warehouse.code}")
        logger.info(f"Warehouse {warehouse.code} {'activated' if active else 'deactivated'}")
        return warehouse

    def assign_manager(self, code, username):
        warehouse = get_warehouse(code)
        warehouse.manager = self._manager(username)
        self._commit(f"Could not assign a manager to {warehouse.code}")
        logger.info(f"Warehouse {warehouse.code} is now managed by {username}")
        return warehouse

    @staticmethod
    def _manager(username):
        user = get_user(username)
        if not user.is_active or not user.is_manager():
            raise ValidationError(f"User '{username}' cannot manage a warehouse", field='manager')
        return user

    @staticmethod
    def _commit(message):
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception(message)
            raise
