# wareflow/models/inventory_item.py

from datetime import datetime
from sqlalchemy import event
from sqlalchemy.orm import validates
from wareflow.domain import InventoryRecord
from wareflow.extensions import db
from wareflow.inventory import classify


class InventoryItem(db.Model):
    __tablename__ = 'inventory_item'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.String(50), nullable=False, index=True)
    sku = db.Column(db.String(50), nullable=False, index=True)
    product_name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(100), nullable=False, default='Uncategorized')
    unit = db.Column(db.String(20), nullable=False, default='unit')
    current_stock = db.Column(db.Integer, nullable=False, default=0)
    reserved_stock = db.Column(db.Integer, nullable=False, default=0)
    min_threshold = db.Column(db.Integer, nullable=False, default=0)
    max_threshold = db.Column(db.Integer, nullable=False, default=0)
    cost_price = db.Column(db.Float, nullable=False, default=0.0)
    selling_price = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Optimistic locking: concurrent writers fail with StaleDataError
    version_id = db.Column(db.Integer, nullable=False, default=0)
    __mapper_args__ = {'version_id_col': version_id}

    warehouse_id = db.Column(db.Integer, db.ForeignKey('warehouse.id'), nullable=False)

    movements = db.relationship('StockMovement', backref='item', lazy='dynamic')

    __table_args__ = (
        db.UniqueConstraint('product_id', 'warehouse_id', name='unique_product_per_warehouse'),
        db.UniqueConstraint('sku', 'warehouse_id', name='unique_sku_per_warehouse'),
    )

    @validates('sku', 'product_id')
    def validate_identifier(self, key, value):
        if not value or not str(value).strip():
            raise ValueError(f"{key.replace('_', ' ').capitalize()} cannot be empty")
        return str(value).strip()

    @validates('current_stock', 'reserved_stock', 'min_threshold', 'max_threshold')
    def validate_quantity(self, key, value):
        label = key.replace('_', ' ').capitalize()
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{label} must be a whole number")
        try:
            value = int(value)
        except (ValueError, TypeError):
            raise ValueError(f"{label} must be a whole number")
        if value < 0:
            raise ValueError(f"{label} cannot be negative")
        return value

    @validates('cost_price', 'selling_price')
    def validate_price(self, key, value):
        try:
            value = float(value)
        except (ValueError, TypeError):
            raise ValueError("Price must be a number")
        if value < 0:
            raise ValueError("Price cannot be negative")
        return value

    @property
    def available_stock(self):
        return self.current_stock - self.reserved_stock

    @property
    def stock_value(self):
        return self.current_stock * self.cost_price

    def to_record(self):
        return InventoryRecord(
            id=str(self.id),
            sku=self.sku,
            product_name=self.product_name,
            warehouse_id=self.warehouse.code,
            current_stock=self.current_stock,
            reserved_stock=self.reserved_stock,
            min_threshold=self.min_threshold,
            max_threshold=self.max_threshold,
            cost_price=self.cost_price,
            selling_price=self.selling_price,
            category=self.category,
            last_updated=self.updated_at,
            product_id=self.product_id,
            unit=self.unit
        )

    def stock_status(self):
        return classify(self.to_record())

    def __repr__(self):
        return f'<InventoryItem {self.sku}@{self.warehouse_id}>'


@event.listens_for(InventoryItem, 'before_insert')
@event.listens_for(InventoryItem, 'before_update')
def validate_stock_bounds(mapper, connection, target):
    """Reject rows whose reserved stock or thresholds are inconsistent."""
    # Column defaults are not applied yet on insert
    current = target.current_stock or 0
    reserved = target.reserved_stock or 0
    minimum = target.min_threshold or 0
    maximum = target.max_threshold or 0
    if reserved > current:
        raise ValueError(
            f"Reserved stock ({reserved}) cannot exceed current stock ({current})"
        )
    if maximum < minimum:
        raise ValueError(
            f"Max threshold ({maximum}) cannot be below min threshold ({minimum})"
        )
