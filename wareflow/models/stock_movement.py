# File: wareflow/models/stock_movement.py
from datetime import datetime
from wareflow.extensions import db


class StockMovement(db.Model):
    """Ledger of every change to an inventory item's stock"""
    __tablename__ = 'stock_movement'

    id = db.Column(db.Integer, primary_key=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey('inventory_item.id'), nullable=False)
    movement_type = db.Column(db.String(20), nullable=False)  # adjustment, transfer-in, transfer-out
    stock_change = db.Column(db.Integer, nullable=False)  # signed (+/-)
    stock_after = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(30))
    performed_by = db.Column(db.String(64), nullable=False)
    reference = db.Column(db.String(40), index=True)
    notes = db.Column(db.Text)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<StockMovement {self.movement_type} {self.stock_change:+d} by {self.performed_by}>'
