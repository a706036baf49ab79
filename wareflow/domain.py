# wareflow/domain.py

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from wareflow.enums import (
    AdjustmentReason,
    AdjustmentType,
    StockStatus,
    TransferStatus,
)


@dataclass(frozen=True)
class ProductLine:
    product_id: str
    name: str
    sku: str
    quantity: int
    unit_price: float = 0.0

    @property
    def line_value(self):
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class HistoryEntry:
    action: str
    status: TransferStatus
    user: str
    timestamp: datetime
    comment: Optional[str] = None


@dataclass(frozen=True)
class TransferDraft:
    """Operator input for a new transfer request, before validation."""
    source_warehouse: str
    destination_warehouse: str
    products: Tuple[ProductLine, ...] = ()
    justification: str = ''


@dataclass(frozen=True)
class TransferRequest:
    id: str
    source_warehouse: str
    destination_warehouse: str
    products: Tuple[ProductLine, ...]
    status: TransferStatus
    justification: str
    created_at: datetime
    created_by: str
    approved_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    history: Tuple[HistoryEntry, ...] = ()

    @property
    def is_terminal(self):
        return self.status.is_terminal

    @property
    def total_items(self):
        return sum(line.quantity for line in self.products)

    @property
    def total_value(self):
        return sum(line.line_value for line in self.products)


@dataclass(frozen=True)
class InventoryRecord:
    id: str
    sku: str
    product_name: str
    warehouse_id: str
    current_stock: int
    min_threshold: int
    max_threshold: int
    reserved_stock: int = 0
    cost_price: float = 0.0
    selling_price: float = 0.0
    category: str = 'Uncategorized'
    last_updated: Optional[datetime] = None
    product_id: Optional[str] = None
    unit: str = 'unit'

    @property
    def available_stock(self):
        return self.current_stock - self.reserved_stock

    @property
    def stock_value(self):
        return self.current_stock * self.cost_price


@dataclass(frozen=True)
class StockAdjustment:
    adjustment_type: AdjustmentType
    quantity: int
    reason: AdjustmentReason
    notes: Optional[str] = None


@dataclass(frozen=True)
class CategoryStat:
    name: str
    products: int
    value: float


@dataclass(frozen=True)
class InventoryStats:
    total_products: int
    total_value: float
    low_stock_items: int
    out_of_stock_items: int
    in_stock_items: int
    overstock_items: int
    top_categories: List[CategoryStat] = field(default_factory=list)

    def count_for(self, status):
        return {
            StockStatus.LOW_STOCK: self.low_stock_items,
            StockStatus.OUT_OF_STOCK: self.out_of_stock_items,
            StockStatus.IN_STOCK: self.in_stock_items,
            StockStatus.OVERSTOCK: self.overstock_items,
        }[status]


@dataclass(frozen=True)
class TransferStats:
    total: int
    pending: int
    approved: int
    in_transit: int
    completed: int
    rejected: int
    incoming: int
    outgoing: int
    today: int
    total_items: int
