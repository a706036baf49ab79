# wareflow/enums.py

from enum import Enum


class TransferStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    IN_TRANSIT = 'in-transit'
    COMPLETED = 'completed'

    @property
    def is_terminal(self):
        """Rejected and completed requests accept no further transitions."""
        return self in (TransferStatus.REJECTED, TransferStatus.COMPLETED)


class StockStatus(str, Enum):
    OUT_OF_STOCK = 'out-of-stock'
    LOW_STOCK = 'low-stock'
    IN_STOCK = 'in-stock'
    OVERSTOCK = 'overstock'


class Role(str, Enum):
    OWNER = 'owner'
    MANAGER = 'manager'
    STAFF = 'staff'


class AdjustmentType(str, Enum):
    ADD = 'add'
    REMOVE = 'remove'
    SET = 'set'


class AdjustmentReason(str, Enum):
    STOCK_COUNT = 'stock-count'
    DAMAGE = 'damage'
    EXPIRED = 'expired'
    THEFT = 'theft'
    SUPPLIER_RETURN = 'supplier-return'
    CUSTOMER_RETURN = 'customer-return'
    TRANSFER_IN = 'transfer-in'
    TRANSFER_OUT = 'transfer-out'
    PRODUCTION = 'production'
    OTHER = 'other'


class MovementType(str, Enum):
    ADJUSTMENT = 'adjustment'
    TRANSFER_IN = 'transfer-in'
    TRANSFER_OUT = 'transfer-out'
