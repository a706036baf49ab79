# wareflow/models/__init__.py

from wareflow.models.user import User
from wareflow.models.warehouse import Warehouse
from wareflow.models.inventory_item import InventoryItem
from wareflow.models.transfer_request import TransferRequestModel, TransferLine, TransferHistory
from wareflow.models.stock_movement import StockMovement

__all__ = [
    'User',
    'Warehouse',
    'InventoryItem',
    'TransferRequestModel',
    'TransferLine',
    'TransferHistory',
    'StockMovement',
]
