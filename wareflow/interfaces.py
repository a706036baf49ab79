# wareflow/interfaces.py

from datetime import datetime, timezone
from typing import Protocol

from wareflow.enums import Role


class ActorDirectory(Protocol):
    def resolve_role(self, actor_id: str) -> Role:
        ...

    def manages_warehouse(self, actor_id: str, warehouse_id: str) -> bool:
        ...


class StockSnapshotProvider(Protocol):
    def available_quantity(self, product_id: str, warehouse_id: str) -> int:
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class InventoryMutator(Protocol):
    def apply_transfer(self, request_id: str) -> None:
        """Move the request's quantities from source to destination stock."""
        ...


class SystemClock:
    """Wall clock returning naive UTC timestamps, as stored in the database."""

    def now(self):
        return datetime.now(timezone.utc).replace(tzinfo=None)


def snapshot_from_provider(provider, products, warehouse_id):
    """Build the product_id -> available mapping used at creation time.

    Args:
        provider: StockSnapshotProvider for the source warehouse
        products: Product lines of the draft request
        warehouse_id: Source warehouse code

    Returns:
        dict: Available quantity per distinct product id
    """
    return {
        line.product_id: provider.available_quantity(line.product_id, warehouse_id)
        for line in products
    }
