# wareflow/inventory.py

from dataclasses import replace

from wareflow.domain import CategoryStat, InventoryStats
from wareflow.enums import AdjustmentReason, AdjustmentType, StockStatus
from wareflow.errors import ValidationError

TOP_CATEGORY_LIMIT = 5


def classify(record):
    """
    Stock status of a single inventory record.
    Returns:
        - OUT_OF_STOCK if current_stock == 0
        - LOW_STOCK if current_stock <= min_threshold
        - OVERSTOCK if current_stock >= max_threshold
        - IN_STOCK otherwise
    """
    if record.max_threshold < record.min_threshold:
        raise ValidationError(
            f"Inventory record {record.id} has max threshold "
            f"{record.max_threshold} below min threshold {record.min_threshold}",
            field='max_threshold'
        )
    if record.current_stock == 0:
        return StockStatus.OUT_OF_STOCK
    elif record.current_stock <= record.min_threshold:
        return StockStatus.LOW_STOCK
    elif record.current_stock >= record.max_threshold:
        return StockStatus.OVERSTOCK
    return StockStatus.IN_STOCK


def summarize(records, warehouse=None, top_limit=TOP_CATEGORY_LIMIT):
    """Aggregate inventory figures for one warehouse or all of them.

    Args:
        records: Iterable of InventoryRecord
        warehouse: Optional warehouse code to restrict the summary
        top_limit: Number of categories kept in top_categories

    Returns:
        InventoryStats
    """
    if warehouse:
        records = [r for r in records if r.warehouse_id == warehouse]
    else:
        records = list(records)

    counts = {status: 0 for status in StockStatus}
    for record in records:
        counts[classify(record)] += 1

    # Group in first-encountered order so equal values keep that order
    category_groups = {}
    for record in records:
        group = category_groups.setdefault(record.category, [0, 0.0])
        group[0] += 1
        group[1] += record.stock_value

    top_categories = sorted(
        (CategoryStat(name=name, products=count, value=value)
         for name, (count, value) in category_groups.items()),
        key=lambda stat: stat.value,
        reverse=True
    )[:top_limit]

    return InventoryStats(
        total_products=len(records),
        total_value=sum(r.stock_value for r in records),
        low_stock_items=counts[StockStatus.LOW_STOCK],
        out_of_stock_items=counts[StockStatus.OUT_OF_STOCK],
        in_stock_items=counts[StockStatus.IN_STOCK],
        overstock_items=counts[StockStatus.OVERSTOCK],
        top_categories=top_categories
    )


def new_stock_level(record, adjustment):
    """Stock level an adjustment would leave behind, without applying it."""
    try:
        adjustment_type = AdjustmentType(adjustment.adjustment_type)
    except ValueError:
        raise ValidationError(
            f"Unknown adjustment type: {adjustment.adjustment_type}",
            field='adjustment_type'
        )
    quantity = adjustment.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be a whole number", field='quantity')
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative", field='quantity')

    if adjustment_type is AdjustmentType.SET:
        return quantity
    if quantity == 0:
        raise ValidationError("Quantity must be greater than zero", field='quantity')
    if adjustment_type is AdjustmentType.ADD:
        return record.current_stock + quantity
    if quantity > record.current_stock:
        raise ValidationError(
            f"Cannot remove more than current stock ({record.current_stock})",
            field='quantity'
        )
    return record.current_stock - quantity


def adjust(record, adjustment, now):
    """Apply an add/remove/set adjustment and return the updated record.

    Raises:
        ValidationError: Bad quantity, missing notes for an 'other' reason,
            or a result below the reserved stock
    """
    try:
        reason = AdjustmentReason(adjustment.reason)
    except ValueError:
        raise ValidationError("Please select a reason for adjustment", field='reason')
    if reason is AdjustmentReason.OTHER and not (adjustment.notes or '').strip():
        raise ValidationError(
            'Please provide details when selecting "Other" reason',
            field='notes'
        )

    stock = new_stock_level(record, adjustment)
    if stock < record.reserved_stock:
        raise ValidationError(
            f"Stock cannot drop below reserved quantity ({record.reserved_stock})",
            field='quantity'
        )
    return replace(record, current_stock=stock, last_updated=now)
