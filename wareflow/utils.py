# wareflow/utils.py

import io
import pandas as pd
import pytz
from wareflow.extensions import db
from wareflow.models import StockMovement


def create_stock_movement(
    item,
    movement_type,
    stock_change,
    performed_by,
    reason=None,
    reference=None,
    notes=None,
    timestamp=None
):
    """Record a stock movement for an inventory item.

    Args:
        item: InventoryItem whose stock changed (already updated)
        movement_type: MovementType of the change
        stock_change: Signed quantity change (+/-)
        performed_by: Username of the actor
        reason: Optional AdjustmentReason
        reference: Optional adjustment or transfer id
        notes: Optional notes about the change
        timestamp: Optional time of the change, defaults to now

    Returns:
        StockMovement: The created ledger entry (added, not committed)
    """
    movement = StockMovement(
        item=item,
        movement_type=getattr(movement_type, 'value', movement_type),
        stock_change=stock_change,
        stock_after=item.current_stock,
        reason=getattr(reason, 'value', reason),
        performed_by=performed_by,
        reference=reference,
        notes=notes
    )
    if timestamp is not None:
        movement.timestamp = timestamp
    db.session.add(movement)
    return movement


def format_timestamp(timestamp, tz_name):
    """Convert a naive UTC timestamp to the configured timezone.

    Args:
        timestamp: Naive UTC datetime
        tz_name: pytz timezone name, e.g. 'America/Havana'

    Returns:
        datetime: Localized datetime, or None when timestamp is None
    """
    if timestamp is None:
        return None
    return pytz.utc.localize(timestamp).astimezone(pytz.timezone(tz_name))


def inventory_rows(items, tz_name):
    """Flatten inventory items into spreadsheet rows."""
    rows = []
    for item in items:
        updated = format_timestamp(item.updated_at, tz_name)
        rows.append({
            'Warehouse': item.warehouse.code,
            'SKU': item.sku,
            'Product': item.product_name,
            'Category': item.category,
            'Current Stock': item.current_stock,
            'Reserved': item.reserved_stock,
            'Available': item.available_stock,
            'Min': item.min_threshold,
            'Max': item.max_threshold,
            'Status': item.stock_status().value,
            'Cost Price': item.cost_price,
            'Stock Value': item.stock_value,
            'Last Updated': updated.strftime('%Y-%m-%d %H:%M') if updated else ''
        })
    return rows


def generate_excel(data, sheet_name='Inventory'):
    """Generate Excel file as a stream.

    Args:
        data: List of dictionaries, one per row
        sheet_name: Worksheet title

    Returns:
        BytesIO: Excel file stream
    """
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        df = pd.DataFrame(data)
        df.to_excel(writer, sheet_name=sheet_name, index=False)
        workbook = writer.book
        worksheet = writer.sheets[sheet_name]

        header_format = workbook.add_format({
            'bold': True,
            'bg_color': '#4F81BD',
            'font_color': 'white',
            'border': 1
        })

        for col_num, value in enumerate(df.columns.values):
            worksheet.write(0, col_num, value, header_format)
            max_len = max(
                df[value].astype(str).apply(len).max() if len(df) else 0,
                len(value)
            )
            worksheet.set_column(col_num, col_num, max_len + 2)

    output.seek(0)
    return output
