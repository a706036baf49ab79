from datetime import datetime

import pytest

from wareflow.domain import InventoryRecord, StockAdjustment
from wareflow.enums import AdjustmentReason, AdjustmentType, StockStatus
from wareflow.errors import ValidationError
from wareflow.inventory import adjust, classify, summarize

NOW = datetime(2025, 1, 15, 14, 30)


def make_record(current_stock=50, min_threshold=10, max_threshold=100, **overrides):
    fields = dict(
        id='inv-001',
        sku='RICE-5KG',
        product_name='Rice 5kg',
        warehouse_id='wh-001',
        current_stock=current_stock,
        min_threshold=min_threshold,
        max_threshold=max_threshold,
        cost_price=1.0,
        category='Grains'
    )
    fields.update(overrides)
    return InventoryRecord(**fields)


@pytest.mark.parametrize('stock, expected', [
    (0, StockStatus.OUT_OF_STOCK),
    (1, StockStatus.LOW_STOCK),
    (10, StockStatus.LOW_STOCK),
    (11, StockStatus.IN_STOCK),
    (50, StockStatus.IN_STOCK),
    (99, StockStatus.IN_STOCK),
    (100, StockStatus.OVERSTOCK),
    (250, StockStatus.OVERSTOCK),
])
def test_classify_boundaries(stock, expected):
    assert classify(make_record(current_stock=stock)) is expected


def test_classify_zero_thresholds():
    assert classify(make_record(current_stock=0, min_threshold=0, max_threshold=0)) is StockStatus.OUT_OF_STOCK
    assert classify(make_record(current_stock=5, min_threshold=0, max_threshold=0)) is StockStatus.OVERSTOCK


def test_classify_prefers_low_stock_when_thresholds_meet():
    record = make_record(current_stock=20, min_threshold=20, max_threshold=20)
    assert classify(record) is StockStatus.LOW_STOCK


def test_classify_rejects_inverted_thresholds():
    with pytest.raises(ValidationError) as excinfo:
        classify(make_record(min_threshold=100, max_threshold=10))
    assert excinfo.value.field == 'max_threshold'


def test_available_stock_and_value_are_derived():
    record = make_record(current_stock=150, reserved_stock=25, cost_price=45.5)
    assert record.available_stock == 125
    assert record.stock_value == pytest.approx(6825.0)


def test_summarize_totals_and_top_categories():
    records = [
        make_record(id='a', current_stock=100, cost_price=1.0, category='Grains'),
        make_record(id='b', current_stock=200, cost_price=1.0, category='Oils'),
        make_record(id='c', current_stock=300, cost_price=1.0, category='Grains'),
        make_record(id='d', current_stock=400, cost_price=1.0, category='Dairy'),
        make_record(id='e', current_stock=500, cost_price=1.0, category='Oils'),
    ]

    stats = summarize(records)

    assert stats.total_products == 5
    assert stats.total_value == pytest.approx(1500.0)
    assert [c.name for c in stats.top_categories] == ['Oils', 'Grains', 'Dairy']
    assert [c.value for c in stats.top_categories] == [700.0, 400.0, 400.0]
    assert [c.products for c in stats.top_categories] == [2, 2, 1]


def test_summarize_counts_partition_records():
    records = [
        make_record(id='out', current_stock=0),
        make_record(id='low', current_stock=10),
        make_record(id='ok', current_stock=50),
        make_record(id='over', current_stock=100),
        make_record(id='ok2', current_stock=60),
    ]

    stats = summarize(records)

    assert stats.out_of_stock_items == 1
    assert stats.low_stock_items == 1
    assert stats.in_stock_items == 2
    assert stats.overstock_items == 1
    assert sum(stats.count_for(status) for status in StockStatus) == stats.total_products


def test_summarize_filters_by_warehouse():
    records = [
        make_record(id='a', warehouse_id='wh-001', current_stock=10, cost_price=2.0),
        make_record(id='b', warehouse_id='wh-002', current_stock=20, cost_price=2.0),
    ]

    stats = summarize(records, warehouse='wh-002')

    assert stats.total_products == 1
    assert stats.total_value == pytest.approx(40.0)
    assert summarize(records).total_products == 2


def test_summarize_keeps_first_seen_order_for_ties_and_limits_to_five():
    names = ['Fruits', 'Beverages', 'Meat', 'Dairy', 'Legumes', 'Cleaning']
    records = [
        make_record(id=str(i), category=name, current_stock=50, cost_price=1.0)
        for i, name in enumerate(names)
    ]

    stats = summarize(records)

    assert [c.name for c in stats.top_categories] == names[:5]


def test_summarize_empty():
    stats = summarize([])
    assert stats.total_products == 0
    assert stats.total_value == 0
    assert stats.top_categories == []


@pytest.mark.parametrize('adjustment_type, quantity, expected', [
    (AdjustmentType.ADD, 25, 75),
    (AdjustmentType.REMOVE, 20, 30),
    (AdjustmentType.REMOVE, 50, 0),
    (AdjustmentType.SET, 12, 12),
    (AdjustmentType.SET, 0, 0),
])
def test_adjust(adjustment_type, quantity, expected):
    record = make_record(current_stock=50)
    updated = adjust(record, StockAdjustment(adjustment_type, quantity, AdjustmentReason.STOCK_COUNT), NOW)
    assert updated.current_stock == expected
    assert updated.last_updated == NOW
    assert record.current_stock == 50


def test_adjust_cannot_remove_more_than_current_stock():
    with pytest.raises(ValidationError, match="Cannot remove more than current stock"):
        adjust(make_record(current_stock=8),
               StockAdjustment(AdjustmentType.REMOVE, 9, AdjustmentReason.DAMAGE), NOW)


def test_adjust_cannot_drop_below_reserved_stock():
    record = make_record(current_stock=35, reserved_stock=10)
    with pytest.raises(ValidationError, match="reserved"):
        adjust(record, StockAdjustment(AdjustmentType.SET, 5, AdjustmentReason.STOCK_COUNT), NOW)


def test_adjust_other_reason_requires_notes():
    record = make_record()
    with pytest.raises(ValidationError) as excinfo:
        adjust(record, StockAdjustment(AdjustmentType.ADD, 1, AdjustmentReason.OTHER, '  '), NOW)
    assert excinfo.value.field == 'notes'

    updated = adjust(record, StockAdjustment(AdjustmentType.ADD, 1, AdjustmentReason.OTHER, 'Found in back room'), NOW)
    assert updated.current_stock == 51


@pytest.mark.parametrize('adjustment', [
    StockAdjustment(AdjustmentType.ADD, 0, AdjustmentReason.PRODUCTION),
    StockAdjustment(AdjustmentType.REMOVE, -1, AdjustmentReason.THEFT),
    StockAdjustment(AdjustmentType.SET, 2.5, AdjustmentReason.STOCK_COUNT),
    StockAdjustment('rotate', 1, AdjustmentReason.STOCK_COUNT),
    StockAdjustment(AdjustmentType.ADD, 1, None),
])
def test_adjust_rejects_bad_input(adjustment):
    with pytest.raises(ValidationError):
        adjust(make_record(), adjustment, NOW)
