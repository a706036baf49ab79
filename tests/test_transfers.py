from datetime import date, datetime, timedelta

import pytest

from wareflow.domain import ProductLine, TransferDraft
from wareflow.enums import Role, TransferStatus
from wareflow.errors import (
    InsufficientStockError,
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from wareflow.interfaces import snapshot_from_provider
from wareflow.transfers import TransferRequestEngine, transfer_stats


class FakeDirectory:
    def __init__(self, roles=None, managers=None):
        self.roles = roles or {}
        self.managers = managers or {}

    def resolve_role(self, actor_id):
        return self.roles.get(actor_id, Role.STAFF)

    def manages_warehouse(self, actor_id, warehouse_id):
        return warehouse_id in self.managers.get(actor_id, ())


class StepClock:
    """Advances one minute on every reading."""

    def __init__(self, start=datetime(2025, 1, 15, 10, 30)):
        self.current = start

    def now(self):
        self.current += timedelta(minutes=1)
        return self.current


class FakeStock:
    def __init__(self, levels):
        self.levels = levels

    def available_quantity(self, product_id, warehouse_id):
        return self.levels.get((product_id, warehouse_id), 0)


@pytest.fixture
def engine():
    directory = FakeDirectory(
        roles={'owner': Role.OWNER, 'north.manager': Role.MANAGER, 'main.manager': Role.MANAGER},
        managers={'north.manager': {'wh-2'}, 'main.manager': {'wh-1'}}
    )
    ids = iter(f"TR-{n:04d}" for n in range(1, 100))
    return TransferRequestEngine(directory, clock=StepClock(), id_factory=lambda: next(ids))


def make_draft(**overrides):
    fields = dict(
        source_warehouse='wh-1',
        destination_warehouse='wh-2',
        products=(
            ProductLine('P1', 'Laptop Dell Inspiron 15', 'LAP-001', 5, 850.0),
            ProductLine('P2', 'Wireless Mouse Logitech', 'MOU-002', 10, 35.5),
        ),
        justification='Restocking for increased demand in North Branch location'
    )
    fields.update(overrides)
    return TransferDraft(**fields)


@pytest.fixture
def pending(engine):
    return engine.create(make_draft(), 'main.manager', {'P1': 25, 'P2': 150})


def test_create_opens_pending_request(pending):
    assert pending.id == 'TR-0001'
    assert pending.status is TransferStatus.PENDING
    assert pending.created_by == 'main.manager'
    assert pending.approved_by is None
    assert pending.completed_at is None
    assert len(pending.history) == 1
    first = pending.history[0]
    assert first.action == 'Request Created'
    assert first.status is TransferStatus.PENDING
    assert first.user == 'main.manager'
    assert first.timestamp == pending.created_at
    assert pending.total_items == 15
    assert pending.total_value == pytest.approx(5 * 850.0 + 10 * 35.5)


def test_create_then_approve(engine, pending):
    approved = engine.approve(pending, 'north.manager')

    assert approved.status is TransferStatus.APPROVED
    assert approved.approved_by == 'north.manager'
    assert len(approved.history) == 2
    assert approved.history[1].status is TransferStatus.APPROVED
    assert approved.history[1].comment == 'Request approved'
    # The input request is left as it was
    assert pending.status is TransferStatus.PENDING
    assert len(pending.history) == 1


def test_insufficient_stock_names_product_and_available():
    stock = FakeStock({('P1', 'wh-1'): 15})
    draft = make_draft(products=(ProductLine('P1', 'Rice 5kg', 'RICE-5KG', 20),))
    engine = TransferRequestEngine(FakeDirectory(), clock=StepClock())

    with pytest.raises(InsufficientStockError) as excinfo:
        engine.create(draft, 'main.manager', snapshot_from_provider(stock, draft.products, 'wh-1'))

    assert excinfo.value.product_id == 'P1'
    assert excinfo.value.available == 15
    assert excinfo.value.requested == 20


def test_create_sums_repeated_product_lines(engine):
    draft = make_draft(products=(
        ProductLine('P1', 'Laptop', 'LAP-001', 10),
        ProductLine('P1', 'Laptop', 'LAP-001', 10),
    ))
    with pytest.raises(InsufficientStockError) as excinfo:
        engine.create(draft, 'main.manager', {'P1': 15})
    assert excinfo.value.requested == 20


def test_create_treats_unknown_product_as_unavailable(engine):
    with pytest.raises(InsufficientStockError) as excinfo:
        engine.create(make_draft(), 'main.manager', {'P1': 25})
    assert excinfo.value.product_id == 'P2'
    assert excinfo.value.available == 0


@pytest.mark.parametrize('overrides, field', [
    ({'destination_warehouse': 'wh-1'}, 'destination_warehouse'),
    ({'destination_warehouse': ''}, 'destination_warehouse'),
    ({'source_warehouse': '  '}, 'source_warehouse'),
    ({'products': ()}, 'products'),
    ({'justification': '   '}, 'justification'),
    ({'products': (ProductLine('P1', 'Laptop', 'LAP-001', 0),)}, 'products'),
    ({'products': (ProductLine('P1', 'Laptop', 'LAP-001', -3),)}, 'products'),
    ({'products': (ProductLine('P1', 'Laptop', 'LAP-001', 1.5),)}, 'products'),
])
def test_create_rejects_malformed_drafts(engine, overrides, field):
    with pytest.raises(ValidationError) as excinfo:
        engine.create(make_draft(**overrides), 'main.manager', {'P1': 25, 'P2': 150})
    assert excinfo.value.field == field


def test_approve_twice_fails_without_duplicate_history(engine, pending):
    approved = engine.approve(pending, 'owner', 'Approved for transfer')

    with pytest.raises(InvalidTransitionError) as excinfo:
        engine.approve(approved, 'owner')

    assert excinfo.value.current is TransferStatus.APPROVED
    assert excinfo.value.attempted is TransferStatus.APPROVED
    assert len(approved.history) == 2
    assert approved.history[-1].comment == 'Approved for transfer'


def test_approve_requires_elevated_role_or_destination_manager(engine, pending):
    with pytest.raises(PermissionDeniedError) as excinfo:
        engine.approve(pending, 'main.manager')
    assert excinfo.value.actor == 'main.manager'
    assert 'wh-2' in excinfo.value.required

    with pytest.raises(PermissionDeniedError):
        engine.approve(pending, 'stranger')

    assert engine.approve(pending, 'owner').approved_by == 'owner'


def test_reject_requires_comment_for_any_request(engine, pending):
    for comment in ('', '   ', None):
        with pytest.raises(ValidationError):
            engine.reject(pending, 'owner', comment)
    assert pending.status is TransferStatus.PENDING

    approved = engine.approve(pending, 'owner')
    with pytest.raises(ValidationError):
        engine.reject(approved, 'owner', '')
    assert approved.status is TransferStatus.APPROVED


def test_reject_is_terminal(engine, pending):
    rejected = engine.reject(pending, 'north.manager', 'Please follow defective item return process instead')

    assert rejected.status is TransferStatus.REJECTED
    assert rejected.history[-1].action == 'Request Rejected'
    assert rejected.history[-1].comment == 'Please follow defective item return process instead'
    assert rejected.is_terminal

    with pytest.raises(InvalidTransitionError):
        engine.approve(rejected, 'owner')
    with pytest.raises(InvalidTransitionError):
        engine.complete(rejected, 'north.manager')
    with pytest.raises(InvalidTransitionError):
        engine.mark_in_transit(rejected, 'owner')


def test_reject_checks_permission(engine, pending):
    with pytest.raises(PermissionDeniedError):
        engine.reject(pending, 'main.manager', 'Not needed')


def test_complete_from_pending_fails(engine, pending):
    with pytest.raises(InvalidTransitionError) as excinfo:
        engine.complete(pending, 'north.manager')
    assert excinfo.value.current is TransferStatus.PENDING
    assert excinfo.value.attempted is TransferStatus.COMPLETED


def test_full_lifecycle_through_transit(engine, pending):
    approved = engine.approve(pending, 'owner')
    shipped = engine.mark_in_transit(approved, 'main.manager')
    assert shipped.status is TransferStatus.IN_TRANSIT
    assert shipped.history[-1].action == 'Items Dispatched'
    assert shipped.history[-1].comment == 'Items packed and sent for delivery'

    completed = engine.complete(shipped, 'north.manager')
    assert completed.status is TransferStatus.COMPLETED
    assert completed.completed_at is not None
    assert completed.history[-1].action == 'Transfer Completed'
    assert completed.history[-1].comment == 'Items received and verified'
    assert completed.history[-1].timestamp == completed.completed_at
    assert [entry.status for entry in completed.history] == [
        TransferStatus.PENDING,
        TransferStatus.APPROVED,
        TransferStatus.IN_TRANSIT,
        TransferStatus.COMPLETED,
    ]
    timestamps = [entry.timestamp for entry in completed.history]
    assert timestamps == sorted(timestamps)

    with pytest.raises(InvalidTransitionError):
        engine.complete(completed, 'north.manager')


def test_complete_directly_from_approved(engine, pending):
    approved = engine.approve(pending, 'owner')
    completed = engine.complete(approved, 'north.manager')
    assert completed.status is TransferStatus.COMPLETED
    assert completed.approved_by == 'owner'


def test_complete_requires_destination_manager(engine, pending):
    approved = engine.approve(pending, 'owner')
    # Elevated role alone does not confirm receipt
    with pytest.raises(PermissionDeniedError):
        engine.complete(approved, 'owner')
    with pytest.raises(PermissionDeniedError):
        engine.complete(approved, 'main.manager')


def test_mark_in_transit_only_from_approved(engine, pending):
    with pytest.raises(InvalidTransitionError) as excinfo:
        engine.mark_in_transit(pending, 'main.manager')
    assert excinfo.value.attempted is TransferStatus.IN_TRANSIT


def test_last_history_status_tracks_current_status(engine, pending):
    request = pending
    for step in (
        lambda r: engine.approve(r, 'owner'),
        lambda r: engine.mark_in_transit(r, 'main.manager', 'Truck 7'),
        lambda r: engine.complete(r, 'north.manager'),
    ):
        request = step(request)
        assert request.history[-1].status is request.status


def test_transfer_stats(engine):
    snapshot = {'P1': 100, 'P2': 100}
    first = engine.create(make_draft(), 'main.manager', snapshot)
    second = engine.approve(engine.create(make_draft(), 'main.manager', snapshot), 'owner')
    third = engine.create(
        make_draft(source_warehouse='wh-2', destination_warehouse='wh-1',
                   products=(ProductLine('P1', 'Laptop', 'LAP-001', 3),)),
        'north.manager', snapshot
    )
    rejected = engine.reject(third, 'owner', 'Duplicate request')

    stats = transfer_stats([first, second, rejected], warehouse='wh-1', today=first.created_at.date())

    assert stats.total == 3
    assert stats.pending == 1
    assert stats.approved == 1
    assert stats.rejected == 1
    assert stats.in_transit == 0
    assert stats.completed == 0
    assert stats.outgoing == 2
    assert stats.incoming == 1
    assert stats.today == 3
    assert stats.total_items == 15 + 15 + 3

    other_day = transfer_stats([first], today=date(2000, 1, 1))
    assert other_day.today == 0
    assert other_day.incoming == 0
    assert other_day.outgoing == 0
