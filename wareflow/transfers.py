# wareflow/transfers.py

import uuid
from collections import OrderedDict
from dataclasses import replace

from wareflow.domain import HistoryEntry, TransferRequest, TransferStats
from wareflow.enums import Role, TransferStatus
from wareflow.errors import (
    InsufficientStockError,
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from wareflow.interfaces import SystemClock


def default_id_factory(prefix='TR-'):
    """Return a callable producing ids like 'TR-3F2A9C01B7D4'."""
    def make_id():
        return f"{prefix}{uuid.uuid4().hex[:12].upper()}"
    return make_id


class TransferRequestEngine:
    """Lifecycle rules for inter-warehouse transfer requests.

    Every operation takes the current request value and returns a new one;
    the engine keeps no state of its own. Preconditions are re-checked on
    every call so a stale request fails cleanly instead of being clobbered.
    """

    def __init__(self, actors, clock=None, id_factory=None,
                 elevated_roles=(Role.OWNER,)):
        self.actors = actors
        self.clock = clock or SystemClock()
        self.id_factory = id_factory or default_id_factory()
        self.elevated_roles = frozenset(Role(role) for role in elevated_roles)

    def create(self, draft, actor, stock_snapshot):
        """Validate a draft and open it as a pending request.

        Args:
            draft: TransferDraft filled in by the operator
            actor: Identifier of the requesting user
            stock_snapshot: Mapping of product_id to available quantity
                at the source warehouse

        Returns:
            TransferRequest: New request in 'pending' status

        Raises:
            ValidationError: Malformed draft
            InsufficientStockError: A product exceeds available stock
        """
        source = (draft.source_warehouse or '').strip()
        destination = (draft.destination_warehouse or '').strip()
        if not source:
            raise ValidationError("Source warehouse is required", field='source_warehouse')
        if not destination:
            raise ValidationError("Please select destination warehouse", field='destination_warehouse')
        if source == destination:
            raise ValidationError(
                "Source and destination warehouses cannot be the same",
                field='destination_warehouse'
            )

        products = tuple(draft.products)
        if not products:
            raise ValidationError("Please add at least one product", field='products')

        requested = OrderedDict()
        for line in products:
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
                raise ValidationError(
                    f"Quantity for product {line.product_id} must be a whole number",
                    field='products'
                )
            if line.quantity <= 0:
                raise ValidationError(
                    f"Quantity for product {line.product_id} must be positive",
                    field='products'
                )
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        justification = (draft.justification or '').strip()
        if not justification:
            raise ValidationError("Please provide justification", field='justification')

        for product_id, quantity in requested.items():
            available = stock_snapshot.get(product_id, 0)
            if quantity > available:
                raise InsufficientStockError(product_id, available, quantity)

        now = self.clock.now()
        return TransferRequest(
            id=self.id_factory(),
            source_warehouse=source,
            destination_warehouse=destination,
            products=products,
            status=TransferStatus.PENDING,
            justification=justification,
            created_at=now,
            created_by=actor,
            history=(HistoryEntry(
                action='Request Created',
                status=TransferStatus.PENDING,
                user=actor,
                timestamp=now,
                comment='Initial request submission'
            ),)
        )

    def approve(self, request, actor, comment=None):
        self._require_status(request, TransferStatus.APPROVED, TransferStatus.PENDING)
        self._require_reviewer(request, actor)
        return self._advance(
            request, TransferStatus.APPROVED, 'Request Approved', actor,
            comment or 'Request approved',
            approved_by=actor
        )

    def reject(self, request, actor, comment):
        """Reject a pending request; a reason is mandatory."""
        if not comment or not comment.strip():
            raise ValidationError("A reason is required to reject a request", field='comment')
        self._require_status(request, TransferStatus.REJECTED, TransferStatus.PENDING)
        self._require_reviewer(request, actor)
        return self._advance(
            request, TransferStatus.REJECTED, 'Request Rejected', actor,
            comment.strip()
        )

    def mark_in_transit(self, request, actor, comment=None):
        self._require_status(request, TransferStatus.IN_TRANSIT, TransferStatus.APPROVED)
        return self._advance(
            request, TransferStatus.IN_TRANSIT, 'Items Dispatched', actor,
            comment or 'Items packed and sent for delivery'
        )

    def complete(self, request, actor):
        """Confirm receipt at the destination warehouse."""
        self._require_status(
            request, TransferStatus.COMPLETED,
            TransferStatus.APPROVED, TransferStatus.IN_TRANSIT
        )
        if not self.actors.manages_warehouse(actor, request.destination_warehouse):
            raise PermissionDeniedError(
                actor,
                f"must manage destination warehouse {request.destination_warehouse}"
            )
        now = self.clock.now()
        return self._advance(
            request, TransferStatus.COMPLETED, 'Transfer Completed', actor,
            'Items received and verified',
            timestamp=now,
            completed_at=now
        )

    def can_review(self, request, actor):
        """Elevated roles review anything; managers review their inbound requests."""
        if self.actors.resolve_role(actor) in self.elevated_roles:
            return True
        return self.actors.manages_warehouse(actor, request.destination_warehouse)

    def _require_status(self, request, attempted, *allowed):
        if request.status not in allowed:
            raise InvalidTransitionError(request.status, attempted)

    def _require_reviewer(self, request, actor):
        if not self.can_review(request, actor):
            raise PermissionDeniedError(
                actor,
                f"must hold an elevated role or manage destination warehouse "
                f"{request.destination_warehouse}"
            )

    def _advance(self, request, status, action, actor, comment, timestamp=None, **changes):
        entry = HistoryEntry(
            action=action,
            status=status,
            user=actor,
            timestamp=timestamp or self.clock.now(),
            comment=comment
        )
        return replace(
            request,
            status=status,
            history=request.history + (entry,),
            **changes
        )


def transfer_stats(requests, warehouse=None, today=None):
    """Summary counters shown above the transfer request list.

    Args:
        requests: Iterable of TransferRequest
        warehouse: Optional warehouse code for incoming/outgoing counts
        today: Optional date used for the 'today' counter

    Returns:
        TransferStats
    """
    requests = list(requests)
    by_status = {status: 0 for status in TransferStatus}
    for request in requests:
        by_status[request.status] += 1

    incoming = outgoing = 0
    if warehouse:
        incoming = sum(1 for r in requests if r.destination_warehouse == warehouse)
        outgoing = sum(1 for r in requests if r.source_warehouse == warehouse)

    created_today = 0
    if today is not None:
        created_today = sum(1 for r in requests if r.created_at.date() == today)

    return TransferStats(
        total=len(requests),
        pending=by_status[TransferStatus.PENDING],
        approved=by_status[TransferStatus.APPROVED],
        in_transit=by_status[TransferStatus.IN_TRANSIT],
        completed=by_status[TransferStatus.COMPLETED],
        rejected=by_status[TransferStatus.REJECTED],
        incoming=incoming,
        outgoing=outgoing,
        today=created_today,
        total_items=sum(r.total_items for r in requests)
    )
