# wareflow/models/transfer_request.py

from wareflow.domain import HistoryEntry, ProductLine, TransferRequest
from wareflow.enums import TransferStatus
from wareflow.extensions import db


class TransferRequestModel(db.Model):
    """Persisted transfer request; the domain value lives in wareflow.domain."""
    __tablename__ = 'transfer_request'

    id = db.Column(db.String(40), primary_key=True)
    status = db.Column(db.String(20), nullable=False, default=TransferStatus.PENDING.value, index=True)
    justification = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)
    created_by = db.Column(db.String(64), nullable=False)
    approved_by = db.Column(db.String(64))
    completed_at = db.Column(db.DateTime)

    source_warehouse = db.Column(db.String(20), db.ForeignKey('warehouse.code'), nullable=False)
    destination_warehouse = db.Column(db.String(20), db.ForeignKey('warehouse.code'), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=0)
    __mapper_args__ = {'version_id_col': version_id}

    lines = db.relationship(
        'TransferLine',
        backref='request',
        order_by='TransferLine.position',
        cascade='all, delete-orphan'
    )
    history = db.relationship(
        'TransferHistory',
        backref='request',
        order_by='TransferHistory.position',
        cascade='all, delete-orphan'
    )

    @classmethod
    def from_domain(cls, request):
        row = cls(
            id=request.id,
            source_warehouse=request.source_warehouse,
            destination_warehouse=request.destination_warehouse,
            justification=request.justification,
            created_at=request.created_at,
            created_by=request.created_by
        )
        row.lines = [
            TransferLine(
                position=position,
                product_id=line.product_id,
                name=line.name,
                sku=line.sku,
                quantity=line.quantity,
                unit_price=line.unit_price
            )
            for position, line in enumerate(request.products)
        ]
        row.sync_from(request)
        return row

    def sync_from(self, request):
        """Copy a transitioned domain value onto this row.

        History is append-only: entries already stored are left untouched
        and only the new tail is added.
        """
        if request.id != self.id:
            raise ValueError(f"Cannot sync {request.id} onto row {self.id}")
        if len(request.history) < len(self.history):
            raise ValueError("Transfer history cannot shrink")

        self.status = request.status.value
        self.approved_by = request.approved_by
        self.completed_at = request.completed_at
        for position in range(len(self.history), len(request.history)):
            entry = request.history[position]
            self.history.append(TransferHistory(
                position=position,
                action=entry.action,
                status=entry.status.value,
                user=entry.user,
                timestamp=entry.timestamp,
                comment=entry.comment
            ))

    def to_domain(self):
        return TransferRequest(
            id=self.id,
            source_warehouse=self.source_warehouse,
            destination_warehouse=self.destination_warehouse,
            products=tuple(line.to_domain() for line in self.lines),
            status=TransferStatus(self.status),
            justification=self.justification,
            created_at=self.created_at,
            created_by=self.created_by,
            approved_by=self.approved_by,
            completed_at=self.completed_at,
            history=tuple(entry.to_domain() for entry in self.history)
        )

    def __repr__(self):
        return f'<TransferRequest {self.id} {self.status}>'


class TransferLine(db.Model):
    __tablename__ = 'transfer_line'

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(40), db.ForeignKey('transfer_request.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    sku = db.Column(db.String(50), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False, default=0.0)

    def to_domain(self):
        return ProductLine(
            product_id=self.product_id,
            name=self.name,
            sku=self.sku,
            quantity=self.quantity,
            unit_price=self.unit_price
        )


class TransferHistory(db.Model):
    __tablename__ = 'transfer_history'

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(40), db.ForeignKey('transfer_request.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(50), nullable=False)
    status = db.Column(db.String(20), nullable=False)
    user = db.Column(db.String(64), nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False)
    comment = db.Column(db.Text)

    __table_args__ = (
        db.UniqueConstraint('request_id', 'position', name='unique_history_position'),
    )

    def to_domain(self):
        return HistoryEntry(
            action=self.action,
            status=TransferStatus(self.status),
            user=self.user,
            timestamp=self.timestamp,
            comment=self.comment
        )
