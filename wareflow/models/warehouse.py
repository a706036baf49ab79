# wareflow/models/warehouse.py

from sqlalchemy.orm import validates
from wareflow.extensions import db


class Warehouse(db.Model):
    __tablename__ = 'warehouse'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False)
    name = db.Column(db.String(100), unique=True, nullable=False)
    location = db.Column(db.String(200))
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    manager_id = db.Column(db.Integer, db.ForeignKey('user.id'))

    items = db.relationship('InventoryItem', backref='warehouse', lazy='dynamic')

    PREDEFINED_WAREHOUSES = [
        ("wh-001", "Main Warehouse", "Havana Central"),
        ("wh-002", "North Branch", "Havana North"),
        ("wh-003", "South Branch", "Havana South"),
        ("wh-004", "East Warehouse", "East District"),
        ("wh-005", "West Depot", "West District"),
    ]

    @staticmethod
    def normalize_code(value):
        return (value or '').strip().lower()

    @validates('code')
    def validate_code(self, key, value):
        code = self.normalize_code(value)
        if not code:
            raise ValueError("Warehouse code cannot be empty")
        return code

    @classmethod
    def get_predefined_warehouses(cls):
        """Create predefined warehouses if they don't exist."""
        for code, name, location in cls.PREDEFINED_WAREHOUSES:
            if not cls.query.filter_by(code=code).first():
                db.session.add(cls(code=code, name=name, location=location))
        db.session.commit()
        return cls.query.filter(
            cls.code.in_([c for c, _, _ in cls.PREDEFINED_WAREHOUSES])
        ).order_by(cls.code).all()

    def __repr__(self):
        return f'<Warehouse {self.code}>'
