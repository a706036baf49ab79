# wareflow/models/user.py

from datetime import datetime
from sqlalchemy.orm import validates
from wareflow.enums import Role
from wareflow.extensions import db


class User(db.Model):
    """Warehouse staff member acting on inventory and transfer requests.

    The username is the actor identifier recorded in transfer history.
    """
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(120))
    email = db.Column(db.String(120), unique=True)
    role = db.Column(
        db.String(20),
        nullable=False,
        default=Role.STAFF.value
    )  # owner, manager, staff
    created_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    managed_warehouses = db.relationship('Warehouse', backref='manager', lazy='dynamic')

    @validates('role')
    def validate_role(self, key, value):
        try:
            return Role(value).value
        except ValueError:
            raise ValueError(f"Invalid role: {value}")

    @validates('username')
    def validate_username(self, key, value):
        if not value or not value.strip():
            raise ValueError("Username cannot be empty")
        return value.strip()

    def is_owner(self):
        """Check if user has the owner role.

        Returns:
            bool: True if user is owner, False otherwise
        """
        return self.role == Role.OWNER.value

    def is_manager(self):
        """Check if user has manager role.

        Returns:
            bool: True if user is manager or owner, False otherwise
        """
        return self.role in (Role.MANAGER.value, Role.OWNER.value)

    def manages(self, warehouse_code):
        return self.managed_warehouses.filter_by(code=warehouse_code).first() is not None

    def __repr__(self):
        return f'<User {self.username}>'
