from __future__ import annotations

from ..extensions import db
from rpbiz.time_utils import to_utc_z

BUSINESS_TYPES = ("dealership", "store", "restaurant", "garage", "nightclub", "other")
EMPLOYEE_ROLES = ("manager", "employee")


class Business(db.Model):
    """
    Tenant root: products, sales and employees all hang off a business.

    The owner is fixed at creation. The API key authenticates game-server
    integrations and is only ever shown to the owner.
    """
    __tablename__ = "businesses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    business_type = db.Column("type", db.String(32), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    api_key = db.Column(db.String(64), nullable=True, unique=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    owner = db.relationship("User", backref=db.backref("owned_businesses", lazy=True))
    employees = db.relationship(
        "BusinessEmployee",
        back_populates="business",
        cascade="all, delete-orphan",
        lazy=True,
    )
    products = db.relationship(
        "Product",
        back_populates="business",
        cascade="all, delete-orphan",
        lazy=True,
    )
    sales = db.relationship(
        "Sale",
        back_populates="business",
        cascade="all, delete-orphan",
        lazy=True,
    )
    invoice_sequence = db.relationship(
        "InvoiceSequence",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Business id={self.id} name={self.name!r}>"

    def to_dict(self, include_api_key: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.business_type,
            "description": self.description,
            "ownerId": self.owner_id,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_api_key:
            data["apiKey"] = self.api_key
        return data


class BusinessEmployee(db.Model):
    """Membership of a non-owner user in a business."""
    __tablename__ = "business_employees"
    __table_args__ = (
        db.UniqueConstraint("business_id", "user_id", name="uq_business_employees_business_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False, default="employee")
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("Business", back_populates="employees")
    user = db.relationship("User", backref=db.backref("employments", lazy=True))

    def to_dict(self, include_user: bool = True, include_business: bool = False) -> dict:
        data = {
            "id": self.id,
            "businessId": self.business_id,
            "userId": self.user_id,
            "role": self.role,
            "joinedAt": to_utc_z(self.joined_at),
        }
        if include_user and self.user is not None:
            data["user"] = self.user.to_dict()
        if include_business and self.business is not None:
            data["business"] = self.business.to_dict()
        return data
