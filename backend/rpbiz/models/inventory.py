from __future__ import annotations

from ..extensions import db
from rpbiz.money import format_cents
from rpbiz.time_utils import to_utc_z


class Product(db.Model):
    """
    Stocked product belonging to exactly one business.

    Stock is only decremented by sale creation (conditionally, so it never
    drops below zero) or changed by manual edits.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_business_stock", "business_id", "stock"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    category = db.Column(db.String(100), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", back_populates="products")

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self, include_business: bool = False) -> dict:
        data = {
            "id": self.id,
            "businessId": self.business_id,
            "name": self.name,
            "description": self.description,
            "price": format_cents(self.price_cents),
            "priceCents": self.price_cents,
            "stock": self.stock,
            "category": self.category,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_business and self.business is not None:
            data["business"] = self.business.to_dict()
        return data
