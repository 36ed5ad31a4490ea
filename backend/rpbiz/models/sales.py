from __future__ import annotations

from ..extensions import db
from rpbiz.money import format_cents
from rpbiz.time_utils import to_utc_z

SALE_STATUSES = ("pending", "completed", "cancelled")
SALE_SOURCES = ("web", "game")
INVOICE_STATUSES = ("pending", "paid", "cancelled")


class Sale(db.Model):
    """
    Immutable sale record.

    total_amount_cents always equals the sum of the line totals; both are
    computed server-side from product prices at the time of sale.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_business_status_created", "business_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    seller_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)

    buyer_name = db.Column(db.String(255), nullable=False)
    buyer_info = db.Column(db.Text, nullable=True)

    total_amount_cents = db.Column(db.BigInteger, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    source = db.Column(db.String(16), nullable=False, default="web")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("Business", back_populates="sales")
    seller = db.relationship("User", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )
    invoice = db.relationship(
        "Invoice",
        back_populates="sale",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True, include_invoice: bool = True) -> dict:
        data = {
            "id": self.id,
            "businessId": self.business_id,
            "sellerId": self.seller_id,
            "buyerName": self.buyer_name,
            "buyerInfo": self.buyer_info,
            "totalAmount": format_cents(self.total_amount_cents),
            "totalAmountCents": self.total_amount_cents,
            "status": self.status,
            "source": self.source,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        if include_invoice:
            data["invoice"] = self.invoice.to_dict() if self.invoice else None
        return data


class SaleItem(db.Model):
    """Line item with name and price snapshots taken at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    # Nulled when the product is deleted; the snapshots keep the history readable
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.BigInteger, nullable=False)
    total_price_cents = db.Column(db.BigInteger, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product", backref=db.backref("sale_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "saleId": self.sale_id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "unitPrice": format_cents(self.unit_price_cents),
            "unitPriceCents": self.unit_price_cents,
            "totalPrice": format_cents(self.total_price_cents),
            "totalPriceCents": self.total_price_cents,
        }


class Invoice(db.Model):
    """Billing document issued together with its sale; only the status moves afterwards."""
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_status_issued", "status", "issue_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, unique=True)
    invoice_number = db.Column(db.String(50), nullable=False, unique=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending")

    issue_date = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    sale = db.relationship("Sale", back_populates="invoice")

    def to_dict(self, include_sale: bool = False) -> dict:
        data = {
            "id": self.id,
            "saleId": self.sale_id,
            "invoiceNumber": self.invoice_number,
            "status": self.status,
            "issueDate": to_utc_z(self.issue_date),
            "dueDate": to_utc_z(self.due_date),
            "paidAt": to_utc_z(self.paid_at),
        }
        if include_sale and self.sale is not None:
            sale = self.sale.to_dict(include_invoice=False)
            sale["business"] = self.sale.business.to_dict() if self.sale.business else None
            sale["seller"] = self.sale.seller.to_dict() if self.sale.seller else None
            data["sale"] = sale
        return data


class InvoiceSequence(db.Model):
    """
    Per-business invoice counter.

    Incremented with a single UPDATE inside the sale transaction so two
    concurrent sales can never draw the same number.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(
        db.Integer,
        db.ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
