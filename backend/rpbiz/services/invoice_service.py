# Overview: Invoice numbering, issuing and status changes.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Invoice, InvoiceSequence, Sale
from ..models.sales import INVOICE_STATUSES
from .access_service import MEMBER, NotFoundError, accessible_business_ids, require_business_access
from rpbiz.time_utils import utcnow

INVOICE_PREFIX = "INV"

_UNSET = object()


class InvoiceError(Exception):
    """Raised for invalid invoice operations."""
    pass


def ensure_invoice_sequence(business_id: int) -> InvoiceSequence:
    """Create the business's invoice counter if it doesn't exist yet (not committed)."""
    seq = db.session.query(InvoiceSequence).filter_by(business_id=business_id).first()
    if seq is None:
        seq = InvoiceSequence(business_id=business_id, next_number=1)
        db.session.add(seq)
        db.session.flush()
    return seq


def next_invoice_number(business_id: int) -> str:
    """
    Atomically allocate the next invoice number for a business.

    Runs inside the caller's transaction: the counter row stays locked by
    the UPDATE until the sale commits or rolls back, and a rollback hands
    the number back. The business id in the number makes it unique across
    the whole system.
    """
    if not business_id:
        raise InvoiceError("business_id is required")

    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.business_id == business_id)
        .values(next_number=InvoiceSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        # Businesses created before sequences existed: create the row, then
        # fall back to the UPDATE if a concurrent sale created it first.
        try:
            with db.session.begin_nested():
                db.session.add(InvoiceSequence(business_id=business_id, next_number=2))
            return _format_invoice_number(business_id, 1)
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(InvoiceSequence.next_number)
        .filter_by(business_id=business_id)
        .scalar()
    )
    return _format_invoice_number(business_id, current - 1)


def _format_invoice_number(business_id: int, number: int) -> str:
    return f"{INVOICE_PREFIX}-{business_id:04d}-{number:06d}"


def issue_invoice(sale: Sale, due_date: datetime | None = None) -> Invoice:
    """Create the pending invoice for a freshly inserted sale. Does not commit."""
    invoice = Invoice(
        sale=sale,
        invoice_number=next_invoice_number(sale.business_id),
        status="pending",
        issue_date=utcnow(),
        due_date=due_date,
    )
    db.session.add(invoice)
    return invoice


def get_invoice(invoice_id: int, user_id: str) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id).first()
    if not invoice:
        raise NotFoundError("Invoice not found")
    require_business_access(invoice.sale.business_id, user_id, MEMBER)
    return invoice


def list_invoices(user_id: str, status: str | None = None, business_id: int | None = None) -> list[Invoice]:
    """Invoices of every business the user can access, newest first."""
    if business_id is not None:
        require_business_access(business_id, user_id, MEMBER)
        business_ids = {business_id}
    else:
        business_ids = accessible_business_ids(user_id)

    if not business_ids:
        return []

    query = (
        db.session.query(Invoice)
        .join(Sale, Sale.id == Invoice.sale_id)
        .filter(Sale.business_id.in_(business_ids))
    )
    if status is not None:
        if status not in INVOICE_STATUSES:
            raise InvoiceError(f"status must be one of: {', '.join(INVOICE_STATUSES)}")
        query = query.filter(Invoice.status == status)

    return query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()


def update_invoice(invoice_id: int, user_id: str, *, status: str | None = None, due_date=_UNSET) -> Invoice:
    """
    Change an invoice's status and/or due date.

    Moving to "paid" stamps paid_at the first time only. Cancelling an
    invoice, or moving it back to pending, leaves the sale and its stock
    movements untouched: sales are permanent records.
    """
    invoice = get_invoice(invoice_id, user_id)

    if status is not None:
        if status not in INVOICE_STATUSES:
            raise InvoiceError(f"status must be one of: {', '.join(INVOICE_STATUSES)}")
        invoice.status = status
        if status == "paid" and invoice.paid_at is None:
            invoice.paid_at = utcnow()

    if due_date is not _UNSET:
        invoice.due_date = due_date

    db.session.commit()
    return invoice
