from .auth import User, IdentitySession
from .business import Business, BusinessEmployee
from .inventory import Product
from .sales import Sale, SaleItem, Invoice, InvoiceSequence
from .security import SecurityEvent

__all__ = [
    'User', 'IdentitySession',
    'Business', 'BusinessEmployee',
    'Product',
    'Sale', 'SaleItem', 'Invoice', 'InvoiceSequence',
    'SecurityEvent',
]
