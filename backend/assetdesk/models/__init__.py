from .assets import Asset, ASSET_CATEGORIES, ASSET_STATUSES
from .invoices import Invoice, InvoiceLine, InvoiceCounter, INVOICE_TYPES, PAYMENT_METHODS
from .movements import Movement, MOVEMENT_ACTIONS, MOVEMENT_TYPES
from .verification import VerificationLog

__all__ = [
    'Asset', 'ASSET_CATEGORIES', 'ASSET_STATUSES',
    'Invoice', 'InvoiceLine', 'InvoiceCounter', 'INVOICE_TYPES', 'PAYMENT_METHODS',
    'Movement', 'MOVEMENT_ACTIONS', 'MOVEMENT_TYPES',
    'VerificationLog',
]
