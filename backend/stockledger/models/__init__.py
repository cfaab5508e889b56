from .owners import BusinessOwner
from .inventory import Product, InventoryTransaction, PartnerPayment
from .invoices import Invoice, InvoiceLineItem

__all__ = [
    'BusinessOwner',
    'Product', 'InventoryTransaction', 'PartnerPayment',
    'Invoice', 'InvoiceLineItem',
]
