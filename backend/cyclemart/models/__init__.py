from .customers import Customer, SewingMachine
from .work_orders import WorkOrder
from .inventory import InventoryItem
from .invoices import Invoice, PaymentTransaction
from .documents import DocumentSequence

__all__ = [
    'Customer', 'SewingMachine',
    'WorkOrder',
    'InventoryItem',
    'Invoice', 'PaymentTransaction',
    'DocumentSequence',
]
