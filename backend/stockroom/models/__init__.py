from .auth import User
from .tenancy import Store, Outlet, Room, Rack, Freezer
from .catalog import Category, Product
from .inventory import StockEntry, InventoryTransaction, StockAlert
from .documents import Audit, AuditDiscrepancy, DocumentSequence
from .sales import Invoice, InvoiceItem, Payment
from .tickets import Ticket, TicketComment
from .expenditures import Expenditure

__all__ = [
    "User",
    "Store",
    "Outlet",
    "Room",
    "Rack",
    "Freezer",
    "Category",
    "Product",
    "StockEntry",
    "InventoryTransaction",
    "StockAlert",
    "Audit",
    "AuditDiscrepancy",
    "DocumentSequence",
    "Invoice",
    "InvoiceItem",
    "Payment",
    "Ticket",
    "TicketComment",
    "Expenditure",
]
