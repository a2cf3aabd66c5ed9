from .parties import Customer, Vendor, Supplier, Labour
from .inventory import Product, StockTransaction
from .ledger import (
    JournalEntry, JournalLine,
    CustomerLedgerEntry, VendorLedgerEntry, SupplierLedgerEntry, LabourLedgerEntry,
)
from .documents import (
    Purchase, PurchaseItem, PurchaseChallan,
    SalesInvoice, InvoiceItem,
    Voucher, Payment,
    Challan, ChallanItem,
    VendorInvoice, VendorInvoiceItem,
)
from .jobs import Job, Jobsheet, JobsheetItem
from .sync import OfflineOperation, Conflict

__all__ = [
    'Customer', 'Vendor', 'Supplier', 'Labour',
    'Product', 'StockTransaction',
    'JournalEntry', 'JournalLine',
    'CustomerLedgerEntry', 'VendorLedgerEntry', 'SupplierLedgerEntry', 'LabourLedgerEntry',
    'Purchase', 'PurchaseItem', 'PurchaseChallan',
    'SalesInvoice', 'InvoiceItem',
    'Voucher', 'Payment',
    'Challan', 'ChallanItem',
    'VendorInvoice', 'VendorInvoiceItem',
    'Job', 'Jobsheet', 'JobsheetItem',
    'OfflineOperation', 'Conflict',
]
