from .inventory import Product, PurchaseReceipt, CylinderTransaction
from .sales import Sale, SaleLine, EmployeeSale, EmployeeSaleLine
from .staff import Employee, StockAssignment

__all__ = [
    'Product', 'PurchaseReceipt', 'CylinderTransaction',
    'Sale', 'SaleLine', 'EmployeeSale', 'EmployeeSaleLine',
    'Employee', 'StockAssignment',
]
