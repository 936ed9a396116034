from .auth import User, SessionToken, USER_ROLES, USER_STATUSES
from .catalog import Category, Product, IMEI, IMEI_STATUSES
from .customers import Customer, Supplier
from .sales import (
    Sale, SaleItem, Installment, InstallmentPayment,
    PAYMENT_METHODS, SALE_STATUSES, INSTALLMENT_STATUSES,
)
from .purchases import Purchase, PurchaseItem, PURCHASE_STATUSES
from .aftersales import (
    TradeIn, RepairOrder, Warranty,
    TRADE_IN_STATUSES, REPAIR_STATUSES, WARRANTY_TYPES, WARRANTY_STATUSES,
)
from .expenses import ExpenseCategory, Expense
from .communications import Notification, AuditLog
from .documents import DocumentSequence

__all__ = [
    'User', 'SessionToken',
    'Category', 'Product', 'IMEI',
    'Customer', 'Supplier',
    'Sale', 'SaleItem', 'Installment', 'InstallmentPayment',
    'Purchase', 'PurchaseItem',
    'TradeIn', 'RepairOrder', 'Warranty',
    'ExpenseCategory', 'Expense',
    'Notification', 'AuditLog',
    'DocumentSequence',
    'USER_ROLES', 'USER_STATUSES', 'IMEI_STATUSES',
    'PAYMENT_METHODS', 'SALE_STATUSES', 'INSTALLMENT_STATUSES',
    'PURCHASE_STATUSES', 'TRADE_IN_STATUSES', 'REPAIR_STATUSES',
    'WARRANTY_TYPES', 'WARRANTY_STATUSES',
]
