from .auth import User, SessionToken
from .security import SecurityEvent
from .franchises import Franchise, Vehicle, Maintenance
from .catalog import ProductCategory, Product, Warehouse, Stock
from .orders import Order, OrderItem
from .finance import Invoice, SalesReport, ProcessedPaymentEvent
from .documents import DocumentSequence, AuditLog
from .communications import Notification, NotificationDelivery

__all__ = [
    'User', 'SessionToken', 'SecurityEvent',
    'Franchise', 'Vehicle', 'Maintenance',
    'ProductCategory', 'Product', 'Warehouse', 'Stock',
    'Order', 'OrderItem',
    'Invoice', 'SalesReport', 'ProcessedPaymentEvent',
    'DocumentSequence', 'AuditLog',
    'Notification', 'NotificationDelivery',
]
