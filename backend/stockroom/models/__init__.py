from .inventory import Item, StockBalance, StockTransaction
from .audit import SystemLog
from .borrowing import BorrowTransaction
from .communications import Notification, NotificationRead

__all__ = [
    'Item', 'StockBalance', 'StockTransaction',
    'SystemLog',
    'BorrowTransaction',
    'Notification', 'NotificationRead',
]
