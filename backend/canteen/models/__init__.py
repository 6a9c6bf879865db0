from .canteens import Canteen
from .catalog import Item
from .auth import User, SessionToken
from .inventory import Stock, StockHistory
from .sales import Sale, SaleItem
from .supplies import Supply, SupplyItem

__all__ = [
    'Canteen',
    'Item',
    'User', 'SessionToken',
    'Stock', 'StockHistory',
    'Sale', 'SaleItem',
    'Supply', 'SupplyItem',
]
