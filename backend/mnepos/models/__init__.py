from .settings import Setting
from .catalog import Category, Product
from .bills import Bill, BillItem

__all__ = [
    'Setting',
    'Category', 'Product',
    'Bill', 'BillItem',
]
