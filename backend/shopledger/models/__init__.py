from .shops import Shop
from .inventory import Product
from .customers import Customer
from .sales import Sale, SaleLine, Payment
from .expenses import Expense

__all__ = [
    'Shop',
    'Product',
    'Customer',
    'Sale', 'SaleLine', 'Payment',
    'Expense',
]
