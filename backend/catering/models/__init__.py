from .reference import Airport, Caterer, Customer
from .orders import Order, OrderNumberSequence, OrderStatusEvent
from .inventory import StockInventory

__all__ = [
    'Airport', 'Caterer', 'Customer',
    'Order', 'OrderNumberSequence', 'OrderStatusEvent',
    'StockInventory',
]
