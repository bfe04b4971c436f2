from .catalog import Category, Location, Product
from .inventory import Inventory, InventoryMovement
from .transfers import TransferRequest
from .auth import User, SessionToken

__all__ = [
    'Category', 'Location', 'Product',
    'Inventory', 'InventoryMovement',
    'TransferRequest',
    'User', 'SessionToken',
]
