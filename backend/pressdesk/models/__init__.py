from .auth import Profile, SessionToken
from .catalog import Store, ServiceCategory, KanbanColumn
from .customers import Customer
from .orders import Order
from .timekeeping import TimeLog

__all__ = [
    'Profile', 'SessionToken',
    'Store', 'ServiceCategory', 'KanbanColumn',
    'Customer',
    'Order',
    'TimeLog',
]
