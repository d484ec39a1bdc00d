from .auth import User, SessionToken, ROLES, ROLE_ADMIN, ROLE_MANAGER, ROLE_USER
from .catalog import Room, Product, RoomProduct
from .counts import CountSession, CountItem

__all__ = [
    'User', 'SessionToken', 'ROLES', 'ROLE_ADMIN', 'ROLE_MANAGER', 'ROLE_USER',
    'Room', 'Product', 'RoomProduct',
    'CountSession', 'CountItem',
]
