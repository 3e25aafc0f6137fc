from .auth import User, SessionToken, USER_ROLES
from .documents import EntityDocument

__all__ = [
    'User', 'SessionToken', 'USER_ROLES',
    'EntityDocument',
]
