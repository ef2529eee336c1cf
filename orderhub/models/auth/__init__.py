# orderhub/models/auth/__init__.py

from .user import User
from .address import Address

__all__ = [
    "User",
    "Address",
]
