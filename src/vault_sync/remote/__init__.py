"""Remote store package: protocol and implementations."""

from .base import RemoteItem, RemoteObject, RemoteStore
from .factory import make_remote_store

__all__ = ["RemoteItem", "RemoteObject", "RemoteStore", "make_remote_store"]
