"""
Storage Services Package

One gateway contract with two backends: the REST API (remote mode) and a
local key-value store (demo mode). create_gateway() picks one.
"""

from nexora.services.storage.factory import create_gateway
from nexora.services.storage.interface import (
    DuplicateEmailError,
    FinanceGateway,
    InvalidCredentialsError,
    InvalidRecordError,
    StorageError,
    TransportError,
)
from nexora.services.storage.key_value import (
    InMemoryStore,
    JsonFileStore,
    KeyValueStore,
)
from nexora.services.storage.local import LocalFinanceGateway
from nexora.services.storage.remote import ApiClient, RemoteFinanceGateway
from nexora.services.storage.session import SessionStore

__all__ = [
    # Interface
    "FinanceGateway",
    "create_gateway",
    # Exceptions
    "DuplicateEmailError",
    "InvalidCredentialsError",
    "InvalidRecordError",
    "StorageError",
    "TransportError",
    # Key-value stores
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "SessionStore",
    # Backends
    "ApiClient",
    "LocalFinanceGateway",
    "RemoteFinanceGateway",
]
