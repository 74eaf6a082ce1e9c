"""
Backend implementations for relay cards.
"""

from .base import (
    CardType,
    DetectedCard,
    RelayBackend,
    RelayInfo,
    RelayState,
    card_name,
    create_backends,
    get_backend_class,
    list_backends,
    register_backend,
)

__all__ = [
    "CardType",
    "DetectedCard",
    "RelayBackend",
    "RelayInfo",
    "RelayState",
    "card_name",
    "create_backends",
    "get_backend_class",
    "list_backends",
    "register_backend",
]
