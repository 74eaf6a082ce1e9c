"""
Backend abstraction layer for relay cards.

Each backend implements a common interface for one hardware family.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from ..config import RelayConfig
from ..errors import RelayOutOfRange

logger = logging.getLogger(__name__)

FIRST_RELAY = 1


# --------------------------------------------------------------------------
# Common Types
# --------------------------------------------------------------------------

class CardType(IntEnum):
    """Supported relay card types. The numeric order is the probe order."""
    NONE = 0
    CONRAD_4CHANNEL = 1       # Conrad USB 4-channel (CP2104 GPIO latch)
    SAINSMART_4_8CHANNEL = 2  # Sainsmart USB 4/8-channel (FTDI bitbang)
    HIDAPI = 3                # HID API compatible card
    SAINSMART_16CHANNEL = 4   # Sainsmart USB-HID 16-channel
    GENERIC_GPIO = 5          # Relays wired to GPIO pins (sysfs)


class RelayState(IntEnum):
    """Relay states as encoded on the wire (HTTP/MQTT ``status`` field)."""
    OFF = 0
    ON = 1
    PULSE = 2
    INVALID = 3  # "not specified" marker, never a hardware state


@dataclass(frozen=True)
class RelayInfo:
    """One card found while enumerating all backends."""
    card_type: CardType
    serial: str


@dataclass(frozen=True)
class DetectedCard:
    """Result of a successful detection."""
    card_type: CardType
    port: str        # communication handle passed back into get/set
    num_relays: int
    name: str


# --------------------------------------------------------------------------
# Backend Base Class
# --------------------------------------------------------------------------

class RelayBackend(ABC):
    """
    Base class for all relay card backends.

    Devices are opened and closed on every call so an unplugged card only
    fails the current operation.
    """

    card_type: CardType = CardType.NONE
    name: str = ""
    default_num_relays: int = 0

    def __init__(self, config: Optional[RelayConfig] = None):
        self.config = config or RelayConfig()

    @property
    def num_relays(self) -> int:
        return self.default_num_relays

    @classmethod
    def is_available(cls) -> bool:
        """Check if the library this backend needs can be used."""
        return True

    @abstractmethod
    def detect(self, serial: Optional[str] = None) -> Optional[DetectedCard]:
        """
        Look for the first matching card.

        Args:
            serial: Only accept a card with this serial number.

        Returns:
            DetectedCard, or None if no card of this type is present.
        """
        pass

    @abstractmethod
    def enumerate_cards(self) -> list[RelayInfo]:
        """List every connected card of this type."""
        pass

    @abstractmethod
    def get_relay(self, port: str, relay: int, serial: Optional[str] = None) -> RelayState:
        """Read the current state of one relay."""
        pass

    @abstractmethod
    def set_relay(self, port: str, relay: int, state: RelayState,
                  serial: Optional[str] = None) -> None:
        """Switch one relay on or off."""
        pass

    def check_relay(self, relay: int) -> None:
        """Raise RelayOutOfRange unless relay is within [1, num_relays]."""
        last = FIRST_RELAY + self.num_relays - 1
        if not FIRST_RELAY <= relay <= last:
            logger.warning("%s: relay number %d out of range", self.name, relay)
            raise RelayOutOfRange(relay, self.num_relays)

    @staticmethod
    def check_state(state: RelayState) -> None:
        if state not in (RelayState.ON, RelayState.OFF):
            raise ValueError(f"Relay state must be ON or OFF, got {state!r}")

    def found(self, port: str) -> DetectedCard:
        return DetectedCard(self.card_type, port, self.num_relays, self.name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.card_type.name}>"


# --------------------------------------------------------------------------
# Backend Registry
# --------------------------------------------------------------------------

_BACKEND_REGISTRY: dict[CardType, type[RelayBackend]] = {}


def register_backend(card_type: CardType, backend_class: type[RelayBackend]):
    """Register a backend class for a card type."""
    if card_type == CardType.NONE:
        raise ValueError("Cannot register a backend for CardType.NONE")
    _BACKEND_REGISTRY[card_type] = backend_class


def list_backends() -> dict[CardType, type[RelayBackend]]:
    """List all registered backends in probe order."""
    return dict(sorted(_BACKEND_REGISTRY.items()))


def get_backend_class(card_type: CardType) -> Optional[type[RelayBackend]]:
    return _BACKEND_REGISTRY.get(card_type)


def create_backends(config: Optional[RelayConfig] = None) -> list[RelayBackend]:
    """
    Instantiate every usable backend in probe order.

    Backends whose library is missing are skipped.
    """
    backends = []
    for card_type, backend_class in list_backends().items():
        if not backend_class.is_available():
            logger.debug("Backend %s not available, skipping", card_type.name)
            continue
        backends.append(backend_class(config))
    return backends


def card_name(card_type: CardType) -> str:
    """
    Get the display name of a card type.

    Raises:
        ValueError: for CardType.NONE or an unregistered type.
    """
    backend_class = _BACKEND_REGISTRY.get(CardType(card_type))
    if backend_class is None:
        raise ValueError(f"No relay card name for {CardType(card_type).name}")
    return backend_class.name


# --------------------------------------------------------------------------
# Import concrete backends to register them
# --------------------------------------------------------------------------

from . import backend_conrad
from . import backend_sainsmart
from . import backend_hidapi
from . import backend_sainsmart16
from . import backend_gpio
