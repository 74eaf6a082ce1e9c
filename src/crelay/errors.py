"""
Exceptions raised by the relay card drivers and front ends.
"""


class RelayError(Exception):
    """Base class for all crelay errors."""


class RelayCardNotFound(RelayError):
    """No relay card of any known type was detected."""

    def __init__(self, message: str = "No compatible device detected"):
        super().__init__(message)


class NoActiveCard(RelayError):
    """get/set was attempted before a card was successfully detected."""

    def __init__(self, message: str = "No relay card has been detected"):
        super().__init__(message)


class RelayOutOfRange(RelayError):
    """Relay number outside [1, num_relays] of the card."""

    def __init__(self, relay: int, num_relays: int):
        self.relay = relay
        self.num_relays = num_relays
        super().__init__(f"Relay number {relay} out of range (1-{num_relays})")


class DeviceUnavailable(RelayError):
    """Card was seen at detect time but cannot be opened now."""


class ProtocolError(RelayError):
    """The card answered with a malformed or unexpected response."""


class ConfigError(RelayError):
    """Invalid value in the configuration file."""
