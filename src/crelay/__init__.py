"""
crelay - Relay Card Control

A unified way of controlling different types of relay cards from the
command line, an HTTP API or an MQTT broker.

Supports: Conrad USB 4-channel, Sainsmart USB 4/8-channel, HID API compatible
cards, Sainsmart USB-HID 16-channel, relays on generic GPIO pins

Usage:
    # Command-line interface
    crelay info             # List all connected cards
    crelay get 2            # Read relay 2
    crelay set 2 on         # Switch relay 2 on
    crelay daemon           # HTTP API (and MQTT client)

    # Python API
    from crelay import RelaySession, RelayState
    session = RelaySession()
    session.detect()
    session.set_relay(2, RelayState.ON)
"""

__version__ = "0.10.0"

from .backends import CardType, RelayState, card_name
from .config import load_config
from .session import RelaySession

__all__ = ["CardType", "RelayState", "RelaySession", "card_name", "load_config", "__version__"]
