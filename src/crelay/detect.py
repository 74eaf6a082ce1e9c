"""
Relay card detection across all backends.

Backends are probed in CardType order; the first card found wins.
"""

import logging
from typing import Optional

from .backends.base import DetectedCard, RelayBackend, RelayInfo, card_name
from .errors import RelayCardNotFound

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------
# Probing
# --------------------------------------------------------------------------

def _probe(backend: RelayBackend, serial: Optional[str]) -> Optional[DetectedCard]:
    try:
        return backend.detect(serial)
    except Exception as e:
        logger.warning("Probing %s failed: %s", backend.name, e)
        return None


def _enumerate(backend: RelayBackend) -> list[RelayInfo]:
    try:
        return backend.enumerate_cards()
    except Exception as e:
        logger.warning("Enumerating %s failed: %s", backend.name, e)
        return []


# --------------------------------------------------------------------------
# Public API
# --------------------------------------------------------------------------

def detect_relay_card(backends: list[RelayBackend],
                      serial: Optional[str] = None) -> DetectedCard:
    """
    Find the first relay card, probing backends in card type order.

    Args:
        backends: Backend instances (see create_backends()).
        serial: Only accept a card with this serial number.

    Returns:
        The detected card.

    Raises:
        RelayCardNotFound: if no backend finds a card.
    """
    for backend in sorted(backends, key=lambda b: b.card_type):
        card = _probe(backend, serial)
        if card is not None:
            logger.debug("Detected %s on %s", card.name, card.port)
            return card

    raise RelayCardNotFound()


def detect_all_cards(backends: list[RelayBackend]) -> list[RelayInfo]:
    """
    List every connected card of every type.

    Raises:
        RelayCardNotFound: if no card is connected at all.
    """
    cards = []
    for backend in sorted(backends, key=lambda b: b.card_type):
        cards.extend(_enumerate(backend))

    if not cards:
        raise RelayCardNotFound()
    return cards


# --------------------------------------------------------------------------
# CLI Helper
# --------------------------------------------------------------------------

def format_card_list(cards: list[RelayInfo]) -> list[str]:
    """One line per card, numbered from 1."""
    return [
        f"#{index}\t{card_name(info.card_type)} (serial {info.serial})"
        for index, info in enumerate(cards, start=1)
    ]
