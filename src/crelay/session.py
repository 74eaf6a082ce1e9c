"""
Relay card session: the active card and the lock that serializes access to it.

Front ends (CLI, HTTP, MQTT) each hold one RelaySession. The HTTP threadpool
and the MQTT network thread may share a session; every logical operation
runs under the session lock.
"""

import logging
import threading
import time
from typing import Callable, Optional

from .backends.base import (
    CardType, DetectedCard, RelayBackend, RelayState, create_backends,
)
from .config import RelayConfig
from .detect import detect_relay_card
from .errors import NoActiveCard, RelayCardNotFound

logger = logging.getLogger(__name__)


class RelaySession:
    """
    Holds the detected card and dispatches get/set to its backend.

    A failed detect resets the session to CardType.NONE; backend errors on
    get/set leave it unchanged.
    """

    def __init__(self, config: Optional[RelayConfig] = None,
                 backends: Optional[list[RelayBackend]] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or RelayConfig()
        if backends is None:
            backends = create_backends(self.config)
        self._backends = {b.card_type: b for b in backends}
        self._sleep = sleep
        self.lock = threading.RLock()
        self.card: Optional[DetectedCard] = None

    @property
    def active_type(self) -> CardType:
        return self.card.card_type if self.card else CardType.NONE

    @property
    def port(self) -> Optional[str]:
        return self.card.port if self.card else None

    @property
    def num_relays(self) -> int:
        return self.card.num_relays if self.card else 0

    @property
    def backends(self) -> list[RelayBackend]:
        return list(self._backends.values())

    def _active_backend(self) -> RelayBackend:
        if self.card is None:
            raise NoActiveCard()
        return self._backends[self.card.card_type]

    # --------------------------------------------------------------------------
    # Operations
    # --------------------------------------------------------------------------

    def detect(self, serial: Optional[str] = None) -> DetectedCard:
        """
        Probe all backends and make the first card found the active one.

        Raises:
            RelayCardNotFound: no card found; the session is reset.
        """
        with self.lock:
            try:
                self.card = detect_relay_card(self.backends, serial)
            except RelayCardNotFound:
                self.card = None
                raise
            return self.card

    def get_relay(self, relay: int, serial: Optional[str] = None) -> RelayState:
        with self.lock:
            backend = self._active_backend()
            return backend.get_relay(self.card.port, relay, serial)

    def set_relay(self, relay: int, state: RelayState, serial: Optional[str] = None) -> None:
        with self.lock:
            backend = self._active_backend()
            logger.debug("Set relay %d to %s", relay, RelayState(state).name)
            backend.set_relay(self.card.port, relay, state, serial)

    def pulse(self, relay: int, serial: Optional[str] = None,
              duration: Optional[float] = None) -> None:
        """Toggle a relay for duration seconds, then restore its state."""
        if duration is None:
            duration = self.config.http.pulse_duration

        with self.lock:
            backend = self._active_backend()
            port = self.card.port
            current = backend.get_relay(port, relay, serial)
            toggled = RelayState.OFF if current == RelayState.ON else RelayState.ON
            backend.set_relay(port, relay, toggled, serial)
            self._sleep(duration)
            backend.set_relay(port, relay, current, serial)

    def read_all(self, serial: Optional[str] = None) -> list[RelayState]:
        """Read the state of every relay of the active card."""
        with self.lock:
            self._active_backend()
            return [self.get_relay(relay, serial) for relay in range(1, self.num_relays + 1)]

    def status(self, serial: Optional[str] = None) -> list[RelayState]:
        """Detect the card and read the state of every relay."""
        with self.lock:
            self.detect(serial)
            return self.read_all(serial)
