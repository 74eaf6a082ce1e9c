"""
Request format shared by the HTTP API and the MQTT client.

Requests are URL encoded fields ``pin=<relay>&status=<0|1|2>&serial=<sn>``.
Replies list every relay as ``Relay <n>:<state><br>``.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import parse_qs

from .backends.base import RelayState
from .session import RelaySession

logger = logging.getLogger(__name__)

RELAY_TAG = "pin"
STATE_TAG = "status"
SERIAL_TAG = "serial"


@dataclass(frozen=True)
class RelayRequest:
    """Parsed request. relay 0 or state INVALID means "status only"."""
    relay: int = 0
    state: RelayState = RelayState.INVALID
    serial: Optional[str] = None

    @property
    def is_action(self) -> bool:
        return self.relay != 0 and self.state != RelayState.INVALID


def _first(fields: Mapping, name: str) -> Optional[str]:
    value = fields.get(name)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    return str(value).strip()


def parse_request(data: str | bytes | Mapping) -> RelayRequest:
    """
    Parse request fields from a query string, a form body or a mapping.

    Missing or garbled fields fall back to relay 0 / state INVALID.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    fields = parse_qs(data.strip()) if isinstance(data, str) else data

    relay = 0
    raw = _first(fields, RELAY_TAG)
    if raw:
        try:
            relay = int(raw)
        except ValueError:
            logger.debug("Ignoring garbled relay number %r", raw)

    state = RelayState.INVALID
    raw = _first(fields, STATE_TAG)
    if raw:
        try:
            state = RelayState(int(raw))
        except ValueError:
            logger.debug("Ignoring garbled relay state %r", raw)

    serial = _first(fields, SERIAL_TAG) or None
    return RelayRequest(relay, state, serial)


def format_status(states: list[RelayState]) -> str:
    return "".join(f"Relay {n}:{int(s)}<br>" for n, s in enumerate(states, start=1))


def execute(session: RelaySession, request: RelayRequest) -> list[RelayState]:
    """
    Detect the card, perform the requested action and read back all relays.

    Raises:
        RelayError: detection or card I/O failed.
    """
    with session.lock:
        session.detect(request.serial)
        if request.is_action:
            if request.state == RelayState.PULSE:
                session.pulse(request.relay, request.serial)
            else:
                session.set_relay(request.relay, request.state, request.serial)
        return session.read_all(request.serial)
