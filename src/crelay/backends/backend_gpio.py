"""
Relays wired directly to GPIO pins, driven through the Linux sysfs interface.

Pin numbers and polarity come from the ``[GPIO drv]`` config section. A pin
is exported when the card is detected (or on first use) and left exported
afterwards; unexporting resets the pin and would glitch the relay.
"""

import logging
import os
from typing import Optional

from .base import CardType, RelayBackend, RelayInfo, RelayState, DetectedCard, register_backend
from ..errors import DeviceUnavailable, ProtocolError

logger = logging.getLogger(__name__)

PORT = "GPIO"


class GpioBackend(RelayBackend):
    """Generic GPIO relays (sysfs ``/sys/class/gpio``)."""

    card_type = CardType.GENERIC_GPIO
    name = "Generic GPIO relays"
    default_num_relays = 8

    @property
    def num_relays(self) -> int:
        return self.config.gpio.num_relays

    @property
    def sysfs_base(self) -> str:
        return self.config.gpio.sysfs_base

    def pin_for(self, relay: int) -> int:
        return self.config.gpio.pins[relay - 1]

    def _pin_path(self, pin: int) -> str:
        return os.path.join(self.sysfs_base, f"gpio{pin}")

    def _export(self, pin: int) -> str:
        path = self._pin_path(pin)
        if os.path.exists(path):
            return path

        logger.debug("Exporting GPIO %d", pin)
        try:
            with open(os.path.join(self.sysfs_base, "export"), "w") as fd:
                fd.write(str(pin))
            with open(os.path.join(path, "direction"), "w") as fd:
                fd.write("out")
        except OSError as e:
            raise DeviceUnavailable(f"Unable to export GPIO {pin} ({e})") from e
        return path

    def _configured(self) -> bool:
        return all(self.pin_for(r) for r in range(1, self.num_relays + 1))

    def detect(self, serial: Optional[str] = None) -> Optional[DetectedCard]:
        # GPIO relays have no serial number to match
        if serial is not None:
            return None
        if not self._configured():
            logger.debug("GPIO relay pins not configured")
            return None
        if not os.path.isdir(self.sysfs_base):
            logger.debug("No sysfs GPIO interface at %s", self.sysfs_base)
            return None
        try:
            for relay in range(1, self.num_relays + 1):
                self._export(self.pin_for(relay))
        except DeviceUnavailable as e:
            logger.warning("%s", e)
            return None
        return self.found(PORT)

    def enumerate_cards(self) -> list[RelayInfo]:
        if self.detect() is None:
            return []
        return [RelayInfo(self.card_type, PORT)]

    def get_relay(self, port: str, relay: int, serial: Optional[str] = None) -> RelayState:
        self.check_relay(relay)
        pin = self.pin_for(relay)
        path = self._export(pin)
        try:
            with open(os.path.join(path, "value")) as fd:
                value = fd.read().strip()
        except OSError as e:
            raise DeviceUnavailable(f"Unable to read GPIO {pin} ({e})") from e

        if value not in ("0", "1"):
            raise ProtocolError(f"GPIO {pin} value {value!r} is not 0 or 1")
        active = str(self.config.gpio.active_value)
        return RelayState.ON if value == active else RelayState.OFF

    def set_relay(self, port: str, relay: int, state: RelayState,
                  serial: Optional[str] = None) -> None:
        self.check_relay(relay)
        self.check_state(state)

        pin = self.pin_for(relay)
        path = self._export(pin)
        active = self.config.gpio.active_value
        level = active if state == RelayState.ON else 1 - active
        try:
            with open(os.path.join(path, "value"), "w") as fd:
                fd.write(str(level))
        except OSError as e:
            raise DeviceUnavailable(f"Unable to write GPIO {pin} ({e})") from e


register_backend(CardType.GENERIC_GPIO, GpioBackend)
