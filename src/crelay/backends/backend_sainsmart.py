"""
Sainsmart USB 4/8-channel relay card (FT232R/FT245R in bitbang mode).

All eight FTDI pins are driven as outputs; a set pin energizes the relay.
The port is closed without resetting the bitmode so the outputs keep their
level between calls.
The number of wired relays comes from the ``[Sainsmart drv]`` config section.

Uses pyftdi for the bitbang port and pyusb for enumeration.
"""

import logging
from typing import Optional

from .base import CardType, RelayBackend, RelayInfo, RelayState, DetectedCard, register_backend
from .. import usbdev
from ..errors import DeviceUnavailable

logger = logging.getLogger(__name__)

VENDOR_ID = 0x0403
PRODUCT_ID = 0x6001

ALL_OUTPUTS = 0xFF
R_TYPE_CHIPS = ("ft232r", "ft245r")
PORT_PREFIX = "FTDI serial "


def open_bitbang(serial: Optional[str]):
    """Open the first FTDI R-type chip (matching serial) in bitbang mode."""
    from pyftdi.ftdi import Ftdi
    from pyftdi.usbtools import UsbToolsError

    ftdi = Ftdi()
    try:
        ftdi.open_bitbang(VENDOR_ID, PRODUCT_ID, serial=serial, direction=ALL_OUTPUTS)
    except (OSError, ValueError, UsbToolsError) as e:
        raise DeviceUnavailable(f"Unable to open FTDI device: {e}") from e
    return ftdi


class SainsmartBackend(RelayBackend):
    """Sainsmart FTDI card; the relay count is configurable (1..8)."""

    card_type = CardType.SAINSMART_4_8CHANNEL
    name = "Sainsmart USB 4/8-channel relay card"
    default_num_relays = 4

    @property
    def num_relays(self) -> int:
        return self.config.sainsmart.num_relays

    @classmethod
    def is_available(cls) -> bool:
        try:
            import pyftdi.ftdi  # noqa: F401
        except ImportError:
            return False
        return usbdev.pyusb_available()

    def detect(self, serial: Optional[str] = None) -> Optional[DetectedCard]:
        dev, sernum = usbdev.find_device(VENDOR_ID, PRODUCT_ID, serial)
        if dev is None:
            logger.debug("No FTDI device found")
            return None
        usbdev.release(dev)

        try:
            ftdi = open_bitbang(sernum)
        except DeviceUnavailable as e:
            logger.debug("%s", e)
            return None

        try:
            chip = (ftdi.ic_name or "").lower()
        finally:
            ftdi.close(freeze=True)

        if chip not in R_TYPE_CHIPS:
            logger.warning("FTDI device %s is not an R-type chip (%s)", sernum, chip)
            return None

        logger.debug("Found Sainsmart card (%s) with serial %s", chip, sernum)
        return self.found(f"{PORT_PREFIX}{sernum}")

    def enumerate_cards(self) -> list[RelayInfo]:
        cards = []
        for dev in usbdev.find_usb_devices(VENDOR_ID, PRODUCT_ID):
            sernum = usbdev.get_serial(dev)
            usbdev.release(dev)
            if sernum is None:
                continue
            cards.append(RelayInfo(self.card_type, sernum))
        return cards

    def _open(self, port: str, serial: Optional[str]):
        # The serial in the port string pins us to the detected card
        if serial is None and port.startswith(PORT_PREFIX):
            serial = port[len(PORT_PREFIX):] or None
        return open_bitbang(serial)

    def get_relay(self, port: str, relay: int, serial: Optional[str] = None) -> RelayState:
        self.check_relay(relay)
        ftdi = self._open(port, serial)
        try:
            pins = ftdi.read_pins()
        except OSError as e:
            raise DeviceUnavailable(f"FTDI read failed: {e}") from e
        finally:
            ftdi.close(freeze=True)

        return RelayState.ON if pins & (1 << (relay - 1)) else RelayState.OFF

    def set_relay(self, port: str, relay: int, state: RelayState,
                  serial: Optional[str] = None) -> None:
        self.check_relay(relay)
        self.check_state(state)

        ftdi = self._open(port, serial)
        try:
            pins = ftdi.read_pins()
            bit = 1 << (relay - 1)
            if state == RelayState.ON:
                pins |= bit
            else:
                pins &= ~bit
            ftdi.write_data(bytes([pins & 0xFF]))
        except OSError as e:
            raise DeviceUnavailable(f"FTDI write failed: {e}") from e
        finally:
            ftdi.close(freeze=True)


register_backend(CardType.SAINSMART_4_8CHANNEL, SainsmartBackend)
