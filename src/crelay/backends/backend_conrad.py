"""
Conrad USB 4-channel relay card (CP2104 USB-UART bridge, GPIO latch).

The relays hang off the four GPIO pins of a Silicon Labs CP2104. The latch
is read and written with vendor specific control transfers (AN571):

    read:  bmRequestType 0xC0, bRequest 0xFF, wValue 0x00C2, 1 byte
    write: bmRequestType 0x40, bRequest 0xFF, wValue 0x37E1,
           wIndex = mask (bits 0-7) | value (bits 8-15)

A cleared latch bit energizes the relay.
"""

import logging
from typing import Optional

from .base import CardType, RelayBackend, RelayInfo, RelayState, DetectedCard, register_backend
from .. import usbdev
from ..errors import DeviceUnavailable, ProtocolError

logger = logging.getLogger(__name__)

VENDOR_ID = 0x10C4
PRODUCT_ID = 0xEA60

REQTYPE_HOST_TO_DEVICE = 0x40
REQTYPE_DEVICE_TO_HOST = 0xC0
REQ_VENDOR = 0xFF
GPIO_READ_LATCH = 0x00C2
GPIO_WRITE_LATCH = 0x37E1

USB_TIMEOUT_MS = 1000

PORT_PREFIX = "Serial number "


def read_latch(dev) -> int:
    data = dev.ctrl_transfer(REQTYPE_DEVICE_TO_HOST, REQ_VENDOR, GPIO_READ_LATCH, 0, 1,
                             USB_TIMEOUT_MS)
    if len(data) != 1:
        raise ProtocolError(f"CP2104 latch read returned {len(data)} bytes")
    return data[0]


def write_latch(dev, mask: int, value: int) -> None:
    windex = (mask & 0xFF) | ((value & 0xFF) << 8)
    dev.ctrl_transfer(REQTYPE_HOST_TO_DEVICE, REQ_VENDOR, GPIO_WRITE_LATCH, windex, None,
                      USB_TIMEOUT_MS)


class ConradBackend(RelayBackend):
    """Conrad 4-channel card, addressed by the CP2104 serial number."""

    card_type = CardType.CONRAD_4CHANNEL
    name = "Conrad USB 4-channel relay card"
    default_num_relays = 4

    @classmethod
    def is_available(cls) -> bool:
        return usbdev.pyusb_available()

    def detect(self, serial: Optional[str] = None) -> Optional[DetectedCard]:
        dev, sernum = usbdev.find_device(VENDOR_ID, PRODUCT_ID, serial)
        if dev is None:
            logger.debug("No Conrad card found")
            return None
        usbdev.release(dev)
        logger.debug("Found Conrad card with serial %s", sernum)
        return self.found(f"{PORT_PREFIX}{sernum or ''}")

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
        dev, _ = usbdev.find_device(VENDOR_ID, PRODUCT_ID, serial)
        if dev is None:
            raise DeviceUnavailable(f"Conrad card not found ({port})")
        return dev

    def get_relay(self, port: str, relay: int, serial: Optional[str] = None) -> RelayState:
        self.check_relay(relay)
        dev = self._open(port, serial)
        try:
            latch = read_latch(dev)
        except OSError as e:
            raise DeviceUnavailable(f"Conrad card read failed: {e}") from e
        finally:
            usbdev.release(dev)

        return RelayState.OFF if latch & (1 << (relay - 1)) else RelayState.ON

    def set_relay(self, port: str, relay: int, state: RelayState,
                  serial: Optional[str] = None) -> None:
        self.check_relay(relay)
        self.check_state(state)

        bit = 1 << (relay - 1)
        # Only the masked bit changes, siblings keep their latch value
        value = 0 if state == RelayState.ON else bit

        dev = self._open(port, serial)
        try:
            write_latch(dev, bit, value)
        except OSError as e:
            raise DeviceUnavailable(f"Conrad card write failed: {e}") from e
        finally:
            usbdev.release(dev)


register_backend(CardType.CONRAD_4CHANNEL, ConradBackend)
