"""
Sainsmart USB-HID 16-channel relay card (VID 0x0416 PID 0x5020).

Every command is a 16 byte frame:

    offset  size  field
    0       1     command (0xD2 read, 0xC3 write)
    1       1     length of the checksummed part (14)
    2       2     relay bitmap, little endian
    4       6     reserved (filler byte)
    10      4     signature "HIDC"
    14      2     sum of bytes 0..13, little endian

The bitmap returned by a read is wired in a scrambled order; RELAY_BIT_POS
maps logical relay index to the bit that reports it.
"""

import logging
import struct
import time
from typing import Optional

from .base import CardType, RelayBackend, RelayInfo, RelayState, DetectedCard, register_backend
from .. import hiddev
from ..errors import DeviceUnavailable, ProtocolError

logger = logging.getLogger(__name__)

VENDOR_ID = 0x0416
PRODUCT_ID = 0x5020

CMD_READ = 0xD2
CMD_WRITE = 0xC3
SIGNATURE = b"HIDC"
FRAME_LEN = 16
READ_FILLER = 0x11
WRITE_FILLER = 0x00
READ_BITMAP = 0x1111

RESPONSE_DELAY = 0.001  # seconds between read request and reply
READ_TIMEOUT_MS = 1000

RELAY_BIT_POS = (7, 8, 6, 9, 5, 10, 4, 11, 3, 12, 2, 13, 1, 14, 0, 15)


def build_frame(cmd: int, bitmap: int) -> bytes:
    """Build a command frame with its checksum."""
    filler = READ_FILLER if cmd == CMD_READ else WRITE_FILLER
    body = struct.pack("<BBH6s4s", cmd, FRAME_LEN - 2, bitmap & 0xFFFF,
                       bytes([filler]) * 6, SIGNATURE)
    checksum = sum(body) & 0xFFFF
    return body + struct.pack("<H", checksum)


def decode_bitmap(physical: int, num_relays: int = len(RELAY_BIT_POS)) -> int:
    """Translate a bitmap read from the card into the logical relay mask."""
    mask = 0
    for index in range(num_relays):
        if physical & (1 << RELAY_BIT_POS[index]):
            mask |= 1 << index
    return mask


class Sainsmart16Backend(RelayBackend):
    """Sainsmart 16-channel HID card, addressed by its hidapi device path."""

    card_type = CardType.SAINSMART_16CHANNEL
    name = "Sainsmart USB-HID 16-channel relay card"
    default_num_relays = 16

    @classmethod
    def is_available(cls) -> bool:
        return hiddev.hidapi_available()

    def detect(self, serial: Optional[str] = None) -> Optional[DetectedCard]:
        for info in hiddev.hid_enumerate(VENDOR_ID, PRODUCT_ID):
            if not info.get("path") or not info.get("product_string"):
                continue
            if serial is not None and info.get("serial_number") != serial:
                continue
            port = hiddev.path_to_port(info["path"])
            logger.debug("Found %s at %s", info.get("product_string"), port)
            return self.found(port)
        return None

    def enumerate_cards(self) -> list[RelayInfo]:
        return [
            RelayInfo(self.card_type, info.get("serial_number") or "")
            for info in hiddev.hid_enumerate(VENDOR_ID, PRODUCT_ID)
            if info.get("path")
        ]

    def _read_mask(self, dev, port: str) -> int:
        try:
            dev.write(build_frame(CMD_READ, READ_BITMAP))
            time.sleep(RESPONSE_DELAY)
            reply = bytes(dev.read(FRAME_LEN, READ_TIMEOUT_MS))
        except (OSError, ValueError) as e:
            raise DeviceUnavailable(f"Unable to read data from {port} ({e})") from e

        if len(reply) < FRAME_LEN:
            raise ProtocolError(f"Short reply from {port}: {len(reply)} of {FRAME_LEN} bytes")

        physical = struct.unpack_from("<H", reply, 2)[0]
        mask = decode_bitmap(physical, self.num_relays)
        logger.debug("Read bitmap %04X -> mask %04X", physical, mask)
        return mask

    def get_relay(self, port: str, relay: int, serial: Optional[str] = None) -> RelayState:
        self.check_relay(relay)
        dev = hiddev.open_hid(port)
        try:
            mask = self._read_mask(dev, port)
        finally:
            dev.close()

        return RelayState.ON if mask & (1 << (relay - 1)) else RelayState.OFF

    def set_relay(self, port: str, relay: int, state: RelayState,
                  serial: Optional[str] = None) -> None:
        self.check_relay(relay)
        self.check_state(state)

        dev = hiddev.open_hid(port)
        try:
            mask = self._read_mask(dev, port)
            if state == RelayState.ON:
                mask |= 1 << (relay - 1)
            else:
                mask &= ~(1 << (relay - 1))
            try:
                dev.write(build_frame(CMD_WRITE, mask))
            except (OSError, ValueError) as e:
                raise DeviceUnavailable(f"Unable to write data to {port} ({e})") from e
        finally:
            dev.close()


register_backend(CardType.SAINSMART_16CHANNEL, Sainsmart16Backend)
