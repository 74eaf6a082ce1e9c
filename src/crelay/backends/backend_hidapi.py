"""
HID API compatible relay card (V-USB firmware, VID 0x16C0 PID 0x05DF).

Relay states are read with feature report 1 (9 bytes, bitmap in byte 7) and
switched with a 9 byte output report ``[0, cmd, relay, 0, ...]``.
"""

import logging
from typing import Optional

from .base import CardType, RelayBackend, RelayInfo, RelayState, DetectedCard, register_backend
from .. import hiddev
from ..errors import DeviceUnavailable, ProtocolError

logger = logging.getLogger(__name__)

VENDOR_ID = 0x16C0
PRODUCT_ID = 0x05DF

REPORT_ID = 0x01
REPORT_LEN = 9
REPORT_RDDAT_OFFSET = 7
REPORT_WRCMD_OFFSET = 1
REPORT_WRREL_OFFSET = 2

CMD_ON = 0xFF
CMD_ALL_ON = 0xFE
CMD_OFF = 0xFD
CMD_ALL_OFF = 0xFC


def build_command(relay: int, state: RelayState) -> bytes:
    buf = bytearray(REPORT_LEN)
    buf[REPORT_WRCMD_OFFSET] = CMD_ON if state == RelayState.ON else CMD_OFF
    buf[REPORT_WRREL_OFFSET] = relay
    return bytes(buf)


class HidapiBackend(RelayBackend):
    """Simple HID relay card, addressed by its hidapi device path."""

    card_type = CardType.HIDAPI
    name = "HID API compatible relay card"
    default_num_relays = 4

    @classmethod
    def is_available(cls) -> bool:
        return hiddev.hidapi_available()

    def detect(self, serial: Optional[str] = None) -> Optional[DetectedCard]:
        for info in hiddev.hid_enumerate(VENDOR_ID, PRODUCT_ID):
            if not info.get("path"):
                continue
            if serial is not None and info.get("serial_number") != serial:
                continue
            port = hiddev.path_to_port(info["path"])
            logger.debug("Found HID relay card %s at %s", info.get("product_string"), port)
            return self.found(port)
        return None

    def enumerate_cards(self) -> list[RelayInfo]:
        return [
            RelayInfo(self.card_type, info.get("serial_number") or "")
            for info in hiddev.hid_enumerate(VENDOR_ID, PRODUCT_ID)
            if info.get("path")
        ]

    def get_relay(self, port: str, relay: int, serial: Optional[str] = None) -> RelayState:
        self.check_relay(relay)
        dev = hiddev.open_hid(port)
        try:
            report = dev.get_feature_report(REPORT_ID, REPORT_LEN)
        except (OSError, ValueError) as e:
            raise DeviceUnavailable(f"Unable to read feature report from {port} ({e})") from e
        finally:
            dev.close()

        if len(report) != REPORT_LEN:
            raise ProtocolError(
                f"Feature report from {port} has {len(report)} bytes, expected {REPORT_LEN}")

        bits = report[REPORT_RDDAT_OFFSET]
        logger.debug("Read relay bits %02X", bits)
        return RelayState.ON if bits & (1 << (relay - 1)) else RelayState.OFF

    def set_relay(self, port: str, relay: int, state: RelayState,
                  serial: Optional[str] = None) -> None:
        self.check_relay(relay)
        self.check_state(state)

        buf = build_command(relay, state)
        dev = hiddev.open_hid(port)
        try:
            written = dev.write(buf)
        except (OSError, ValueError) as e:
            raise DeviceUnavailable(f"Unable to write output report to {port} ({e})") from e
        finally:
            dev.close()

        if written < 0:
            raise DeviceUnavailable(f"Unable to write output report to {port}")


register_backend(CardType.HIDAPI, HidapiBackend)
