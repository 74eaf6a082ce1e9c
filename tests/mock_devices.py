"""Simulated relay card hardware for testing without real devices.

Each fake mimics the library object a backend talks to (a pyusb device, a
pyftdi Ftdi port, a hidapi device) and keeps the relay state in memory.

Usage:
    from mock_devices import FakeCp2104, MockBackend

    card = FakeCp2104("A1B2")
    backend = MockBackend(CardType.HIDAPI, num_relays=4)
"""

import struct
from array import array
from typing import Optional

from crelay.backends.base import CardType, RelayBackend, RelayInfo, RelayState
from crelay.backends.backend_sainsmart16 import RELAY_BIT_POS


# --------------------------------------------------------------------------
# USB (pyusb) devices
# --------------------------------------------------------------------------

class FakeUsbDevice:
    """Minimal stand-in for usb.core.Device."""

    def __init__(self, vid: int, pid: int, serial: Optional[str]):
        self.idVendor = vid
        self.idProduct = pid
        self._serial = serial
        self.transfers = []

    @property
    def serial_number(self):
        if self._serial is None:
            raise ValueError("The device has no langid")
        return self._serial


class FakeCp2104(FakeUsbDevice):
    """CP2104 with a GPIO latch; a cleared bit means the relay is on."""

    def __init__(self, serial: Optional[str] = "A1B2", latch: int = 0x0F):
        super().__init__(0x10C4, 0xEA60, serial)
        self.latch = latch

    def ctrl_transfer(self, bmRequestType, bRequest, wValue=0, wIndex=0,
                      data_or_wLength=None, timeout=None):
        self.transfers.append((bmRequestType, bRequest, wValue, wIndex, data_or_wLength, timeout))
        if bmRequestType == 0xC0:
            return array('B', [self.latch])
        mask = wIndex & 0xFF
        value = (wIndex >> 8) & 0xFF
        self.latch = (self.latch & ~mask) | (value & mask)
        return 0


class FakeFtdiDevice(FakeUsbDevice):
    def __init__(self, serial: Optional[str] = "FT0001"):
        super().__init__(0x0403, 0x6001, serial)


class FakeFtdi:
    """Stand-in for a pyftdi Ftdi port opened in bitbang mode.

    Like pyftdi, closing without ``freeze`` resets the bitmode and releases
    the outputs.
    """

    def __init__(self, pins: int = 0x00, ic_name: str = "ft232r"):
        self.pins = pins
        self.ic_name = ic_name
        self.writes = []
        self.closed = 0
        self.frozen = []

    def read_pins(self) -> int:
        return self.pins

    def write_data(self, data: bytes) -> int:
        self.writes.append(bytes(data))
        self.pins = data[-1]
        return len(data)

    def close(self, freeze: bool = False):
        self.closed += 1
        self.frozen.append(freeze)
        if not freeze:
            self.pins = 0x00


# --------------------------------------------------------------------------
# HID (hidapi) devices
# --------------------------------------------------------------------------

def hid_info(path: bytes, serial: str = "", product: str = "USBRelay4") -> dict:
    return {"path": path, "serial_number": serial, "product_string": product}


class FakeHidRelay:
    """HID API compatible relay card: feature report 1 holds the bitmap."""

    def __init__(self, bitmap: int = 0x00, report_len: int = 9):
        self.bitmap = bitmap
        self.report_len = report_len
        self.writes = []
        self.closed = 0

    def get_feature_report(self, report_id: int, length: int) -> list[int]:
        report = [report_id, ord('A'), ord('B'), ord('C'), ord('D'), ord('E'), 0, self.bitmap, 0]
        return report[:self.report_len]

    def write(self, buf) -> int:
        buf = bytes(buf)
        self.writes.append(buf)
        cmd, relay = buf[1], buf[2]
        if cmd == 0xFF:
            self.bitmap |= 1 << (relay - 1)
        elif cmd == 0xFD:
            self.bitmap &= ~(1 << (relay - 1))
        elif cmd == 0xFE:
            self.bitmap = 0xFF
        elif cmd == 0xFC:
            self.bitmap = 0x00
        return len(buf)

    def close(self):
        self.closed += 1


class FakeHid16:
    """Sainsmart 16-channel card.

    Accepts the logical relay mask on write and reports it back scrambled
    through the card's bit wiring on read.
    """

    def __init__(self, mask: int = 0x0000, short_reply: bool = False):
        self.mask = mask
        self.short_reply = short_reply
        self.frames = []
        self.closed = 0

    @property
    def physical(self) -> int:
        bitmap = 0
        for index, pos in enumerate(RELAY_BIT_POS):
            if self.mask & (1 << index):
                bitmap |= 1 << pos
        return bitmap

    def write(self, frame) -> int:
        frame = bytes(frame)
        self.frames.append(frame)
        if frame[0] == 0xC3:
            self.mask = struct.unpack_from("<H", frame, 2)[0]
        return len(frame)

    def read(self, length: int, timeout_ms: int = 0) -> list[int]:
        reply = bytearray(16)
        reply[0] = 0xD2
        reply[1] = 14
        struct.pack_into("<H", reply, 2, self.physical)
        reply[10:14] = b"HIDC"
        if self.short_reply:
            return list(reply[:8])
        return list(reply[:length])

    def close(self):
        self.closed += 1


# --------------------------------------------------------------------------
# Generic backend
# --------------------------------------------------------------------------

class MockBackend(RelayBackend):
    """In-memory backend for registry, session and front end tests."""

    def __init__(self, card_type: CardType = CardType.CONRAD_4CHANNEL, num_relays: int = 4,
                 present: bool = True, serial: str = "MOCK0001", port: str = "mock0"):
        super().__init__()
        self.card_type = card_type
        self.name = f"Mock {card_type.name}"
        self._num_relays = num_relays
        self.present = present
        self.serial = serial
        self.port = port
        self.states = {r: RelayState.OFF for r in range(1, num_relays + 1)}
        self.calls = []
        self.detect_error: Optional[Exception] = None
        self.io_error: Optional[Exception] = None

    @property
    def num_relays(self) -> int:
        return self._num_relays

    def detect(self, serial=None):
        self.calls.append(("detect", serial))
        if self.detect_error:
            raise self.detect_error
        if not self.present:
            return None
        if serial is not None and serial != self.serial:
            return None
        return self.found(self.port)

    def enumerate_cards(self):
        return [RelayInfo(self.card_type, self.serial)] if self.present else []

    def get_relay(self, port, relay, serial=None):
        self.check_relay(relay)
        if self.io_error:
            raise self.io_error
        self.calls.append(("get", relay))
        return self.states[relay]

    def set_relay(self, port, relay, state, serial=None):
        self.check_relay(relay)
        self.check_state(state)
        if self.io_error:
            raise self.io_error
        self.calls.append(("set", relay, RelayState(state)))
        self.states[relay] = RelayState(state)

    @property
    def io_calls(self):
        return [c for c in self.calls if c[0] != "detect"]
