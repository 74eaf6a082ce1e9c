"""Tests for the Conrad CP2104 backend."""

import pytest

from crelay.backends.backend_conrad import ConradBackend
from crelay.backends.base import CardType, RelayInfo, RelayState
from crelay.errors import DeviceUnavailable, RelayOutOfRange

from mock_devices import FakeCp2104


@pytest.fixture
def backend(config):
    return ConradBackend(config)


class TestConradDetect:
    """Test card detection and enumeration."""

    def test_detect_first_card(self, backend, usb_bus):
        usb_bus.append(FakeCp2104("A1B2"))
        card = backend.detect()
        assert card.card_type == CardType.CONRAD_4CHANNEL
        assert card.port == "Serial number A1B2"
        assert card.num_relays == 4
        assert card.name == "Conrad USB 4-channel relay card"

    def test_detect_by_serial(self, backend, usb_bus):
        usb_bus.extend([FakeCp2104("A1B2"), FakeCp2104("C3D4")])
        assert backend.detect("C3D4").port == "Serial number C3D4"

    def test_detect_serial_mismatch(self, backend, usb_bus):
        usb_bus.append(FakeCp2104("A1B2"))
        assert backend.detect("ZZZZ") is None

    def test_detect_no_card(self, backend, usb_bus):
        assert backend.detect() is None

    def test_enumerate_two_cards(self, backend, usb_bus):
        usb_bus.extend([FakeCp2104("A1B2"), FakeCp2104("C3D4")])
        assert backend.enumerate_cards() == [
            RelayInfo(CardType.CONRAD_4CHANNEL, "A1B2"),
            RelayInfo(CardType.CONRAD_4CHANNEL, "C3D4"),
        ]

    def test_enumerate_skips_unreadable_serial(self, backend, usb_bus):
        usb_bus.extend([FakeCp2104(None), FakeCp2104("C3D4")])
        assert [c.serial for c in backend.enumerate_cards()] == ["C3D4"]


class TestConradRelays:
    """Test relay get/set through the GPIO latch."""

    def test_cleared_bit_is_on(self, backend, usb_bus):
        usb_bus.append(FakeCp2104("A1B2", latch=0x0B))
        port = backend.detect().port
        assert backend.get_relay(port, 3) == RelayState.ON
        assert backend.get_relay(port, 1) == RelayState.OFF

    def test_read_transfer(self, backend, usb_bus):
        card = FakeCp2104("A1B2")
        usb_bus.append(card)
        backend.get_relay("Serial number A1B2", 1)
        assert card.transfers == [(0xC0, 0xFF, 0x00C2, 0, 1, 1000)]

    def test_set_on_writes_mask_only(self, backend, usb_bus):
        card = FakeCp2104("A1B2")
        usb_bus.append(card)
        backend.set_relay("Serial number A1B2", 2, RelayState.ON)
        assert card.transfers == [(0x40, 0xFF, 0x37E1, 0x0002, None, 1000)]
        assert card.latch == 0x0D

    def test_set_off_writes_mask_and_value(self, backend, usb_bus):
        card = FakeCp2104("A1B2", latch=0x00)
        usb_bus.append(card)
        backend.set_relay("Serial number A1B2", 4, RelayState.OFF)
        assert card.transfers[-1][3] == 0x0808
        assert card.latch == 0x08

    def test_round_trip_keeps_siblings(self, backend, usb_bus):
        usb_bus.append(FakeCp2104("A1B2"))
        port = backend.detect().port
        backend.set_relay(port, 1, RelayState.ON)
        backend.set_relay(port, 3, RelayState.ON)
        backend.set_relay(port, 1, RelayState.OFF)
        states = [backend.get_relay(port, r) for r in range(1, 5)]
        assert states == [RelayState.OFF, RelayState.OFF, RelayState.ON, RelayState.OFF]

    def test_port_selects_card(self, backend, usb_bus):
        first, second = FakeCp2104("A1B2"), FakeCp2104("C3D4")
        usb_bus.extend([first, second])
        backend.set_relay("Serial number C3D4", 1, RelayState.ON)
        assert first.transfers == []
        assert second.latch == 0x0E

    @pytest.mark.parametrize("relay", [0, 5, -1])
    def test_out_of_range_without_io(self, backend, usb_bus, relay):
        card = FakeCp2104("A1B2")
        usb_bus.append(card)
        with pytest.raises(RelayOutOfRange):
            backend.set_relay("Serial number A1B2", relay, RelayState.ON)
        with pytest.raises(RelayOutOfRange):
            backend.get_relay("Serial number A1B2", relay)
        assert card.transfers == []

    def test_unplugged_card(self, backend, usb_bus):
        with pytest.raises(DeviceUnavailable):
            backend.get_relay("Serial number A1B2", 1)
