"""Shared fixtures: fake USB/HID buses patched over the backend touchpoints."""

import pytest

from crelay import hiddev, usbdev
from crelay.config import RelayConfig


@pytest.fixture
def config():
    return RelayConfig()


@pytest.fixture(autouse=True)
def no_config_file(monkeypatch, tmp_path):
    """Never pick up a real /etc/crelay.conf."""
    monkeypatch.setenv("CRELAY_CONFIG", str(tmp_path / "missing.conf"))


@pytest.fixture
def usb_bus(monkeypatch):
    """List of fake pyusb devices seen by the USB backends."""
    devices = []

    def find_usb_devices(vid, pid):
        return [d for d in devices if d.idVendor == vid and d.idProduct == pid]

    monkeypatch.setattr(usbdev, "find_usb_devices", find_usb_devices)
    monkeypatch.setattr(usbdev, "release", lambda dev: None)
    return devices


@pytest.fixture
def hid_bus(monkeypatch):
    """Dict of hidapi info dicts by VID:PID and fake devices by port."""
    bus = {"infos": {}, "devices": {}, "opened": []}

    def hid_enumerate(vid, pid):
        return list(bus["infos"].get((vid, pid), []))

    def open_hid(port):
        from crelay.errors import DeviceUnavailable
        if port not in bus["devices"]:
            raise DeviceUnavailable(f"Unable to open HID device {port}")
        bus["opened"].append(port)
        return bus["devices"][port]

    monkeypatch.setattr(hiddev, "hid_enumerate", hid_enumerate)
    monkeypatch.setattr(hiddev, "open_hid", open_hid)
    return bus
