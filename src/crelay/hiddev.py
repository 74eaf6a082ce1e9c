"""
HID helpers shared by the HID relay card backends (hidapi).
"""

import logging
from typing import Any

from .errors import DeviceUnavailable

logger = logging.getLogger(__name__)


def hidapi_available() -> bool:
    try:
        import hid  # noqa: F401
    except ImportError:
        return False
    return True


def hid_enumerate(vid: int, pid: int) -> list[dict[str, Any]]:
    """Return the hidapi device info dicts matching VID:PID."""
    import hid
    return list(hid.enumerate(vid, pid))


def path_to_port(path: bytes | str) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


def open_hid(port: str):
    """Open the HID device at port (a hidapi path)."""
    import hid

    dev = hid.device()
    try:
        dev.open_path(port.encode("utf-8"))
    except OSError as e:
        raise DeviceUnavailable(f"Unable to open HID device {port} ({e})") from e
    return dev
