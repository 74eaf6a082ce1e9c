"""
USB enumeration helpers shared by the libusb based backends (pyusb).
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def pyusb_available() -> bool:
    try:
        import usb.core  # noqa: F401
    except ImportError:
        return False
    return True


def find_usb_devices(vid: int, pid: int) -> list[Any]:
    """Return all connected USB devices matching VID:PID."""
    try:
        import usb.core
    except ImportError:
        # pyusb not installed, nothing to find
        return []

    try:
        return list(usb.core.find(find_all=True, idVendor=vid, idProduct=pid))
    except usb.core.NoBackendError:
        logger.debug("No libusb backend available")
        return []
    except usb.core.USBError as e:
        logger.warning("Unable to list USB devices (%s)", e)
        return []


def get_serial(dev: Any) -> Optional[str]:
    """Read the serial number string descriptor, None if unreadable."""
    try:
        return dev.serial_number
    except (ValueError, NotImplementedError, OSError) as e:
        # USBError is an OSError; ValueError means no langid (usually permissions)
        logger.debug("Unable to get serial number of %04x:%04x (%s)",
                     dev.idVendor, dev.idProduct, e)
        return None


def release(dev: Any) -> None:
    """Release the resources pyusb holds for dev (closes the handle)."""
    import usb.util
    usb.util.dispose_resources(dev)


def find_device(vid: int, pid: int, serial: Optional[str] = None) -> tuple[Any, Optional[str]]:
    """
    Find the first device matching VID:PID and, if given, the serial number.

    Returns:
        (device, serial) or (None, None) if nothing matches.
    """
    for dev in find_usb_devices(vid, pid):
        sernum = get_serial(dev)
        if serial is None or sernum == serial:
            return dev, sernum
        logger.debug("Skipping %04x:%04x with serial %s", vid, pid, sernum)
    return None, None
