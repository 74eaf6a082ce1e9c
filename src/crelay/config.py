"""
Configuration for the relay card drivers and the daemon front ends.

Settings are read from an INI style file (``/etc/crelay.conf`` by default):

    [HTTP server]
    server_iface = 0.0.0.0
    server_port = 8000
    relay1_label = Garage door
    pulse_duration = 1

    [MQTT server]
    mqtt_broker = test.mosquitto.org
    mqtt_port = 1883
    mqtt_tag = garage

    [GPIO drv]
    num_relays = 4
    active_value = 0
    relay1_gpio_pin = 17
    relay2_gpio_pin = 18

    [Sainsmart drv]
    num_relays = 8
"""

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "/etc/crelay.conf"
CONFIG_ENV_VAR = "CRELAY_CONFIG"

MAX_NUM_RELAYS = 8
DEFAULT_SERVER_PORT = 8000
DEFAULT_MQTT_PORT = 1883


def _default_labels() -> list[str]:
    return [f"My appliance {i}" for i in range(1, MAX_NUM_RELAYS + 1)]


@dataclass
class HttpConfig:
    """Built-in HTTP server settings."""
    iface: str = "0.0.0.0"
    port: int = DEFAULT_SERVER_PORT
    labels: list[str] = field(default_factory=_default_labels)
    pulse_duration: float = 1.0  # seconds


@dataclass
class MqttConfig:
    """MQTT client settings. An empty broker disables the client."""
    broker: str = ""
    port: int = DEFAULT_MQTT_PORT
    tag: str = "default"

    @property
    def enabled(self) -> bool:
        return bool(self.broker)


@dataclass
class GpioConfig:
    """Relays wired directly to GPIO pins through the sysfs interface."""
    num_relays: int = MAX_NUM_RELAYS
    active_value: int = 1  # pin level that energizes the relay
    pins: list[int] = field(default_factory=lambda: [0] * MAX_NUM_RELAYS)
    sysfs_base: str = "/sys/class/gpio"


@dataclass
class SainsmartConfig:
    """Sainsmart FTDI bitbang card (4 or 8 channel variant)."""
    num_relays: int = 4


@dataclass
class RelayConfig:
    """Complete configuration record."""
    http: HttpConfig = field(default_factory=HttpConfig)
    mqtt: MqttConfig = field(default_factory=MqttConfig)
    gpio: GpioConfig = field(default_factory=GpioConfig)
    sainsmart: SainsmartConfig = field(default_factory=SainsmartConfig)


# --------------------------------------------------------------------------
# Value parsing
# --------------------------------------------------------------------------

def _as_int(section: str, name: str, value: str) -> int:
    try:
        return int(value, 0)
    except ValueError:
        raise ConfigError(f"[{section}] {name}: expected an integer, got {value!r}") from None


def _as_float(section: str, name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"[{section}] {name}: expected a number, got {value!r}") from None


def _relay_count(section: str, name: str, value: str, default: int) -> int:
    count = _as_int(section, name, value)
    if not 1 <= count <= MAX_NUM_RELAYS:
        logger.warning("[%s] %s=%d out of range, using %d", section, name, count, default)
        return default
    return count


def _handlers(config: RelayConfig) -> dict[tuple[str, str], Callable[[str, str, str], None]]:
    """Map (section, option) to a setter on the config record."""

    def set_iface(s, n, v):
        config.http.iface = v

    def set_server_port(s, n, v):
        config.http.port = _as_int(s, n, v)

    def set_pulse(s, n, v):
        duration = _as_float(s, n, v)
        if duration < 0:
            raise ConfigError(f"[{s}] {n}: must not be negative")
        config.http.pulse_duration = duration

    def set_broker(s, n, v):
        config.mqtt.broker = v

    def set_mqtt_port(s, n, v):
        config.mqtt.port = _as_int(s, n, v)

    def set_tag(s, n, v):
        config.mqtt.tag = v

    def set_gpio_count(s, n, v):
        config.gpio.num_relays = _relay_count(s, n, v, config.gpio.num_relays)

    def set_active_value(s, n, v):
        level = _as_int(s, n, v)
        if level not in (0, 1):
            raise ConfigError(f"[{s}] {n}: must be 0 or 1, got {level}")
        config.gpio.active_value = level

    def set_sysfs_base(s, n, v):
        config.gpio.sysfs_base = v

    def set_sainsmart_count(s, n, v):
        config.sainsmart.num_relays = _relay_count(s, n, v, config.sainsmart.num_relays)

    handlers = {
        ("HTTP server", "server_iface"): set_iface,
        ("HTTP server", "server_port"): set_server_port,
        ("HTTP server", "pulse_duration"): set_pulse,
        ("MQTT server", "mqtt_broker"): set_broker,
        ("MQTT server", "mqtt_port"): set_mqtt_port,
        ("MQTT server", "mqtt_tag"): set_tag,
        ("GPIO drv", "num_relays"): set_gpio_count,
        ("GPIO drv", "active_value"): set_active_value,
        ("GPIO drv", "sysfs_base"): set_sysfs_base,
        ("Sainsmart drv", "num_relays"): set_sainsmart_count,
    }

    for index in range(MAX_NUM_RELAYS):
        def set_label(s, n, v, index=index):
            config.http.labels[index] = v

        def set_pin(s, n, v, index=index):
            config.gpio.pins[index] = _as_int(s, n, v)

        handlers[("HTTP server", f"relay{index + 1}_label")] = set_label
        handlers[("GPIO drv", f"relay{index + 1}_gpio_pin")] = set_pin

    return handlers


# --------------------------------------------------------------------------
# Loading
# --------------------------------------------------------------------------

def default_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE))


def parse_config(text: str, source: str = "<string>") -> RelayConfig:
    """
    Build a RelayConfig from INI text.

    Unknown sections or options are logged and ignored.

    Raises:
        ConfigError: on a syntax error or a malformed value.
    """
    parser = configparser.ConfigParser(interpolation=None, inline_comment_prefixes=(";", "#"))
    try:
        parser.read_string(text, source=source)
    except configparser.Error as e:
        raise ConfigError(f"{source}: {e}") from e

    config = RelayConfig()
    handlers = _handlers(config)

    for section in parser.sections():
        for name, value in parser.items(section):
            handler = handlers.get((section, name))
            if handler is None:
                logger.warning("Unknown config parameter %s/%s", section, name)
                continue
            handler(section, name, value.strip())

    return config


def load_config(path: Optional[str | Path] = None) -> RelayConfig:
    """
    Load the configuration file, falling back to defaults when it is missing.

    Args:
        path: Config file. Defaults to $CRELAY_CONFIG or /etc/crelay.conf.
    """
    config_path = Path(path) if path else default_config_path()

    if not config_path.exists():
        logger.info("Can't load %s, using default parameters", config_path)
        return RelayConfig()

    config = parse_config(config_path.read_text(), source=str(config_path))
    logger.info("Config parameters read from %s", config_path)
    logger.debug("Config: %s", config)
    return config
