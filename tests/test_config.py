"""Tests for the configuration file reader."""

import logging

import pytest

from crelay.config import RelayConfig, load_config, parse_config
from crelay.errors import ConfigError

FULL_CONFIG = """
[HTTP server]
server_iface = 127.0.0.1
server_port = 8080
relay1_label = Garage door
relay3_label = Pump  ; inline comment
pulse_duration = 0.5

[MQTT server]
mqtt_broker = test.mosquitto.org
mqtt_port = 8883
mqtt_tag = garage

[GPIO drv]
num_relays = 4
active_value = 0
relay1_gpio_pin = 17
relay2_gpio_pin = 18
relay3_gpio_pin = 27
relay4_gpio_pin = 22

[Sainsmart drv]
num_relays = 8
"""


class TestParseConfig:

    def test_defaults(self):
        config = RelayConfig()
        assert config.http.iface == "0.0.0.0"
        assert config.http.port == 8000
        assert config.http.labels[0] == "My appliance 1"
        assert config.http.pulse_duration == 1.0
        assert not config.mqtt.enabled
        assert config.mqtt.tag == "default"
        assert config.gpio.num_relays == 8
        assert config.gpio.active_value == 1
        assert config.gpio.pins == [0] * 8
        assert config.sainsmart.num_relays == 4

    def test_full_file(self):
        config = parse_config(FULL_CONFIG)
        assert config.http.iface == "127.0.0.1"
        assert config.http.port == 8080
        assert config.http.labels[:3] == ["Garage door", "My appliance 2", "Pump"]
        assert config.http.pulse_duration == 0.5
        assert config.mqtt.enabled
        assert config.mqtt.broker == "test.mosquitto.org"
        assert config.mqtt.port == 8883
        assert config.mqtt.tag == "garage"
        assert config.gpio.num_relays == 4
        assert config.gpio.active_value == 0
        assert config.gpio.pins[:5] == [17, 18, 27, 22, 0]
        assert config.sainsmart.num_relays == 8

    def test_unknown_key_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = parse_config("[GPIO drv]\nbogus = 1\n")
        assert "GPIO drv/bogus" in caplog.text
        assert config == RelayConfig()

    def test_relay_count_out_of_range(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = parse_config("[Sainsmart drv]\nnum_relays = 9\n")
        assert config.sainsmart.num_relays == 4
        assert "out of range" in caplog.text

    @pytest.mark.parametrize("text", [
        "[HTTP server]\nserver_port = http\n",
        "[GPIO drv]\nactive_value = 2\n",
        "[GPIO drv]\nrelay1_gpio_pin = seventeen\n",
        "[HTTP server]\npulse_duration = -1\n",
        "not an ini file",
    ])
    def test_malformed(self, text):
        with pytest.raises(ConfigError):
            parse_config(text)


class TestLoadConfig:

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path / "crelay.conf") == RelayConfig()

    def test_load_file(self, tmp_path):
        path = tmp_path / "crelay.conf"
        path.write_text(FULL_CONFIG)
        assert load_config(path).mqtt.tag == "garage"

    def test_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "other.conf"
        path.write_text("[MQTT server]\nmqtt_tag = from-env\n")
        monkeypatch.setenv("CRELAY_CONFIG", str(path))
        assert load_config().mqtt.tag == "from-env"
