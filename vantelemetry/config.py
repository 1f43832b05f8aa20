"""
Process configuration.

Defaults, overridden by an optional YAML file (CONFIG_FILE), overridden by
environment variables. Example file:

    data_dir: /var/lib/van-telemetry
    storage: json              # json | memory
    refresh_interval_seconds: 5
    plugin_timeout_seconds: 5
    web: {host: 0.0.0.0, port: 8080}
    hub: {host: 0.0.0.0, port: 8765}
    plugins:
      MQTT LED Dimmer:
        enabled: true
        broker: 192.168.1.10
        base_topic: vandaemon/leddimmer
      Modbus Control Plugin:
        enabled: true
        timeout: 2
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger("Config")

MQTT_PLUGIN = "MQTT LED Dimmer"
MODBUS_PLUGIN = "Modbus Control Plugin"


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    data_dir: str = "data"
    storage: str = "json"
    refresh_interval: float = 5.0
    plugin_timeout: float = 5.0
    web_host: str = "0.0.0.0"
    web_port: int = 8080
    hub_host: str = "0.0.0.0"
    hub_port: int = 8765
    enable_modbus: bool = False
    enable_mqtt: bool = False
    log_level: str = "INFO"
    plugins: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def plugin_config(self, name: str) -> Dict[str, Any]:
        config = dict(self.plugins.get(name) or {})
        config.pop("enabled", None)
        return config

    def validate(self) -> "Settings":
        if self.storage not in ("json", "memory"):
            raise ConfigurationError(f"STORAGE must be 'json' or 'memory', got {self.storage!r}")
        if self.refresh_interval <= 0:
            raise ConfigurationError("Refresh interval must be positive")
        if self.plugin_timeout <= 0:
            raise ConfigurationError("Plugin timeout must be positive")
        for port in (self.web_port, self.hub_port):
            if not 0 < port < 65536:
                raise ConfigurationError(f"Invalid port: {port}")
        return self

    @classmethod
    def load(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        settings = cls()

        config_file = env.get("CONFIG_FILE")
        if config_file:
            settings._apply_file(config_file)

        try:
            settings.data_dir = env.get("DATA_DIR", settings.data_dir)
            settings.storage = env.get("STORAGE", settings.storage).lower()
            settings.refresh_interval = float(env.get("REFRESH_INTERVAL_SECONDS", settings.refresh_interval))
            settings.plugin_timeout = float(env.get("PLUGIN_TIMEOUT_SECONDS", settings.plugin_timeout))
            settings.web_host = env.get("WEB_HOST", settings.web_host)
            settings.web_port = int(env.get("WEB_PORT", settings.web_port))
            settings.hub_host = env.get("HUB_HOST", settings.hub_host)
            settings.hub_port = int(env.get("HUB_PORT", settings.hub_port))
            settings.enable_modbus = _as_bool(env.get("ENABLE_MODBUS", settings.enable_modbus))
            settings.enable_mqtt = _as_bool(env.get("ENABLE_MQTT", settings.enable_mqtt))
            settings.log_level = env.get("LOG_LEVEL", settings.log_level).upper()
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment setting: {e}") from e

        if "MQTT_BROKER" in env:
            settings.plugins.setdefault(MQTT_PLUGIN, {})["broker"] = env["MQTT_BROKER"]
        if "MQTT_PORT" in env:
            settings.plugins.setdefault(MQTT_PLUGIN, {})["port"] = env["MQTT_PORT"]

        return settings.validate()

    def _apply_file(self, path: str) -> None:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")

        web = data.get("web") or {}
        hub = data.get("hub") or {}
        try:
            self.data_dir = str(data.get("data_dir", self.data_dir))
            self.storage = str(data.get("storage", self.storage)).lower()
            self.refresh_interval = float(data.get("refresh_interval_seconds", self.refresh_interval))
            self.plugin_timeout = float(data.get("plugin_timeout_seconds", self.plugin_timeout))
            self.web_host = str(web.get("host", self.web_host))
            self.web_port = int(web.get("port", self.web_port))
            self.hub_host = str(hub.get("host", self.hub_host))
            self.hub_port = int(hub.get("port", self.hub_port))
            self.log_level = str(data.get("log_level", self.log_level)).upper()
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value in {path}: {e}") from e

        plugins = data.get("plugins") or {}
        if not isinstance(plugins, dict):
            raise ConfigurationError(f"'plugins' in {path} must be a mapping")
        self.plugins = {str(name): dict(block or {}) for name, block in plugins.items()}
        if MQTT_PLUGIN in self.plugins:
            self.enable_mqtt = _as_bool(self.plugins[MQTT_PLUGIN].get("enabled", True))
        if MODBUS_PLUGIN in self.plugins:
            self.enable_modbus = _as_bool(self.plugins[MODBUS_PLUGIN].get("enabled", True))
        logger.info(f"Loaded configuration from {path}")
