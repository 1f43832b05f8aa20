import logging
from typing import Any, Dict, List, Optional

from ..exceptions import InitializationError, PluginUnavailableError
from ..interfaces import ControlPlugin, HardwarePlugin, SensorPlugin

logger = logging.getLogger("PluginRegistry")


class PluginRegistry:
    """
    Name -> plugin lookup, built once at startup and handed to the services.
    Entities reference plugins by the name the plugin reports.
    """

    def __init__(self):
        self._sensors: Dict[str, SensorPlugin] = {}
        self._controls: Dict[str, ControlPlugin] = {}

    def register(self, plugin: HardwarePlugin) -> None:
        if plugin.name in self._sensors or plugin.name in self._controls:
            raise ValueError(f"Plugin '{plugin.name}' is already registered")
        if isinstance(plugin, SensorPlugin):
            self._sensors[plugin.name] = plugin
        elif isinstance(plugin, ControlPlugin):
            self._controls[plugin.name] = plugin
        else:
            raise TypeError(f"{type(plugin).__name__} is neither a sensor nor a control plugin")
        logger.info(f"Registered plugin: {plugin.name} v{plugin.version}")

    def initialize_all(self, configs: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        """
        Initialize every plugin with its block from configs (keyed by plugin
        name). A plugin that fails is dropped, so entities pointing at it
        soft-fail as "unavailable" instead of calling a half-built adapter.
        """
        configs = configs or {}
        for plugin in self.all():
            try:
                plugin.initialize(dict(configs.get(plugin.name) or {}))
            except InitializationError as e:
                logger.error(f"Plugin {plugin.name} failed to initialize and was disabled: {e}")
                self._sensors.pop(plugin.name, None)
                self._controls.pop(plugin.name, None)

    def sensor(self, name: str) -> SensorPlugin:
        plugin = self._sensors.get(name)
        if plugin is None:
            raise PluginUnavailableError(name)
        return plugin

    def control(self, name: str) -> ControlPlugin:
        plugin = self._controls.get(name)
        if plugin is None:
            raise PluginUnavailableError(name)
        return plugin

    def all(self) -> List[HardwarePlugin]:
        return list(self._sensors.values()) + list(self._controls.values())

    def names(self) -> List[str]:
        return [p.name for p in self.all()]

    def close_all(self) -> None:
        for plugin in self.all():
            try:
                plugin.close()
            except Exception as e:
                logger.error(f"Error closing plugin {plugin.name}: {e}")
