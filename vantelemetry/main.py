"""
Van Telemetry Main Entry Point

Wires the storage backend, hardware plugins, domain services, live update
hub, polling loop and REST API together and runs them until interrupted.
"""
import asyncio
import logging
from typing import Optional

from . import __version__
from .config import MODBUS_PLUGIN, MQTT_PLUGIN, Settings
from .interfaces import BlobStore
from .persistence import InMemoryStore, JsonFileStore
from .plugins import (
    ModbusControlPlugin, MqttLedDimmerPlugin, PluginRegistry,
    SimulatedControlPlugin, SimulatedSensorPlugin
)
from .poller import TelemetryPoller
from .servers import TelemetryHub
from .services import (
    AlertService, ControlService, DevicePositionService, DimmerSyncService,
    ElectricalDeviceService, ElectricalService, PluginCaller, ServiceBundle,
    SettingsService, TankService
)
from .web.app import WebServer

logger = logging.getLogger("Main")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, level, logging.INFO)
    )


def build_store(settings: Settings) -> BlobStore:
    if settings.storage == "memory":
        logger.warning("Using in-memory storage: configuration is lost on restart")
        return InMemoryStore()
    return JsonFileStore(settings.data_dir)


def build_registry(settings: Settings) -> PluginRegistry:
    """Simulated plugins always; hardware plugins when enabled."""
    registry = PluginRegistry()
    registry.register(SimulatedSensorPlugin())
    registry.register(SimulatedControlPlugin())
    if settings.enable_modbus:
        registry.register(ModbusControlPlugin())
    if settings.enable_mqtt:
        registry.register(MqttLedDimmerPlugin())
    configs = {name: settings.plugin_config(name) for name in registry.names()}
    registry.initialize_all(configs)
    return registry


def build_services(store: BlobStore, registry: PluginRegistry, caller: PluginCaller) -> ServiceBundle:
    positions = DevicePositionService(store)
    tanks = TankService(store, registry, caller=caller, positions=positions)
    controls = ControlService(store, registry, caller=caller, positions=positions)
    devices = ElectricalDeviceService(store, registry, caller=caller, positions=positions)
    electrical = ElectricalService(store, registry, caller=caller)
    return ServiceBundle(
        tanks=tanks,
        controls=controls,
        alerts=AlertService(tanks),
        electrical=electrical,
        devices=devices,
        positions=positions,
        settings=SettingsService(store),
    )


class VanTelemetryApp:
    """
    Main orchestrator: starts components in dependency order and stops
    them in reverse.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._store = build_store(settings)
        self._registry = build_registry(settings)
        self._caller = PluginCaller(timeout=settings.plugin_timeout)
        self.services = build_services(self._store, self._registry, self._caller)

        self._hub = TelemetryHub(host=settings.hub_host, port=settings.hub_port)
        self.services.controls.set_publisher(self._hub)
        self._poller = TelemetryPoller(
            self.services.tanks, self.services.alerts, self._hub,
            electrical=self.services.electrical,
            devices=self.services.devices,
            interval=settings.refresh_interval,
        )
        self._dimmer_sync: Optional[DimmerSyncService] = None
        if MQTT_PLUGIN in self._registry.names():
            dimmer = self._registry.control(MQTT_PLUGIN)
            self._dimmer_sync = DimmerSyncService(dimmer, self.services.controls)
        self._web = WebServer(self.services, host=settings.web_host, port=settings.web_port)
        self._stopped = asyncio.Event()

    async def initialize(self) -> None:
        """Initialize all components."""
        logger.info(f"Initializing Van Telemetry v{__version__}...")
        logger.info(f"Active plugins: {', '.join(self._registry.names())}")
        if self._settings.enable_modbus and MODBUS_PLUGIN not in self._registry.names():
            logger.warning("Modbus was enabled but the plugin is not available")

        self.services.start_all()
        degraded = self.services.degraded_services()
        if degraded:
            logger.warning(f"Running degraded (stored data unreadable): {', '.join(degraded)}")

        self._hub.start()
        self._poller.start()
        if self._dimmer_sync:
            self._dimmer_sync.start()
        self._web.start()
        logger.info("Van Telemetry initialized")

    async def run(self) -> None:
        """Block until stop() is called; the work happens on background threads."""
        logger.info("Entering main loop")
        await self._stopped.wait()

    def stop(self) -> None:
        """Stop all components."""
        logger.info("Stopping Van Telemetry...")
        self._web.stop()
        if self._dimmer_sync:
            self._dimmer_sync.stop()
        self._poller.stop()
        self._hub.stop()
        self._registry.close_all()
        self._caller.shutdown()
        self._stopped.set()
        logger.info("Van Telemetry stopped")


async def main():
    """Application entry point."""
    settings = Settings.load()
    configure_logging(settings.log_level)

    app = VanTelemetryApp(settings)
    try:
        await app.initialize()
        await app.run()
    finally:
        app.stop()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    run()
