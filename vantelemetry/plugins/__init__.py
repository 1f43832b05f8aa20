from .registry import PluginRegistry
from .simulated import SimulatedSensorPlugin, SimulatedControlPlugin
from .modbus import ModbusControlPlugin
from .mqtt_dimmer import MqttLedDimmerPlugin

__all__ = [
    'PluginRegistry',
    'SimulatedSensorPlugin', 'SimulatedControlPlugin',
    'ModbusControlPlugin',
    'MqttLedDimmerPlugin',
]
