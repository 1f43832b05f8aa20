"""
Van telemetry back-end.

Tanks, controls, electrical devices and alerts backed by pluggable
sensor/control hardware, with a polling loop that pushes live values
to WebSocket subscribers.
"""
__version__ = "0.1.0"
