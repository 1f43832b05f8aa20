"""
REST API for the van dashboard.
Thin JSON layer over the domain services: routing, (de)serialization and
error-to-status mapping only.
"""
import logging
import threading

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .. import __version__
from ..exceptions import ValidationError, VanTelemetryError
from ..models import (
    Control, DevicePosition, ElectricalConnection, ElectricalDevice, ElectricalSystem,
    SystemConfiguration, Tank
)
from ..services import ServiceBundle

logger = logging.getLogger("WebAPI")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _parse(entity_cls, data: dict):
    try:
        return entity_cls.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid {entity_cls.__name__}: {e}") from e


def _parse_for_update(entity_cls, data: dict, route_id: str, id_field: str = 'id'):
    """Body id must match the route id; a missing body id takes the route id."""
    body_id = data.get(id_field)
    if body_id and str(body_id) != route_id:
        raise ValidationError(f"{id_field} mismatch: route has {route_id}, body has {body_id}")
    data = dict(data, **{id_field: route_id})
    return _parse(entity_cls, data)


def _flag(name: str, alt: str = None) -> bool:
    raw = request.args.get(name, request.args.get(alt, "false") if alt else "false")
    return str(raw).lower() in ("1", "true", "yes")


def create_app(services: ServiceBundle) -> Flask:
    """
    Factory function to create Flask app with injected services (DIP).
    """
    app = Flask(__name__)
    app.config['services'] = services
    CORS(app, supports_credentials=True)

    # --- error mapping ---

    @app.errorhandler(VanTelemetryError)
    def handle_domain_error(e: VanTelemetryError):
        if e.status_code >= 500 and e.status_code != 503:
            logger.error(f"Unhandled domain error: {e}", exc_info=True)
            return jsonify({'error': 'Internal server error'}), 500
        return jsonify({'error': str(e)}), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description}), e.code
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({'error': 'Internal server error'}), 500

    # --- health ---

    @app.route('/api/health')
    def health():
        svc = app.config['services']
        return jsonify({
            'status': 'ok',
            'version': __version__,
            'degraded': svc.degraded_services(),
        })

    # --- tanks ---

    @app.route('/api/tanks', methods=['GET'])
    def list_tanks():
        svc = app.config['services']
        return jsonify([t.to_dict() for t in svc.tanks.get_all()])

    @app.route('/api/tanks', methods=['POST'])
    def create_tank():
        svc = app.config['services']
        tank = svc.tanks.create(_parse(Tank, _json_body()))
        return jsonify(tank.to_dict()), 201

    @app.route('/api/tanks/refresh', methods=['POST'])
    def refresh_tanks():
        svc = app.config['services']
        return jsonify([t.to_dict() for t in svc.tanks.refresh_all()])

    @app.route('/api/tanks/<tank_id>', methods=['GET'])
    def get_tank(tank_id):
        svc = app.config['services']
        return jsonify(svc.tanks.get_by_id(tank_id).to_dict())

    @app.route('/api/tanks/<tank_id>/level', methods=['GET'])
    def get_tank_level(tank_id):
        svc = app.config['services']
        level = svc.tanks.refresh_level(tank_id)
        return jsonify({'tank_id': tank_id, 'level': round(level, 2)})

    @app.route('/api/tanks/<tank_id>', methods=['PUT'])
    def update_tank(tank_id):
        svc = app.config['services']
        tank = svc.tanks.update(_parse_for_update(Tank, _json_body(), tank_id))
        return jsonify(tank.to_dict())

    @app.route('/api/tanks/<tank_id>', methods=['DELETE'])
    def delete_tank(tank_id):
        svc = app.config['services']
        svc.tanks.delete(tank_id)
        return '', 204

    # --- controls ---

    @app.route('/api/controls', methods=['GET'])
    def list_controls():
        svc = app.config['services']
        return jsonify([c.to_dict() for c in svc.controls.get_all()])

    @app.route('/api/controls', methods=['POST'])
    def create_control():
        svc = app.config['services']
        control = svc.controls.create(_parse(Control, _json_body()))
        return jsonify(control.to_dict()), 201

    @app.route('/api/controls/refresh', methods=['POST'])
    def refresh_controls():
        svc = app.config['services']
        return jsonify([c.to_dict() for c in svc.controls.refresh_all()])

    @app.route('/api/controls/<control_id>', methods=['GET'])
    def get_control(control_id):
        svc = app.config['services']
        return jsonify(svc.controls.get_by_id(control_id).to_dict())

    @app.route('/api/controls/<control_id>/state', methods=['GET'])
    def get_control_state(control_id):
        svc = app.config['services']
        state = svc.controls.get_state(control_id)
        return jsonify({'control_id': control_id, 'state': state.to_json()})

    @app.route('/api/controls/<control_id>/state', methods=['POST'])
    def set_control_state(control_id):
        svc = app.config['services']
        data = _json_body()
        if 'state' not in data:
            raise ValidationError("Body must contain 'state'")
        success = svc.controls.set_state(control_id, data['state'])
        state = svc.controls.get_by_id(control_id).state
        return jsonify({'control_id': control_id, 'state': state.to_json(), 'success': success})

    @app.route('/api/controls/<control_id>', methods=['PUT'])
    def update_control(control_id):
        svc = app.config['services']
        control = svc.controls.update(_parse_for_update(Control, _json_body(), control_id))
        return jsonify(control.to_dict())

    @app.route('/api/controls/<control_id>', methods=['DELETE'])
    def delete_control(control_id):
        svc = app.config['services']
        svc.controls.delete(control_id)
        return '', 204

    # --- alerts ---

    @app.route('/api/alerts', methods=['GET'])
    def list_alerts():
        svc = app.config['services']
        include = _flag('includeAcknowledged', 'include_acknowledged')
        return jsonify([a.to_dict() for a in svc.alerts.get_alerts(include_acknowledged=include)])

    @app.route('/api/alerts/check', methods=['POST'])
    def check_alerts():
        svc = app.config['services']
        svc.alerts.check_tank_alerts()
        return jsonify([a.to_dict() for a in svc.alerts.get_alerts()])

    @app.route('/api/alerts/<alert_id>', methods=['GET'])
    def get_alert(alert_id):
        svc = app.config['services']
        return jsonify(svc.alerts.get_alert(alert_id).to_dict())

    @app.route('/api/alerts/<alert_id>/acknowledge', methods=['POST'])
    def acknowledge_alert(alert_id):
        svc = app.config['services']
        return jsonify(svc.alerts.acknowledge(alert_id).to_dict())

    @app.route('/api/alerts/<alert_id>', methods=['DELETE'])
    def delete_alert(alert_id):
        svc = app.config['services']
        svc.alerts.delete(alert_id)
        return '', 204

    # --- battery summary ---

    @app.route('/api/electrical', methods=['GET'])
    def get_electrical():
        svc = app.config['services']
        return jsonify(svc.electrical.get().to_dict())

    @app.route('/api/electrical', methods=['PUT'])
    def update_electrical():
        svc = app.config['services']
        system = svc.electrical.update(_parse(ElectricalSystem, _json_body()))
        return jsonify(system.to_dict())

    @app.route('/api/electrical/refresh', methods=['POST'])
    def refresh_electrical():
        svc = app.config['services']
        return jsonify(svc.electrical.refresh().to_dict())

    # --- electrical devices and connections ---

    @app.route('/api/electrical-devices', methods=['GET'])
    def list_devices():
        svc = app.config['services']
        return jsonify([d.to_dict() for d in svc.devices.get_all_devices()])

    @app.route('/api/electrical-devices', methods=['POST'])
    def create_device():
        svc = app.config['services']
        device = svc.devices.create_device(_parse(ElectricalDevice, _json_body()))
        return jsonify(device.to_dict()), 201

    @app.route('/api/electrical-devices/metrics', methods=['GET'])
    def device_metrics():
        svc = app.config['services']
        return jsonify(svc.devices.get_all_metrics())

    @app.route('/api/electrical-devices/connections', methods=['GET'])
    def list_connections():
        svc = app.config['services']
        return jsonify([c.to_dict() for c in svc.devices.get_all_connections()])

    @app.route('/api/electrical-devices/connections', methods=['POST'])
    def create_connection():
        svc = app.config['services']
        connection = svc.devices.create_connection(_parse(ElectricalConnection, _json_body()))
        return jsonify(connection.to_dict()), 201

    @app.route('/api/electrical-devices/connections/flows', methods=['GET'])
    def connection_flows():
        svc = app.config['services']
        return jsonify(svc.devices.get_all_flows())

    @app.route('/api/electrical-devices/connections/<connection_id>', methods=['GET'])
    def get_connection(connection_id):
        svc = app.config['services']
        return jsonify(svc.devices.get_connection(connection_id).to_dict())

    @app.route('/api/electrical-devices/connections/<connection_id>', methods=['PUT'])
    def update_connection(connection_id):
        svc = app.config['services']
        connection = svc.devices.update_connection(
            _parse_for_update(ElectricalConnection, _json_body(), connection_id))
        return jsonify(connection.to_dict())

    @app.route('/api/electrical-devices/connections/<connection_id>', methods=['DELETE'])
    def delete_connection(connection_id):
        svc = app.config['services']
        svc.devices.delete_connection(connection_id)
        return '', 204

    @app.route('/api/electrical-devices/<device_id>', methods=['GET'])
    def get_device(device_id):
        svc = app.config['services']
        return jsonify(svc.devices.get_device(device_id).to_dict())

    @app.route('/api/electrical-devices/<device_id>', methods=['PUT'])
    def update_device(device_id):
        svc = app.config['services']
        device = svc.devices.update_device(_parse_for_update(ElectricalDevice, _json_body(), device_id))
        return jsonify(device.to_dict())

    @app.route('/api/electrical-devices/<device_id>', methods=['DELETE'])
    def delete_device(device_id):
        svc = app.config['services']
        svc.devices.delete_device(device_id)
        return '', 204

    # --- diagram positions ---

    @app.route('/api/device-positions', methods=['GET'])
    def list_positions():
        svc = app.config['services']
        return jsonify([p.to_dict() for p in svc.positions.get_all()])

    @app.route('/api/device-positions', methods=['POST'])
    def save_position():
        svc = app.config['services']
        position = svc.positions.save(_parse(DevicePosition, _json_body()))
        return jsonify(position.to_dict())

    @app.route('/api/device-positions/auto', methods=['POST'])
    def auto_position():
        svc = app.config['services']
        data = _json_body()
        if not data.get('device_id'):
            raise ValidationError("device_id is required")
        position = svc.positions.place_new_device(str(data['device_id']), str(data.get('device_type', "")))
        return jsonify(position.to_dict())

    @app.route('/api/device-positions/<device_id>', methods=['GET'])
    def get_position(device_id):
        svc = app.config['services']
        return jsonify(svc.positions.get(device_id).to_dict())

    @app.route('/api/device-positions/<device_id>', methods=['PUT'])
    def update_position(device_id):
        svc = app.config['services']
        position = svc.positions.save(
            _parse_for_update(DevicePosition, _json_body(), device_id, id_field='device_id'))
        return jsonify(position.to_dict())

    @app.route('/api/device-positions/<device_id>', methods=['DELETE'])
    def delete_position(device_id):
        svc = app.config['services']
        svc.positions.delete(device_id)
        return '', 204

    # --- settings ---

    @app.route('/api/settings', methods=['GET'])
    def get_settings():
        svc = app.config['services']
        return jsonify(svc.settings.get().to_dict())

    @app.route('/api/settings', methods=['PUT'])
    def update_settings():
        svc = app.config['services']
        config = svc.settings.update(_parse(SystemConfiguration, _json_body()))
        return jsonify(config.to_dict())

    @app.route('/api/settings/van-diagrams', methods=['GET'])
    def van_diagrams():
        svc = app.config['services']
        return jsonify(svc.settings.available_van_diagrams())

    return app


class WebServer:
    """
    Web server wrapper, run in a background thread like the other servers.
    """

    def __init__(self, services: ServiceBundle, host: str = "0.0.0.0", port: int = 8080):
        self._services = services
        self._host = host
        self._port = port
        self._app = None
        self._server = None
        self._thread = None

    def start(self) -> None:
        """Start the web server in a background thread."""
        from werkzeug.serving import make_server

        self._app = create_app(self._services)
        self._server = make_server(self._host, self._port, self._app, threaded=True)
        self._thread = threading.Thread(target=self._server.serve_forever, name="web-server", daemon=True)
        self._thread.start()
        logger.info(f"REST API started on http://{self._host}:{self._port}")

    def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.shutdown()
        logger.info("Web server stopped")
