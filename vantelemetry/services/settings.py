from typing import Dict, List, Optional

from ..exceptions import PersistenceError
from ..interfaces import BlobStore
from ..models import SystemConfiguration, new_id, utcnow
from .base import ManagedService

SETTINGS_KEY = "settings.json"

VAN_DIAGRAMS = [
    {"name": "Mercedes Sprinter LWB", "path": "/diagrams/sprinter-lwb.svg"},
    {"name": "Mercedes Sprinter MWB", "path": "/diagrams/sprinter-mwb.svg"},
    {"name": "Ford Transit Custom", "path": "/diagrams/transit-custom.svg"},
    {"name": "VW Crafter", "path": "/diagrams/vw-crafter.svg"},
    {"name": "Fiat Ducato", "path": "/diagrams/fiat-ducato.svg"},
]


class SettingsService(ManagedService):
    """Singleton dashboard configuration."""

    service_name = "SettingsService"

    def __init__(self, store: BlobStore):
        super().__init__()
        self._store = store
        self._config: Optional[SystemConfiguration] = None
        self._degraded = False

    @property
    def degraded(self) -> bool:
        return self._degraded

    def _load(self) -> None:
        try:
            data = self._store.load(SETTINGS_KEY)
        except PersistenceError as e:
            self._logger.error(f"Error loading settings, using defaults: {e}")
            self._degraded = True
            self._config = SystemConfiguration(id=new_id(), last_updated=utcnow())
            return
        if data:
            try:
                self._config = SystemConfiguration.from_dict(data)
            except (TypeError, ValueError, AttributeError) as e:
                self._logger.error(f"Malformed settings in {SETTINGS_KEY}, using defaults: {e}")
                self._degraded = True
                self._config = SystemConfiguration(id=new_id(), last_updated=utcnow())
                return
            if 'theme' in data:
                # Rewrite without the legacy field
                self._save()
        else:
            self._config = SystemConfiguration(id=new_id(), last_updated=utcnow())
            self._save()

    def _save(self) -> None:
        try:
            self._store.save(SETTINGS_KEY, self._config.to_dict())
            self._degraded = False
        except PersistenceError as e:
            self._logger.error(f"Error saving settings: {e}")
            self._degraded = True

    def get(self) -> SystemConfiguration:
        self._require_ready()
        return self._config

    def update(self, config: SystemConfiguration) -> SystemConfiguration:
        self._require_ready()
        config.id = self._config.id
        config.last_updated = utcnow()
        self._config = config
        self._save()
        self._logger.info(f"Updated settings: van model {config.van_model}, theme {config.theme_mode.value}")
        return config

    def available_van_diagrams(self) -> List[Dict[str, str]]:
        return [dict(d) for d in VAN_DIAGRAMS]
