import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .common import format_timestamp, parse_timestamp
from .types import DrivingSide, Theme, ThemeMode, ToolbarPosition, parse_enum

logger = logging.getLogger("Settings")

DEFAULT_VAN_MODEL = "Mercedes Sprinter LWB"
DEFAULT_VAN_DIAGRAM = "/diagrams/sprinter-lwb.svg"


@dataclass
class AlertSettings:
    enable_audio_alerts: bool = True
    enable_push_notifications: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enable_audio_alerts': self.enable_audio_alerts,
            'enable_push_notifications': self.enable_push_notifications,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertSettings":
        return cls(
            enable_audio_alerts=bool(data.get('enable_audio_alerts', True)),
            enable_push_notifications=bool(data.get('enable_push_notifications', False)),
        )


@dataclass
class SystemConfiguration:
    """
    Singleton dashboard configuration.

    The theme is stored as theme_mode + manual_theme. Older documents carry a
    single "theme" string ("Light" / "Dark"); from_dict folds it into
    theme_mode=MANUAL and the matching manual_theme, and to_dict never writes
    it back.
    """
    id: str = ""
    van_model: str = DEFAULT_VAN_MODEL
    van_diagram_path: str = DEFAULT_VAN_DIAGRAM
    toolbar_position: ToolbarPosition = ToolbarPosition.LEFT
    driving_side: DrivingSide = DrivingSide.LEFT
    theme_mode: ThemeMode = ThemeMode.MANUAL
    manual_theme: Theme = Theme.LIGHT
    enable_fullscreen_on_startup: bool = False
    show_fullscreen_toggle: bool = True
    alert_settings: AlertSettings = field(default_factory=AlertSettings)
    plugin_configurations: Dict[str, Any] = field(default_factory=dict)
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'van_model': self.van_model,
            'van_diagram_path': self.van_diagram_path,
            'toolbar_position': self.toolbar_position.value,
            'driving_side': self.driving_side.value,
            'theme_mode': self.theme_mode.value,
            'manual_theme': self.manual_theme.value,
            'enable_fullscreen_on_startup': self.enable_fullscreen_on_startup,
            'show_fullscreen_toggle': self.show_fullscreen_toggle,
            'alert_settings': self.alert_settings.to_dict(),
            'plugin_configurations': dict(self.plugin_configurations),
            'last_updated': format_timestamp(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemConfiguration":
        config = cls(
            id=str(data.get('id') or ""),
            van_model=data.get('van_model') or DEFAULT_VAN_MODEL,
            van_diagram_path=data.get('van_diagram_path') or DEFAULT_VAN_DIAGRAM,
            toolbar_position=parse_enum(ToolbarPosition, data.get('toolbar_position'),
                                        ToolbarPosition.LEFT),
            driving_side=parse_enum(DrivingSide, data.get('driving_side'), DrivingSide.LEFT),
            theme_mode=parse_enum(ThemeMode, data.get('theme_mode'), ThemeMode.MANUAL),
            manual_theme=parse_enum(Theme, data.get('manual_theme'), Theme.LIGHT),
            enable_fullscreen_on_startup=bool(data.get('enable_fullscreen_on_startup', False)),
            show_fullscreen_toggle=bool(data.get('show_fullscreen_toggle', True)),
            alert_settings=AlertSettings.from_dict(data.get('alert_settings') or {}),
            plugin_configurations=dict(data.get('plugin_configurations') or {}),
            last_updated=parse_timestamp(data.get('last_updated')),
        )

        legacy = data.get('theme')
        if legacy and 'theme_mode' not in data and 'manual_theme' not in data:
            try:
                config.manual_theme = parse_enum(Theme, legacy)
                config.theme_mode = ThemeMode.MANUAL
                logger.info(f"Imported legacy theme '{legacy}' as manual {config.manual_theme.value}")
            except ValueError:
                logger.warning(f"Ignoring unknown legacy theme '{legacy}'")
        return config
