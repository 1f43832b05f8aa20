"""Test the dashboard settings service."""
import pytest

from vantelemetry.models import DrivingSide, SystemConfiguration, Theme, ThemeMode
from vantelemetry.persistence import InMemoryStore
from vantelemetry.services import SettingsService
from vantelemetry.services.settings import SETTINGS_KEY


def start(store):
    service = SettingsService(store)
    service.start()
    return service


def test_defaults_are_written():
    """Test an empty store gets the default configuration."""
    store = InMemoryStore()
    config = start(store).get()

    assert config.van_model == "Mercedes Sprinter LWB"
    assert config.theme_mode is ThemeMode.MANUAL
    assert store.load(SETTINGS_KEY)["id"] == config.id


def test_legacy_theme_is_imported_and_rewritten():
    """Test an old single 'theme' value becomes manual mode and is dropped."""
    store = InMemoryStore()
    store.save(SETTINGS_KEY, {"id": "s1", "van_model": "VW Crafter", "theme": "Dark"})

    config = start(store).get()

    assert config.theme_mode is ThemeMode.MANUAL
    assert config.manual_theme is Theme.DARK
    stored = store.load(SETTINGS_KEY)
    assert "theme" not in stored
    assert stored["manual_theme"] == "dark"
    assert stored["van_model"] == "VW Crafter"


def test_explicit_theme_mode_wins_over_legacy():
    """Test the legacy field is ignored once the new fields exist."""
    config = SystemConfiguration.from_dict({"theme": "Dark", "theme_mode": "browser_auto"})
    assert config.theme_mode is ThemeMode.BROWSER_AUTO
    assert config.manual_theme is Theme.LIGHT


def test_update_keeps_id():
    """Test an update cannot change the singleton id."""
    store = InMemoryStore()
    service = start(store)
    original_id = service.get().id

    service.update(SystemConfiguration(id="other", driving_side=DrivingSide.RIGHT))

    assert service.get().id == original_id
    assert store.load(SETTINGS_KEY)["driving_side"] == "right"


def test_corrupt_settings_run_degraded():
    """Test an unreadable document falls back to defaults."""
    store = InMemoryStore()
    store.put_raw(SETTINGS_KEY, "][")
    service = start(store)

    assert service.degraded is True
    assert service.get().van_model == "Mercedes Sprinter LWB"


def test_available_van_diagrams():
    """Test the diagram catalogue is a fresh copy each call."""
    service = start(InMemoryStore())
    diagrams = service.available_van_diagrams()
    diagrams[0]["name"] = "Changed"

    assert service.available_van_diagrams()[0]["name"] == "Mercedes Sprinter LWB"
    assert len(diagrams) == 5


@pytest.mark.parametrize("document", [
    {"last_updated": "not-a-date"},
    ["x"],
    {"alert_settings": "loud"},
])
def test_malformed_settings_run_degraded(document):
    """Test a readable but malformed document falls back to defaults untouched."""
    store = InMemoryStore()
    store.save(SETTINGS_KEY, document)
    service = start(store)

    assert service.degraded is True
    assert service.get().van_model == "Mercedes Sprinter LWB"
    assert store.load(SETTINGS_KEY) == document
