import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError
from engine.settings import (
    SurveySettings,
    get_body_defs,
    load_settings,
)

def test_load_default_settings():
    settings = load_settings()
    assert settings.overlay_requires_transmit is True
    assert settings.scan_autocomplete_threshold == 0.95
    assert settings.time_between_scans == 3.0
    assert settings.processing_load == 2
    # Default file is cached
    assert load_settings() is settings

def test_load_settings_from_explicit_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "settings.toml"
        path.write_text("[survey]\nprocessing_load = 7\nretroactive_scanning = false\n", encoding="utf-8")
        settings = load_settings(path)

    assert settings.processing_load == 7
    assert settings.retroactive_scanning is False
    # Unspecified keys keep their defaults
    assert settings.time_between_scans == 3.0
    assert load_settings() is not settings

def test_missing_settings_file_yields_defaults():
    assert load_settings(Path("/nonexistent/settings.toml")) == SurveySettings()

def test_settings_validation():
    with pytest.raises(ValidationError):
        SurveySettings(scan_autocomplete_threshold=1.5)
    with pytest.raises(ValidationError):
        SurveySettings(processing_load=0)
    with pytest.raises(ValidationError):
        SurveySettings(time_between_scans=0.0)

def test_settings_are_frozen():
    settings = SurveySettings()
    with pytest.raises(ValidationError):
        settings.processing_load = 5

def test_load_body_defs():
    bodies = {b.name: b for b in get_body_defs()}
    assert bodies["Kerbin"].id == 1
    assert bodies["Kerbin"].radius == 600000.0
    assert bodies["Kerbol"].scannable is False
    assert bodies["Minmus"].scannable is True
    ids = [b.id for b in get_body_defs()]
    assert len(ids) == len(set(ids))
