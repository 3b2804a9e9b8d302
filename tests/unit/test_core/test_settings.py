import pytest

from core.settings import AnalysisSettings


def test_defaults():
    settings = AnalysisSettings()
    assert settings.candidate_radius_km == 2.0
    assert settings.density_buffer_km == 0.25
    assert settings.page_size == 2000
    assert settings.quiet_interval_seconds == 0.35
    assert settings.top_bins == 12


def test_from_env(monkeypatch):
    monkeypatch.setenv("READINESS_PAGE_SIZE", "500")
    monkeypatch.setenv("READINESS_QUIET_INTERVAL_SECONDS", "0.5")
    monkeypatch.setenv("READINESS_SERVICE_URL", "https://example.test/MapServer")
    settings = AnalysisSettings.from_env()
    assert settings.page_size == 500
    assert settings.quiet_interval_seconds == 0.5
    assert settings.service_url == "https://example.test/MapServer"


def test_from_env_rejects_garbage(monkeypatch):
    monkeypatch.setenv("READINESS_PAGE_SIZE", "lots")
    with pytest.raises(ValueError):
        AnalysisSettings.from_env()


def test_validation():
    with pytest.raises(ValueError):
        AnalysisSettings(page_size=0)
    with pytest.raises(ValueError):
        AnalysisSettings(proximity_cap_km=0)


def test_dict_round_trip():
    settings = AnalysisSettings(page_size=100)
    data = settings.to_dict()
    data["unknown"] = True
    assert AnalysisSettings.from_dict(data) == settings
