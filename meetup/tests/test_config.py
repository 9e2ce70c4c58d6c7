import pytest

from meetup.config import DEFAULT_OVERPASS_ENDPOINTS, load_settings
from meetup.models import VenueCategory

ENV_VARS = (
    'MEETUP_PROVIDER', 'OVERPASS_ENDPOINTS', 'ORS_API_KEY', 'ORS_BASE_URL', 'GOOGLE_MAPS_API_KEY',
    'MEETUP_RATE_LIMIT', 'MEETUP_REQUEST_TIMEOUT', 'MEETUP_MAX_CANDIDATES',
    'MEETUP_DEFAULT_RADIUS', 'MEETUP_DEFAULT_CATEGORY', 'MEETUP_STORE_PATH',
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings(dotenv=False)
    assert settings.provider == 'osm'
    assert settings.overpass_endpoints == DEFAULT_OVERPASS_ENDPOINTS
    assert settings.ors_api_key is None
    assert settings.rate_limit == 8
    assert settings.default_category is VenueCategory.CAFE
    assert not settings.has_routing_key


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv('MEETUP_PROVIDER', 'Google')
    monkeypatch.setenv('GOOGLE_MAPS_API_KEY', 'abc')
    monkeypatch.setenv('OVERPASS_ENDPOINTS', 'https://one.example/api, https://two.example/api')
    monkeypatch.setenv('ORS_BASE_URL', 'https://ors.example/')
    monkeypatch.setenv('MEETUP_RATE_LIMIT', '3')
    monkeypatch.setenv('MEETUP_DEFAULT_CATEGORY', 'library')

    settings = load_settings(dotenv=False)

    assert settings.provider == 'google'
    assert settings.has_routing_key
    assert settings.overpass_endpoints == ('https://one.example/api', 'https://two.example/api')
    assert settings.ors_base_url == 'https://ors.example'
    assert settings.rate_limit == 3
    assert settings.default_category is VenueCategory.LIBRARY


def test_invalid_values_fall_back(monkeypatch):
    monkeypatch.setenv('MEETUP_PROVIDER', 'bing')
    monkeypatch.setenv('GOOGLE_MAPS_API_KEY', 'your_api_key_here')
    monkeypatch.setenv('MEETUP_RATE_LIMIT', 'many')
    monkeypatch.setenv('MEETUP_REQUEST_TIMEOUT', '-1')
    monkeypatch.setenv('MEETUP_DEFAULT_CATEGORY', 'casino')

    settings = load_settings(dotenv=False)

    assert settings.provider == 'osm'
    assert settings.google_maps_api_key is None
    assert settings.rate_limit == 8
    assert settings.request_timeout == 10.0
    assert settings.default_category is VenueCategory.CAFE


def test_public_dict_has_no_secrets(monkeypatch):
    monkeypatch.setenv('ORS_API_KEY', 'secret-ors-key')
    public = load_settings(dotenv=False).public_dict()
    assert 'secret-ors-key' not in repr(public)
    assert public['routingConfigured'] is True
