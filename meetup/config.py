import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from .models import VenueCategory

logger = logging.getLogger(__name__)

PLACEHOLDER_KEYS = ('', 'your_api_key_here')

DEFAULT_NOMINATIM_DOMAIN = 'nominatim.openstreetmap.org'
DEFAULT_OVERPASS_ENDPOINTS = (
    'https://overpass-api.de/api/interpreter',
    'https://overpass.kumi.systems/api/interpreter',
)
DEFAULT_ORS_BASE_URL = 'https://api.openrouteservice.org'

PROVIDERS = ('osm', 'google')


def _api_key(name: str) -> Optional[str]:
    value = (os.getenv(name) or '').strip()
    return None if value in PLACEHOLDER_KEYS else value


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default
    if value < minimum:
        logger.warning("Ignoring %s=%s below minimum %s, using %s", name, value, minimum, default)
        return default
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    """Provider endpoints, credentials and limits for one process"""

    provider: str = 'osm'
    nominatim_domain: str = DEFAULT_NOMINATIM_DOMAIN
    nominatim_user_agent: str = 'group-meetup-finder'
    overpass_endpoints: Tuple[str, ...] = field(default=DEFAULT_OVERPASS_ENDPOINTS)
    ors_base_url: str = DEFAULT_ORS_BASE_URL
    ors_api_key: Optional[str] = None
    google_maps_api_key: Optional[str] = None
    rate_limit: int = 8
    request_timeout: float = 10.0
    max_candidates: int = 25
    default_radius: int = 1000
    default_category: VenueCategory = VenueCategory.CAFE
    store_path: str = 'meetup_store.json'

    @property
    def has_routing_key(self) -> bool:
        if self.provider == 'google':
            return bool(self.google_maps_api_key)
        return bool(self.ors_api_key)

    def public_dict(self) -> dict:
        """Configuration safe to expose to a browser (no secrets)"""
        return {
            'provider': self.provider,
            'rateLimit': self.rate_limit,
            'defaultRadius': self.default_radius,
            'defaultCategory': self.default_category.value,
            'categories': [c.value for c in VenueCategory],
            'routingConfigured': self.has_routing_key,
        }


def _split_endpoints(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return DEFAULT_OVERPASS_ENDPOINTS
    endpoints: List[str] = [e.strip() for e in raw.split(',') if e.strip()]
    return tuple(endpoints) or DEFAULT_OVERPASS_ENDPOINTS


def load_settings(dotenv: bool = True) -> Settings:
    """Build Settings from the environment (and a .env file when present)"""
    if dotenv:
        load_dotenv()

    provider = (os.getenv('MEETUP_PROVIDER') or 'osm').strip().lower()
    if provider not in PROVIDERS:
        logger.warning("Unknown MEETUP_PROVIDER=%r, falling back to 'osm'", provider)
        provider = 'osm'

    try:
        default_category = VenueCategory.parse(os.getenv('MEETUP_DEFAULT_CATEGORY') or 'cafe')
    except ValueError as e:
        logger.warning("%s; using 'cafe'", e)
        default_category = VenueCategory.CAFE

    return Settings(
        provider=provider,
        nominatim_domain=os.getenv('NOMINATIM_DOMAIN') or DEFAULT_NOMINATIM_DOMAIN,
        nominatim_user_agent=os.getenv('NOMINATIM_USER_AGENT') or 'group-meetup-finder',
        overpass_endpoints=_split_endpoints(os.getenv('OVERPASS_ENDPOINTS')),
        ors_base_url=(os.getenv('ORS_BASE_URL') or DEFAULT_ORS_BASE_URL).rstrip('/'),
        ors_api_key=_api_key('ORS_API_KEY'),
        google_maps_api_key=_api_key('GOOGLE_MAPS_API_KEY'),
        rate_limit=_int_env('MEETUP_RATE_LIMIT', 8),
        request_timeout=_float_env('MEETUP_REQUEST_TIMEOUT', 10.0),
        max_candidates=_int_env('MEETUP_MAX_CANDIDATES', 25),
        default_radius=_int_env('MEETUP_DEFAULT_RADIUS', 1000, minimum=100),
        default_category=default_category,
        store_path=os.getenv('MEETUP_STORE_PATH') or 'meetup_store.json',
    )
