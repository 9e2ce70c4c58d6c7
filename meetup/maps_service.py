import asyncio
import concurrent.futures
import logging
from typing import Dict, List, Optional

import googlemaps
from googlemaps import exceptions as gmaps_exceptions
import requests
from geopy.exc import GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from .config import Settings
from .errors import ProviderError
from .models import (
    UNNAMED,
    UNREACHABLE,
    Candidate,
    Coordinate,
    CostSample,
    GeocodedAddress,
    VenueCategory,
)

logger = logging.getLogger(__name__)

# --- Module-level constants ---
SUGGESTION_MIN_CHARS = 3
SUGGESTION_LIMIT = 5
NOMINATIM_MIN_DELAY_SECONDS = 1.0   # Nominatim usage policy: max 1 request/second
DRIVING_PROFILE = 'driving-car'

REQUEST_HEADERS = {
    "User-Agent": "group-meetup-finder/1.0",
}

_GOOGLE_ERRORS = (
    gmaps_exceptions.ApiError,
    gmaps_exceptions.TransportError,
    gmaps_exceptions.Timeout,
)


class MapsService:
    """Common surface of the geodata providers.

    Subclasses implement the blocking lookups; this class adds the executor
    backed async wrappers used by the finder. Every public lookup absorbs
    provider failures: geocoding returns None, routing returns UNREACHABLE
    and venue search returns an empty list.
    """

    name = 'base'

    def __init__(self, settings: Settings):
        self.settings = settings
        self.timeout = settings.request_timeout
        # A timed-out call keeps its worker until the HTTP timeout fires, so the
        # pool is larger than the number of calls allowed in flight.
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=settings.rate_limit * 2)

    def cleanup(self):
        """Clean up resources"""
        if hasattr(self, 'executor'):
            self.executor.shutdown(wait=True)

    # --- Blocking lookups ---
    def geocode_address(self, address: str) -> Optional[GeocodedAddress]:
        raise NotImplementedError

    def suggest_addresses(self, partial: str, limit: int = SUGGESTION_LIMIT) -> List[str]:
        raise NotImplementedError

    def find_places_nearby(self, center: Coordinate, radius: int, category: VenueCategory) -> List[Candidate]:
        raise NotImplementedError

    def get_travel_time(self, origin: Coordinate, destination: Coordinate) -> CostSample:
        raise NotImplementedError

    # Async wrapper methods for parallel execution
    async def geocode_address_async(self, address: str) -> Optional[GeocodedAddress]:
        """Async wrapper for geocode_address"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.geocode_address, address)

    async def find_places_nearby_async(self, center: Coordinate, radius: int, category: VenueCategory) -> List[Candidate]:
        """Async wrapper for find_places_nearby"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.find_places_nearby, center, radius, category)

    async def get_travel_time_async(self, origin: Coordinate, destination: Coordinate) -> CostSample:
        """Async wrapper for get_travel_time"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, self.get_travel_time, origin, destination)


class OpenStreetMapService(MapsService):
    """Nominatim geocoding, Overpass venue search and OpenRouteService routing"""

    name = 'osm'

    def __init__(self, settings: Settings, min_delay_seconds: float = NOMINATIM_MIN_DELAY_SECONDS):
        super().__init__(settings)
        self.geocoder = Nominatim(
            user_agent=settings.nominatim_user_agent,
            domain=settings.nominatim_domain,
            timeout=settings.request_timeout,
        )
        self._geocode = RateLimiter(
            self._nominatim_geocode,
            min_delay_seconds=min_delay_seconds,
            max_retries=0,
            swallow_exceptions=False,
        )

    def _nominatim_geocode(self, query: str, **kwargs):
        return self.geocoder.geocode(query, **kwargs)

    def geocode_address(self, address: str) -> Optional[GeocodedAddress]:
        """Resolve an address to the first Nominatim match, or None"""
        query = (address or '').strip()
        if not query:
            return None
        try:
            location = self._geocode(query, exactly_one=True)
        except GeopyError as e:
            logger.warning("Geocoding error for %r: %s", query, e)
            return None
        if not location:
            logger.info("No geocoding match for %r", query)
            return None
        try:
            coordinate = Coordinate(location.latitude, location.longitude)
        except ValueError as e:
            logger.warning("Geocoder returned an invalid coordinate for %r: %s", query, e)
            return None
        return GeocodedAddress(query=query, location=coordinate, label=location.address)

    def suggest_addresses(self, partial: str, limit: int = SUGGESTION_LIMIT) -> List[str]:
        query = (partial or '').strip()
        if len(query) < SUGGESTION_MIN_CHARS:
            return []
        try:
            matches = self._geocode(query, exactly_one=False, limit=limit, addressdetails=True)
        except GeopyError as e:
            logger.warning("Suggestion lookup failed for %r: %s", query, e)
            return []
        return [m.address for m in (matches or [])][:limit]

    # --- Venue search ---
    def build_overpass_query(self, center: Coordinate, radius: int, category: VenueCategory) -> str:
        """Build an Overpass query for amenity nodes around a point"""
        timeout = max(1, int(self.timeout))
        return (
            f'[out:json][timeout:{timeout}];'
            f'node["amenity"="{category.osm_amenity}"](around:{int(radius)},{center.lat},{center.lng});'
            'out;'
        )

    def _fetch_overpass_elements(self, query: str) -> List[Dict]:
        last_error: Optional[Exception] = None
        for endpoint in self.settings.overpass_endpoints:
            logger.debug("Querying Overpass endpoint %s", endpoint)
            try:
                response = requests.get(
                    endpoint,
                    params={'data': query},
                    timeout=self.timeout,
                    headers=REQUEST_HEADERS,
                )
            except requests.RequestException as exc:
                last_error = exc
                logger.warning("Overpass endpoint %s failed: %s", endpoint, exc)
                continue

            if response.status_code == 429 or response.status_code >= 400:
                last_error = ProviderError(f"Overpass API returned HTTP {response.status_code}")
                logger.warning("Overpass endpoint %s returned %s", endpoint, response.status_code)
                continue

            try:
                payload = response.json()
            except ValueError as exc:
                last_error = exc
                logger.warning("Overpass endpoint %s returned invalid JSON: %s", endpoint, exc)
                continue
            elements = (payload.get('elements') or []) if isinstance(payload, dict) else None
            if not isinstance(elements, list):
                last_error = ProviderError("Overpass API returned an unexpected payload")
                logger.warning("Overpass endpoint %s returned an unexpected payload", endpoint)
                continue
            return elements

        raise ProviderError("All Overpass API endpoints failed") from last_error

    def find_places_nearby(self, center: Coordinate, radius: int, category: VenueCategory) -> List[Candidate]:
        """Venues of a category within radius metres of center"""
        query = self.build_overpass_query(center, radius, category)
        try:
            elements = self._fetch_overpass_elements(query)
        except ProviderError as e:
            logger.warning("Venue search failed around %s: %s", center.as_tuple(), e)
            return []
        return _candidates_from_overpass(elements)

    # --- Routing ---
    def get_travel_time(self, origin: Coordinate, destination: Coordinate) -> CostSample:
        """Driving duration in seconds from OpenRouteService, or UNREACHABLE"""
        if not self.settings.ors_api_key:
            logger.warning("ORS_API_KEY not configured; route treated as unreachable")
            return UNREACHABLE
        url = f"{self.settings.ors_base_url}/v2/directions/{DRIVING_PROFILE}"
        params = {
            'api_key': self.settings.ors_api_key,
            # OpenRouteService expects lon,lat order
            'start': f"{origin.lng},{origin.lat}",
            'end': f"{destination.lng},{destination.lat}",
        }
        try:
            response = requests.get(url, params=params, timeout=self.timeout, headers=REQUEST_HEADERS)
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Travel time error %s -> %s: %s", origin.as_tuple(), destination.as_tuple(), e)
            return UNREACHABLE
        return _duration_from_ors(data)


class GoogleMapsService(MapsService):
    """Service for interacting with Google Maps APIs"""

    name = 'google'

    def __init__(self, settings: Settings):
        api_key = settings.google_maps_api_key
        if not api_key:
            raise ValueError("Valid Google Maps API key is required")
        super().__init__(settings)
        self.client = googlemaps.Client(key=api_key, timeout=settings.request_timeout)

    def geocode_address(self, address: str) -> Optional[GeocodedAddress]:
        query = (address or '').strip()
        if not query:
            return None
        try:
            result = self.client.geocode(query)
        except _GOOGLE_ERRORS as e:
            logger.warning("Geocoding error for %r: %s", query, e)
            return None
        if not result:
            logger.info("No geocoding match for %r", query)
            return None
        location = result[0]
        try:
            coordinate = Coordinate.from_dict(location['geometry']['location'])
        except (KeyError, ValueError) as e:
            logger.warning("Unusable geocoding result for %r: %s", query, e)
            return None
        return GeocodedAddress(query=query, location=coordinate, label=location.get('formatted_address'))

    def suggest_addresses(self, partial: str, limit: int = SUGGESTION_LIMIT) -> List[str]:
        query = (partial or '').strip()
        if len(query) < SUGGESTION_MIN_CHARS:
            return []
        try:
            predictions = self.client.places_autocomplete(input_text=query)
        except _GOOGLE_ERRORS as e:
            logger.warning("Suggestion lookup failed for %r: %s", query, e)
            return []
        return [p['description'] for p in predictions if p.get('description')][:limit]

    def find_places_nearby(self, center: Coordinate, radius: int, category: VenueCategory) -> List[Candidate]:
        try:
            places_result = self.client.places_nearby(
                location=center.as_tuple(),
                radius=int(radius),
                type=category.google_type,
            )
        except _GOOGLE_ERRORS as e:
            logger.warning("Places search error around %s: %s", center.as_tuple(), e)
            return []

        candidates = []
        for place in places_result.get('results', []):
            try:
                location = Coordinate.from_dict(place['geometry']['location'])
            except (KeyError, ValueError):
                continue
            candidates.append(Candidate(place.get('name') or UNNAMED, location))
        return candidates

    def get_travel_time(self, origin: Coordinate, destination: Coordinate) -> CostSample:
        """Driving duration in seconds from the Directions API, or UNREACHABLE"""
        try:
            directions_result = self.client.directions(
                origin=origin.as_tuple(),
                destination=destination.as_tuple(),
                mode="driving",
                alternatives=False,
            )
        except _GOOGLE_ERRORS as e:
            logger.warning("Travel time error %s -> %s: %s", origin.as_tuple(), destination.as_tuple(), e)
            return UNREACHABLE
        if not directions_result:
            return UNREACHABLE
        try:
            return float(directions_result[0]['legs'][0]['duration']['value'])
        except (KeyError, IndexError, TypeError, ValueError):
            return UNREACHABLE


# --- Shared helpers ---
def _candidates_from_overpass(elements: List[Dict]) -> List[Candidate]:
    """Normalize Overpass nodes into candidates; nameless venues are kept"""
    candidates: List[Candidate] = []
    for element in elements:
        if not isinstance(element, dict):
            continue
        center = element.get('center') or {}
        tags = element.get('tags') or {}
        lat = element.get('lat', center.get('lat'))
        lon = element.get('lon', center.get('lon'))
        if lat is None or lon is None:
            continue
        try:
            location = Coordinate(float(lat), float(lon))
        except (TypeError, ValueError):
            continue
        candidates.append(Candidate(tags.get('name') or UNNAMED, location))
    return candidates


def _duration_from_ors(data: Dict) -> CostSample:
    if not isinstance(data, dict):
        return UNREACHABLE
    features = data.get('features') or []
    if not features:
        return UNREACHABLE
    try:
        duration = features[0]['properties']['summary']['duration']
    except (KeyError, TypeError):
        return UNREACHABLE
    if duration is None:
        return UNREACHABLE
    try:
        return float(duration)
    except (TypeError, ValueError):
        return UNREACHABLE


def create_maps_service(settings: Settings) -> MapsService:
    """Instantiate the provider selected by MEETUP_PROVIDER"""
    if settings.provider == 'google':
        return GoogleMapsService(settings)
    return OpenStreetMapService(settings)
