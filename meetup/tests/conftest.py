from typing import Dict, List, Optional, Tuple

import pytest

from meetup.config import Settings
from meetup.maps_service import MapsService
from meetup.models import UNREACHABLE, Candidate, Coordinate, GeocodedAddress


class FakeMapsService(MapsService):
    """In-memory provider: lookups come from dictionaries, calls are recorded"""

    name = 'fake'

    def __init__(self, settings: Settings, locations: Optional[Dict[str, Tuple[float, float]]] = None,
                 venues: Optional[List[Candidate]] = None, travel_times=None):
        super().__init__(settings)
        self.locations = locations or {}
        self.venues = venues or []
        # dict keyed by (origin tuple, destination tuple) or a callable
        self.travel_times = travel_times or {}
        self.geocode_calls: List[str] = []
        self.venue_calls = []
        self.travel_calls = []

    def geocode_address(self, address):
        self.geocode_calls.append(address)
        point = self.locations.get(address)
        if point is None:
            return None
        return GeocodedAddress(query=address, location=Coordinate(*point), label=f"{address} (resolved)")

    def suggest_addresses(self, partial, limit=5):
        query = partial.strip()
        if len(query) < 3:
            return []
        return [name for name in self.locations if query.lower() in name.lower()][:limit]

    def find_places_nearby(self, center, radius, category):
        self.venue_calls.append((center, radius, category))
        return list(self.venues)

    def get_travel_time(self, origin, destination):
        self.travel_calls.append((origin, destination))
        if callable(self.travel_times):
            return self.travel_times(origin, destination)
        return self.travel_times.get((origin.as_tuple(), destination.as_tuple()), UNREACHABLE)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        ors_api_key='test-key',
        rate_limit=4,
        request_timeout=5.0,
        max_candidates=10,
        store_path=str(tmp_path / 'store.json'),
    )


@pytest.fixture
def make_service(settings):
    services = []

    def _make(**kwargs):
        service = FakeMapsService(settings, **kwargs)
        services.append(service)
        return service

    yield _make
    for service in services:
        service.cleanup()
