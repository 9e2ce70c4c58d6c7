import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from .errors import AddressNotFound, NoAddressesResolved
from .maps_service import MapsService
from .models import Candidate, Coordinate, GeocodedAddress, RankedCandidate, VenueCategory
from .ranking import rank_candidates

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_RADIUS = 1000


def calculate_midpoint(coords: Sequence[Coordinate]) -> Coordinate:
    """Arithmetic mean of latitudes and of longitudes.

    This is a planar mean, not a spherical centroid. It is adequate for
    regional distances and degrades near the poles and across the
    antimeridian.
    """
    if not coords:
        raise ValueError("Cannot compute the midpoint of an empty coordinate set")
    sum_lat = 0.0
    sum_lng = 0.0
    for c in coords:
        sum_lat += c.lat
        sum_lng += c.lng
    return Coordinate(sum_lat / len(coords), sum_lng / len(coords))


@dataclass
class MeetingPlan:
    """Outcome of one meeting-point request"""

    addresses: List[GeocodedAddress]
    midpoint: Coordinate
    ranked: List[RankedCandidate]
    category: VenueCategory
    search_radius: int
    warnings: List[AddressNotFound] = field(default_factory=list)

    @property
    def user_coords(self) -> List[Coordinate]:
        return [a.location for a in self.addresses]

    @property
    def best(self) -> Optional[RankedCandidate]:
        return self.ranked[0] if self.ranked else None

    @property
    def alternatives(self) -> List[RankedCandidate]:
        return self.ranked[1:]

    def as_dict(self) -> Dict:
        return {
            'addresses': [a.as_dict() for a in self.addresses],
            'warnings': [w.as_dict() for w in self.warnings],
            'midpoint': self.midpoint.as_dict(),
            'category': self.category.value,
            'search_radius': self.search_radius,
            'optimal_meeting_point': self.best.as_dict() if self.best else None,
            'ranked_candidates': [r.as_dict() for r in self.ranked],
        }


def clean_addresses(addresses: Sequence[Optional[str]]) -> List[str]:
    """Trim addresses and drop blank ones, keeping input order"""
    return [a.strip() for a in addresses if a and a.strip()]


class MeetupPointFinder:
    """Finds the fairest meeting place for a group of addresses"""

    def __init__(self, maps_service: MapsService, max_candidates: int = 25,
                 max_concurrency: Optional[int] = None, call_timeout: Optional[float] = None):
        self.maps_service = maps_service
        self.max_candidates = max_candidates
        settings = getattr(maps_service, 'settings', None)
        self.max_concurrency = max_concurrency or getattr(settings, 'rate_limit', 8)
        self.call_timeout = call_timeout if call_timeout is not None else getattr(settings, 'request_timeout', None)

    async def _bounded(self, coro, default):
        """Await a provider call; a stalled or failing provider yields ``default``"""
        try:
            if self.call_timeout:
                return await asyncio.wait_for(coro, timeout=self.call_timeout)
            return await coro
        except asyncio.TimeoutError:
            logger.warning("Provider call timed out after %ss", self.call_timeout)
            return default
        except Exception as e:
            logger.warning("Provider call failed: %s", e)
            return default

    async def resolve_addresses(self, addresses: Sequence[str]):
        """Geocode addresses concurrently.

        Returns (resolved, warnings). Order of ``resolved`` follows the
        input order of the addresses that could be found.
        """
        results = await asyncio.gather(
            *(self._bounded(self.maps_service.geocode_address_async(a), None) for a in addresses),
            return_exceptions=True,
        )
        resolved: List[GeocodedAddress] = []
        warnings: List[AddressNotFound] = []
        for address, result in zip(addresses, results):
            if isinstance(result, Exception):
                logger.warning("Geocoding %r raised %s", address, result)
                result = None
            if result is None:
                logger.warning("Location not found: %s", address)
                warnings.append(AddressNotFound(address))
            else:
                resolved.append(result)
        return resolved, warnings

    async def find_candidates(self, center: Coordinate, category: VenueCategory,
                              radius: int = DEFAULT_SEARCH_RADIUS) -> List[Candidate]:
        """Venues around the center plus the center itself as a fallback"""
        if not isinstance(radius, int) or isinstance(radius, bool) or radius <= 0:
            raise ValueError(f"Search radius must be a positive integer, got {radius!r}")
        venues = await self._bounded(
            self.maps_service.find_places_nearby_async(center, radius, category), [],
        )
        if not venues:
            logger.info("No %s venues within %sm of %s", category.value, radius, center.as_tuple())
        venues = list(venues)[:self.max_candidates]
        venues.append(Candidate.midpoint(center))
        return venues

    async def rank(self, user_coords: Sequence[Coordinate], candidates: Sequence[Candidate]) -> List[RankedCandidate]:
        return await rank_candidates(
            user_coords,
            candidates,
            self.maps_service.get_travel_time_async,
            max_concurrency=self.max_concurrency,
            call_timeout=self.call_timeout,
        )

    def find_meeting_point(self, addresses: Sequence[str],
                           category: Union[VenueCategory, str] = VenueCategory.CAFE,
                           search_radius: int = DEFAULT_SEARCH_RADIUS) -> MeetingPlan:
        """Blocking entry point for the async pipeline"""
        return asyncio.run(self.find_meeting_point_async(addresses, category, search_radius))

    async def find_meeting_point_async(self, addresses: Sequence[str],
                                       category: Union[VenueCategory, str] = VenueCategory.CAFE,
                                       search_radius: int = DEFAULT_SEARCH_RADIUS) -> MeetingPlan:
        category = VenueCategory.parse(category)
        cleaned = clean_addresses(addresses)
        if not cleaned:
            raise NoAddressesResolved("Please enter at least one address")

        resolved, warnings = await self.resolve_addresses(cleaned)
        if not resolved:
            raise NoAddressesResolved("None of the addresses could be located")

        midpoint = calculate_midpoint([a.location for a in resolved])
        logger.info("Midpoint of %d addresses: %s", len(resolved), midpoint.as_tuple())

        candidates = await self.find_candidates(midpoint, category, search_radius)
        ranked = await self.rank([a.location for a in resolved], candidates)

        return MeetingPlan(
            addresses=resolved,
            midpoint=midpoint,
            ranked=ranked,
            category=category,
            search_radius=search_radius,
            warnings=warnings,
        )
