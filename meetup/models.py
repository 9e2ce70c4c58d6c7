import math
from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Dict, Optional, Tuple, Union


MIDPOINT_NAME = "Midpoint"
UNNAMED = "Unnamed"


@dataclass(frozen=True)
class Coordinate:
    """A (latitude, longitude) pair in decimal degrees"""

    lat: float
    lng: float

    def __post_init__(self):
        lat = float(self.lat)
        lng = float(self.lng)
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise ValueError(f"Coordinate must be finite, got ({self.lat}, {self.lng})")
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"Latitude out of range: {lat}")
        if not -180.0 <= lng <= 180.0:
            raise ValueError(f"Longitude out of range: {lng}")
        object.__setattr__(self, 'lat', lat)
        object.__setattr__(self, 'lng', lng)

    @classmethod
    def from_dict(cls, data: Dict) -> "Coordinate":
        """Parse {'lat': .., 'lng': ..}; 'lon' is accepted for 'lng'"""
        if not isinstance(data, dict) or 'lat' not in data:
            raise ValueError("Coordinate requires lat and lng properties")
        lng = data.get('lng', data.get('lon'))
        if lng is None:
            raise ValueError("Coordinate requires lat and lng properties")
        try:
            return cls(float(data['lat']), float(lng))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid coordinate: {e}") from e

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lng)

    def as_dict(self) -> Dict[str, float]:
        return {'lat': self.lat, 'lng': self.lng}


@total_ordering
class _Unreachable:
    """Outcome of a travel-time query that found no route.

    Compares greater than every real duration and equal only to itself, so
    any ordering over cost samples puts it last.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __eq__(self, other):
        return other is self

    def __lt__(self, other):
        return False

    def __gt__(self, other):
        return other is not self

    def __hash__(self):
        return hash('UNREACHABLE')

    def __repr__(self):
        return 'UNREACHABLE'

    def __reduce__(self):
        return (_Unreachable, ())


UNREACHABLE = _Unreachable()

# Travel duration in seconds, or UNREACHABLE
CostSample = Union[float, _Unreachable]


def is_unreachable(sample: CostSample) -> bool:
    return sample is UNREACHABLE


class MarkerTier(str, Enum):
    USER_ORIGIN = 'user-origin'
    MIDPOINT = 'midpoint'
    BEST_CANDIDATE = 'best-candidate'
    ALTERNATE_CANDIDATE = 'alternate-candidate'


class VenueCategory(str, Enum):
    """Venue categories understood by both venue-search providers"""

    CAFE = 'cafe'
    RESTAURANT = 'restaurant'
    BAR = 'bar'
    PUB = 'pub'
    FAST_FOOD = 'fast_food'
    LIBRARY = 'library'
    ICE_CREAM = 'ice_cream'

    @property
    def osm_amenity(self) -> str:
        return self.value

    @property
    def google_type(self) -> str:
        return _GOOGLE_PLACE_TYPES[self]

    @classmethod
    def parse(cls, value) -> "VenueCategory":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ', '.join(c.value for c in cls)
            raise ValueError(f"Unknown category '{value}'. Expected one of: {allowed}") from None


_GOOGLE_PLACE_TYPES = {
    VenueCategory.CAFE: 'cafe',
    VenueCategory.RESTAURANT: 'restaurant',
    VenueCategory.BAR: 'bar',
    VenueCategory.PUB: 'bar',
    VenueCategory.FAST_FOOD: 'meal_takeaway',
    VenueCategory.LIBRARY: 'library',
    VenueCategory.ICE_CREAM: 'cafe',
}


@dataclass(frozen=True)
class Candidate:
    """A possible meeting location: a venue or the synthetic midpoint"""

    name: str
    location: Coordinate

    @classmethod
    def midpoint(cls, center: Coordinate) -> "Candidate":
        return cls(MIDPOINT_NAME, center)

    @property
    def is_midpoint(self) -> bool:
        return self.name == MIDPOINT_NAME

    def as_dict(self) -> Dict:
        return {'name': self.name, **self.location.as_dict()}


@dataclass(frozen=True)
class GeocodedAddress:
    query: str
    location: Coordinate
    label: Optional[str] = None

    def as_dict(self) -> Dict:
        return {
            'input': self.query,
            'formatted_address': self.label or self.query,
            **self.location.as_dict(),
        }


@dataclass(frozen=True)
class RankedCandidate:
    """A candidate with one cost sample per participating user.

    ``samples[i]`` is the travel time from the i-th user coordinate. The
    aggregates are derived from the samples on access and never stored.
    """

    candidate: Candidate
    samples: Tuple[CostSample, ...] = field(default_factory=tuple)

    @property
    def reachable_samples(self) -> Tuple[float, ...]:
        return tuple(s for s in self.samples if not is_unreachable(s))

    @property
    def unreachable_count(self) -> int:
        return sum(1 for s in self.samples if is_unreachable(s))

    @property
    def reachable(self) -> bool:
        return self.unreachable_count == 0

    @property
    def total_cost(self) -> CostSample:
        if not self.reachable:
            return UNREACHABLE
        return float(sum(self.samples))

    @property
    def fairness(self) -> CostSample:
        if not self.reachable:
            return UNREACHABLE
        if not self.samples:
            return 0.0
        return float(max(self.samples) - min(self.samples))

    def sort_key(self) -> Tuple:
        # Fully reachable candidates first, ordered by spread then total.
        # The rest by how many users cannot reach them, then by the spread
        # and total of the samples that did resolve.
        reachable = self.reachable_samples
        spread = (max(reachable) - min(reachable)) if reachable else 0.0
        return (self.unreachable_count, spread, sum(reachable))

    def as_dict(self) -> Dict:
        def _seconds(value: CostSample) -> Optional[float]:
            return None if is_unreachable(value) else value

        def _minutes(value: CostSample) -> Optional[float]:
            return None if is_unreachable(value) else round(value / 60, 1)

        return {
            **self.candidate.as_dict(),
            'travel_times_seconds': [_seconds(s) for s in self.samples],
            'total_travel_time_seconds': _seconds(self.total_cost),
            'total_travel_time_minutes': _minutes(self.total_cost),
            'fairness_seconds': _seconds(self.fairness),
            'fairness_minutes': _minutes(self.fairness),
            'reachable': self.reachable,
            'unreachable_count': self.unreachable_count,
        }
