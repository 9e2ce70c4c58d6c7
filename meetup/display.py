"""
Map display helpers.

A rendering pass produces a fresh ``MarkerLayer`` owned by the request that
built it. ``MapSession`` holds the layer currently on screen and clears it
before installing the next one. ``render_map`` turns a layer into a Folium
map for the ``/map`` page.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import folium

from .models import Coordinate, MarkerTier

WORLD_CENTER = (20.0, 0.0)
VIEW_PADDING = (50, 50)

TIER_ICONS = {
    MarkerTier.USER_ORIGIN: ('blue', 'user'),
    MarkerTier.MIDPOINT: ('gray', 'screenshot'),
    MarkerTier.BEST_CANDIDATE: ('green', 'star'),
    MarkerTier.ALTERNATE_CANDIDATE: ('orange', 'info-sign'),
}


@dataclass(frozen=True)
class Marker:
    location: Coordinate
    label: str
    tier: MarkerTier

    def as_dict(self) -> Dict:
        return {**self.location.as_dict(), 'label': self.label, 'tier': self.tier.value}


class MarkerLayer:
    """Markers and view bounds of one rendering pass"""

    def __init__(self):
        self.markers: List[Marker] = []
        self.bounds: Optional[Tuple[Coordinate, Coordinate]] = None

    def place_marker(self, coordinate: Coordinate, label: str, tier: MarkerTier) -> Marker:
        marker = Marker(coordinate, label, MarkerTier(tier))
        self.markers.append(marker)
        return marker

    def clear_markers(self):
        self.markers = []
        self.bounds = None

    def fit_view_to(self, coordinates: Iterable[Coordinate]) -> Optional[Tuple[Coordinate, Coordinate]]:
        """Set the view to the south-west / north-east box around coordinates"""
        coords = list(coordinates)
        if not coords:
            self.bounds = None
            return None
        south_west = Coordinate(min(c.lat for c in coords), min(c.lng for c in coords))
        north_east = Coordinate(max(c.lat for c in coords), max(c.lng for c in coords))
        self.bounds = (south_west, north_east)
        return self.bounds

    def by_tier(self, tier: MarkerTier) -> List[Marker]:
        return [m for m in self.markers if m.tier == tier]

    def as_dict(self) -> Dict:
        return {
            'markers': [m.as_dict() for m in self.markers],
            'bounds': [b.as_dict() for b in self.bounds] if self.bounds else None,
        }


def build_marker_layer(plan) -> MarkerLayer:
    """Lay out a MeetingPlan: origins, midpoint, best and alternate candidates"""
    layer = MarkerLayer()
    for address in plan.addresses:
        layer.place_marker(address.location, address.query, MarkerTier.USER_ORIGIN)
    layer.place_marker(plan.midpoint, "Midpoint", MarkerTier.MIDPOINT)
    layer.fit_view_to(plan.user_coords + [plan.midpoint])

    best = plan.best
    if best is not None:
        layer.place_marker(best.candidate.location, f"Best Meetup: {best.candidate.name}",
                           MarkerTier.BEST_CANDIDATE)
    for alternative in plan.alternatives:
        layer.place_marker(alternative.candidate.location, alternative.candidate.name,
                           MarkerTier.ALTERNATE_CANDIDATE)
    return layer


class MapSession:
    """The layer currently shown; replaced wholesale by each new plan"""

    def __init__(self):
        self._lock = threading.Lock()
        self._layer: Optional[MarkerLayer] = None

    @property
    def current(self) -> Optional[MarkerLayer]:
        return self._layer

    def install(self, layer: MarkerLayer) -> MarkerLayer:
        with self._lock:
            if self._layer is not None:
                self._layer.clear_markers()
            self._layer = layer
        return layer


def render_map(layer: Optional[MarkerLayer]) -> folium.Map:
    """Create a Folium map with one marker per layer entry"""
    if layer is None or not layer.markers:
        return folium.Map(location=list(WORLD_CENTER), zoom_start=2, tiles="OpenStreetMap")

    if layer.bounds:
        south_west, north_east = layer.bounds
        center = [(south_west.lat + north_east.lat) / 2, (south_west.lng + north_east.lng) / 2]
    else:
        center = list(layer.markers[0].location.as_tuple())

    m = folium.Map(location=center, zoom_start=13, tiles="OpenStreetMap")
    for marker in layer.markers:
        color, icon = TIER_ICONS[marker.tier]
        folium.Marker(
            location=list(marker.location.as_tuple()),
            popup=folium.Popup(marker.label, parse_html=True),
            tooltip=marker.tier.value,
            icon=folium.Icon(color=color, icon=icon),
        ).add_to(m)
    if layer.bounds:
        south_west, north_east = layer.bounds
        m.fit_bounds([list(south_west.as_tuple()), list(north_east.as_tuple())], padding=VIEW_PADDING)
    return m
