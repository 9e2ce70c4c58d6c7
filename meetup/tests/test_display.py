import folium

from meetup.display import MapSession, MarkerLayer, build_marker_layer, render_map
from meetup.finder import MeetingPlan
from meetup.models import Candidate, Coordinate, GeocodedAddress, MarkerTier, VenueCategory
from meetup.ranking import build_ranked_candidate


def _plan():
    colombo = GeocodedAddress('Colombo', Coordinate(7.0, 80.0))
    kandy = GeocodedAddress('Kandy', Coordinate(9.0, 82.0))
    midpoint = Coordinate(8.0, 81.0)
    ranked = [
        build_ranked_candidate(Candidate('Cafe Central', Coordinate(8.01, 81.01)), [600, 600]),
        build_ranked_candidate(Candidate.midpoint(midpoint), [300, 900]),
    ]
    return MeetingPlan(addresses=[colombo, kandy], midpoint=midpoint, ranked=ranked,
                       category=VenueCategory.CAFE, search_radius=1000)


def test_marker_layer_tiers():
    layer = build_marker_layer(_plan())

    assert [m.label for m in layer.by_tier(MarkerTier.USER_ORIGIN)] == ['Colombo', 'Kandy']
    assert len(layer.by_tier(MarkerTier.MIDPOINT)) == 1
    assert [m.label for m in layer.by_tier(MarkerTier.BEST_CANDIDATE)] == ['Best Meetup: Cafe Central']
    assert [m.label for m in layer.by_tier(MarkerTier.ALTERNATE_CANDIDATE)] == ['Midpoint']
    assert layer.bounds == (Coordinate(7.0, 80.0), Coordinate(9.0, 82.0))


def test_fit_view_to_empty_clears_bounds():
    layer = MarkerLayer()
    assert layer.fit_view_to([]) is None
    assert layer.bounds is None


def test_session_clears_previous_layer():
    session = MapSession()
    first = session.install(build_marker_layer(_plan()))
    second = session.install(build_marker_layer(_plan()))

    assert first.markers == []
    assert session.current is second
    assert len(second.markers) == 5


def test_render_map():
    m = render_map(build_marker_layer(_plan()))
    assert isinstance(m, folium.Map)
    html = m.get_root().render()
    assert 'Cafe Central' in html

    assert isinstance(render_map(None), folium.Map)
