import asyncio
import time

import pytest

from meetup.errors import NoAddressesResolved
from meetup.finder import MeetupPointFinder, calculate_midpoint, clean_addresses
from meetup.models import Candidate, Coordinate, VenueCategory

LOCATIONS = {
    'Colombo': (7.0, 80.0),
    'Kandy': (9.0, 82.0),
}


def test_midpoint_is_planar_mean():
    assert calculate_midpoint([Coordinate(7.0, 80.0), Coordinate(9.0, 82.0)]) == Coordinate(8.0, 81.0)


def test_midpoint_of_one_coordinate_is_itself():
    assert calculate_midpoint([Coordinate(6.5, 79.9)]) == Coordinate(6.5, 79.9)


def test_midpoint_lies_within_input_bounds():
    coords = [Coordinate(6.1, 81.2), Coordinate(9.7, 79.9), Coordinate(7.3, 80.4)]
    mid = calculate_midpoint(coords)
    assert min(c.lat for c in coords) <= mid.lat <= max(c.lat for c in coords)
    assert min(c.lng for c in coords) <= mid.lng <= max(c.lng for c in coords)


def test_midpoint_requires_coordinates():
    with pytest.raises(ValueError):
        calculate_midpoint([])


def test_clean_addresses_drops_blanks():
    assert clean_addresses(['  Colombo ', '', '   ', None, 'Kandy']) == ['Colombo', 'Kandy']


def test_find_meeting_point_end_to_end(make_service):
    venue = Candidate('Cafe Central', Coordinate(8.01, 81.01))

    def travel_time(origin, destination):
        if destination == venue.location:
            return 600.0
        # midpoint is much less fair for this pair of users
        return 300.0 if origin.lat < 8 else 900.0

    service = make_service(locations=LOCATIONS, venues=[venue], travel_times=travel_time)
    finder = MeetupPointFinder(service)

    plan = finder.find_meeting_point(['Colombo', 'Kandy', ''], 'cafe', 1000)

    assert plan.midpoint == Coordinate(8.0, 81.0)
    assert [a.query for a in plan.addresses] == ['Colombo', 'Kandy']
    assert plan.warnings == []
    assert plan.best.candidate.name == 'Cafe Central'
    assert [r.candidate.name for r in plan.ranked] == ['Cafe Central', 'Midpoint']
    assert service.venue_calls == [(Coordinate(8.0, 81.0), 1000, VenueCategory.CAFE)]
    # one query per (user, candidate) pair
    assert len(service.travel_calls) == 4


def test_unresolved_address_is_a_warning(make_service):
    service = make_service(locations=LOCATIONS, travel_times=lambda o, d: 60.0)
    finder = MeetupPointFinder(service)

    plan = finder.find_meeting_point(['Colombo', 'Atlantis'])

    assert [a.query for a in plan.addresses] == ['Colombo']
    assert [w.address for w in plan.warnings] == ['Atlantis']
    assert plan.midpoint == Coordinate(7.0, 80.0)
    assert all(r.fairness == 0 for r in plan.ranked)


def test_midpoint_is_always_a_candidate(make_service):
    service = make_service(locations=LOCATIONS, venues=[], travel_times=lambda o, d: 60.0)
    plan = MeetupPointFinder(service).find_meeting_point(['Colombo', 'Kandy'])
    assert [r.candidate.name for r in plan.ranked] == ['Midpoint']
    assert plan.best.candidate.location == plan.midpoint


def test_all_blank_addresses_abort_before_any_lookup(make_service):
    service = make_service(locations=LOCATIONS)
    finder = MeetupPointFinder(service)

    with pytest.raises(NoAddressesResolved):
        finder.find_meeting_point(['', '   ', None])

    assert service.geocode_calls == []
    assert service.venue_calls == []
    assert service.travel_calls == []


def test_no_resolved_addresses_abort_before_ranking(make_service):
    service = make_service(locations=LOCATIONS)
    with pytest.raises(NoAddressesResolved):
        MeetupPointFinder(service).find_meeting_point(['Atlantis', 'El Dorado'])
    assert service.venue_calls == []
    assert service.travel_calls == []


def test_candidates_are_capped_before_midpoint_is_added(make_service):
    venues = [Candidate(f'Venue {i}', Coordinate(8.0, 81.0 + i / 1000)) for i in range(8)]
    service = make_service(venues=venues)
    finder = MeetupPointFinder(service, max_candidates=3)

    candidates = asyncio.run(finder.find_candidates(Coordinate(8.0, 81.0), VenueCategory.CAFE, 500))

    assert [c.name for c in candidates] == ['Venue 0', 'Venue 1', 'Venue 2', 'Midpoint']


def test_find_candidates_rejects_bad_radius(make_service):
    finder = MeetupPointFinder(make_service())
    with pytest.raises(ValueError):
        asyncio.run(finder.find_candidates(Coordinate(8.0, 81.0), VenueCategory.CAFE, 0))


def test_stalled_venue_search_falls_back_to_midpoint(make_service):
    service = make_service(venues=[Candidate('Slow Cafe', Coordinate(8.0, 81.0))])
    original = service.find_places_nearby

    def slow_search(center, radius, category):
        time.sleep(0.3)
        return original(center, radius, category)

    service.find_places_nearby = slow_search
    finder = MeetupPointFinder(service, call_timeout=0.05)

    candidates = asyncio.run(finder.find_candidates(Coordinate(8.0, 81.0), VenueCategory.CAFE, 500))

    assert [c.name for c in candidates] == ['Midpoint']


def test_failing_venue_search_falls_back_to_midpoint(make_service):
    service = make_service(locations=LOCATIONS, venues=[Candidate('Broken Cafe', Coordinate(8.0, 81.0))],
                           travel_times=lambda o, d: 60.0)

    def broken_search(center, radius, category):
        raise RuntimeError('provider exploded')

    service.find_places_nearby = broken_search
    finder = MeetupPointFinder(service, call_timeout=1)

    plan = finder.find_meeting_point(['Colombo', 'Kandy'])

    assert [r.candidate.name for r in plan.ranked] == ['Midpoint']
