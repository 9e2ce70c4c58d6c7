from flask import Flask, request, jsonify, g
from flask_cors import CORS
import os
import logging
import json
from time import perf_counter
from typing import Optional

from .config import Settings, load_settings
from .display import MapSession, build_marker_layer, render_map
from .errors import InvalidRequest, MeetupError
from .finder import MeetupPointFinder, clean_addresses
from .maps_service import MapsService, SUGGESTION_LIMIT, create_maps_service
from .models import Coordinate, VenueCategory, is_unreachable
from .persistence import LastAddressesStore

MIN_SEARCH_RADIUS = 100
MAX_SEARCH_RADIUS = 10000


def _configure_logging():
    handlers = [logging.StreamHandler()]
    log_file = os.getenv('MEETUP_LOG_FILE')
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


_configure_logging()
logger = logging.getLogger(__name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequest('JSON data is required')
    return data


def _parse_radius(value, default: int) -> int:
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool) \
            or value < MIN_SEARCH_RADIUS or value > MAX_SEARCH_RADIUS:
        raise InvalidRequest(f'search_radius must be between {MIN_SEARCH_RADIUS} and {MAX_SEARCH_RADIUS} meters')
    return value


def _parse_coordinate(data: dict, name: str) -> Coordinate:
    try:
        return Coordinate.from_dict(data.get(name))
    except ValueError as e:
        raise InvalidRequest(f'{name} must have valid lat and lng properties ({e})') from e


def create_app(settings: Optional[Settings] = None,
               maps_service: Optional[MapsService] = None,
               store: Optional[LastAddressesStore] = None) -> Flask:
    settings = settings or load_settings()
    app = Flask(__name__)
    CORS(app)  # Enable CORS for all routes

    if maps_service is None:
        try:
            logger.info("Initializing %s maps service...", settings.provider)
            maps_service = create_maps_service(settings)
        except ValueError as e:
            logger.error(f"Error initializing maps service: {e}")
            maps_service = None
    finder = MeetupPointFinder(maps_service, max_candidates=settings.max_candidates) if maps_service else None
    store = store or LastAddressesStore(settings.store_path)
    map_session = MapSession()

    app.extensions['meetup'] = {
        'settings': settings,
        'maps_service': maps_service,
        'finder': finder,
        'store': store,
        'map_session': map_session,
    }

    # Per-request timing: record start time and log duration on completion
    @app.before_request
    def _start_timer():
        g._start_time = perf_counter()

    @app.after_request
    def _log_request_duration(response):
        start = getattr(g, '_start_time', None)
        if start is not None:
            duration_ms = (perf_counter() - start) * 1000.0
            response.headers['X-Process-Time-ms'] = f"{duration_ms:.1f}"
            logger.info(
                "request completed: method=%s path=%s status=%s duration_ms=%.1f remote_addr=%s",
                request.method,
                request.full_path if request.query_string else request.path,
                response.status_code,
                duration_ms,
                request.remote_addr,
            )
        return response

    @app.teardown_request
    def _teardown_request_log(error=None):
        # If an unhandled exception occurred, ensure we still log duration
        if error is not None:
            start = getattr(g, '_start_time', None)
            duration_ms = (perf_counter() - start) * 1000.0 if start is not None else None
            logger.error(
                "request error: method=%s path=%s duration_ms=%s error=%s",
                request.method,
                request.path,
                f"{duration_ms:.1f}" if duration_ms is not None else 'unknown',
                repr(error),
            )

    def _require_service():
        if not maps_service:
            raise MeetupError('Maps provider is not configured')

    @app.errorhandler(MeetupError)
    def _meetup_error(error):
        logger.warning("%s: %s", type(error).__name__, error)
        return jsonify(error.to_dict()), error.status_code

    @app.route('/', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({
            'message': 'Group Meetup API is running!',
            'provider': settings.provider,
            'endpoints': {
                'find_meeting_point': '/api/find-meeting-point',
                'geocode': '/api/geocode',
                'suggest': '/api/suggest',
                'travel_time': '/api/travel-time',
                'last_addresses': '/api/last-addresses',
                'config': '/api/config',
                'map': '/map',
                'health': '/'
            },
            'status': 'healthy' if maps_service else 'degraded'
        })

    @app.route('/api/geocode', methods=['POST'])
    def geocode_address():
        """
        Geocode a single address
        Expected JSON: {"address": "123 Main St, City"}
        """
        _require_service()
        data = _json_body()
        address = (data.get('address') or '').strip() if isinstance(data.get('address'), str) else ''
        if not address:
            raise InvalidRequest('Address is required')

        result = maps_service.geocode_address(address)
        if not result:
            logger.warning(f"Failed to geocode address: '{address}'")
            return jsonify({
                'success': False,
                'error': f'Location not found: {address}',
                'error_code': 'address_not_found'
            }), 404
        return jsonify({'success': True, 'data': result.as_dict()})

    @app.route('/api/suggest', methods=['GET'])
    def suggest_addresses():
        """Address suggestions for partial input (3+ characters)"""
        _require_service()
        query = request.args.get('q', '')
        try:
            limit = int(request.args.get('limit', SUGGESTION_LIMIT))
        except ValueError:
            raise InvalidRequest('limit must be an integer')
        limit = max(1, min(limit, 10))
        suggestions = maps_service.suggest_addresses(query, limit=limit)
        return jsonify({'success': True, 'data': {'query': query, 'suggestions': suggestions}})

    @app.route('/api/travel-time', methods=['POST'])
    def get_travel_time():
        """
        Get driving time between two points
        Expected JSON: {
            "origin": {"lat": 6.9271, "lng": 79.8612},
            "destination": {"lat": 7.2906, "lng": 80.6337}
        }
        """
        _require_service()
        data = _json_body()
        origin = _parse_coordinate(data, 'origin')
        destination = _parse_coordinate(data, 'destination')

        travel_time = maps_service.get_travel_time(origin, destination)
        if is_unreachable(travel_time):
            return jsonify({
                'success': False,
                'error': 'Could not calculate travel time between the provided points',
                'error_code': 'route_unreachable'
            }), 404
        return jsonify({
            'success': True,
            'data': {
                'travel_time_seconds': travel_time,
                'travel_time_minutes': round(travel_time / 60, 1)
            }
        })

    @app.route('/api/find-meeting-point', methods=['POST'])
    def find_meeting_point():
        """
        Find the fairest meeting place for a group
        Expected JSON: {
            "addresses": ["Colombo", "Kandy", "Galle"],
            "category": "cafe",        // optional
            "search_radius": 1000      // optional, meters
        }
        """
        logger.info("=== FIND MEETING POINT REQUEST ===")
        _require_service()
        data = _json_body()
        logger.info(f"Request data received: {json.dumps(data)}")

        addresses = data.get('addresses')
        if not isinstance(addresses, list) or not all(isinstance(a, str) or a is None for a in addresses):
            raise InvalidRequest('addresses must be a list of strings')
        try:
            category = VenueCategory.parse(data.get('category') or settings.default_category)
        except ValueError as e:
            raise InvalidRequest(str(e)) from e
        search_radius = _parse_radius(data.get('search_radius'), settings.default_radius)

        # The raw inputs prefill the next session, even when nothing resolves
        try:
            store.save([a or '' for a in addresses])
        except OSError as e:
            logger.warning(f"Failed to save last addresses: {e}")

        _algo_start = perf_counter()
        plan = finder.find_meeting_point(clean_addresses(addresses), category, search_radius)
        _compute_ms = (perf_counter() - _algo_start) * 1000.0
        logger.info("Time to find meeting point = %.1f ms", _compute_ms)

        layer = map_session.install(build_marker_layer(plan))
        response = jsonify({
            'success': True,
            'data': {**plan.as_dict(), 'map': layer.as_dict()}
        })
        response.headers['X-Compute-Time-ms'] = f"{_compute_ms:.1f}"
        logger.info("=== END FIND MEETING POINT REQUEST ===")
        return response

    @app.route('/api/last-addresses', methods=['GET'])
    def last_addresses():
        """Addresses of the previous request, used to prefill the form"""
        return jsonify({'success': True, 'data': {'addresses': store.load()}})

    @app.route('/map', methods=['GET'])
    def show_map():
        """HTML map of the most recent meeting plan"""
        html = render_map(map_session.current).get_root().render()
        return html, 200, {'Content-Type': 'text/html; charset=utf-8'}

    @app.route('/api/config', methods=['GET'])
    def get_config():
        """
        Get frontend configuration (never includes provider secrets)
        """
        return jsonify({
            'success': True,
            'data': {
                **settings.public_dict(),
                'apiBaseUrl': request.host_url.rstrip('/')
            }
        })

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({'error': 'Internal server error'}), 500

    return app
