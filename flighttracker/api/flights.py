"""
Flight data API endpoints.

Provides endpoints for:
- GET /api/flights - List all tracked flights
- GET /api/flights/<flight_number> - Get single flight details
- DELETE /api/flights/<flight_number> - Stop tracking a flight
- POST /api/flights/search - Look up a flight now and start tracking it
- GET /api/flights/route - Stored flights between two airports
- GET /api/flights/route/live - Provider's flights between two airports
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from flighttracker.errors import (
    FlightNotFoundError,
    FlightTrackerError,
    RateLimitedError,
    SourceError,
    SourceNetworkError,
)
from flighttracker.ingestion.refresh import user_message
from flighttracker.merge import record_from_schedule
from flighttracker.records import normalize_flight_number

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__, url_prefix='/api/flights')


def _store():
    return current_app.config['TRACKING_STORE']


def _refresher():
    return current_app.config['FLIGHT_REFRESHER']


def _error_status(error: Exception) -> int:
    """HTTP status for a failed search."""
    if isinstance(error, FlightNotFoundError):
        return 404
    if isinstance(error, RateLimitedError):
        return 429
    if isinstance(error, SourceNetworkError):
        return 503
    return 502


def _route_args():
    dep = (request.args.get('dep') or '').strip().upper()
    arr = (request.args.get('arr') or '').strip().upper()
    return dep, arr


@flights_bp.route('', methods=['GET'])
def list_flights():
    """
    List all tracked flights, most recently updated first.

    Query parameters:
    - status: only flights with this status (e.g. active, landed)
    """
    start_time = time.perf_counter()

    flights = _store().list_all()

    status = request.args.get('status')
    if status:
        flights = [f for f in flights if f.status.value == status.lower()]

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'flights': [f.to_dict() for f in flights],
        'count': len(flights),
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })


@flights_bp.route('/<flight_number>', methods=['GET'])
def get_flight(flight_number: str):
    """Get the stored record for one flight, with its status history."""
    record = _store().get(flight_number)
    if record is None:
        return jsonify({'error': 'Flight not found'}), 404

    result = record.to_dict()
    if request.args.get('include_history', 'false').lower() == 'true':
        result['history'] = [e.to_dict() for e in _store().status_changes_for(flight_number)]

    return jsonify(result)


@flights_bp.route('/<flight_number>', methods=['DELETE'])
def delete_flight(flight_number: str):
    """Stop tracking a flight. Its status history is kept."""
    if not _store().delete(flight_number):
        return jsonify({'error': 'Flight not found'}), 404
    return jsonify({'deleted': normalize_flight_number(flight_number)})


@flights_bp.route('/search', methods=['POST'])
def search_flight():
    """
    Fetch a flight from both sources now and start tracking it.

    Body: {"flight_number": "AA100"}
    """
    payload = request.get_json(silent=True) or {}
    flight_number = normalize_flight_number(str(payload.get('flight_number') or ''))
    if not flight_number:
        return jsonify({'error': 'flight_number is required'}), 400

    try:
        record = _refresher().search(flight_number)
    except FlightTrackerError as e:
        status = _error_status(e)
        logger.info(f'Search for {flight_number} failed ({status}): {e}')
        return jsonify({'error': user_message(e), 'flight_number': flight_number}), status

    return jsonify(record.to_dict())


@flights_bp.route('/route', methods=['GET'])
def flights_by_route():
    """Stored flights for ?dep=XXX&arr=YYY."""
    dep, arr = _route_args()
    if not dep or not arr:
        return jsonify({'error': 'dep and arr are required'}), 400

    flights = _store().list_by_route(dep, arr)
    return jsonify({
        'departure': dep,
        'arrival': arr,
        'flights': [f.to_dict() for f in flights],
        'count': len(flights),
    })


@flights_bp.route('/route/live', methods=['GET'])
def live_route():
    """Flights the schedule provider currently reports for ?dep=XXX&arr=YYY. Nothing is stored."""
    dep, arr = _route_args()
    if not dep or not arr:
        return jsonify({'error': 'dep and arr are required'}), 400

    try:
        schedules = _refresher().fetch_route(dep, arr)
    except SourceError as e:
        return jsonify({'error': user_message(e)}), _error_status(e)

    if not schedules:
        e = FlightNotFoundError(f'{dep}-{arr}')
        return jsonify({'error': user_message(e)}), 404

    flights = [record_from_schedule(s.flight_number, s).to_dict() for s in schedules]
    return jsonify({
        'departure': dep,
        'arrival': arr,
        'flights': flights,
        'count': len(flights),
    })
