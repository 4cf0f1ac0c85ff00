"""
Status change history endpoints.

- GET /api/history - Most recent status changes across all flights
- GET /api/history/<flight_number> - Status changes for one flight
- DELETE /api/history - Clear history (all, or ?flight_number=XXX)
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from flighttracker.records import normalize_flight_number

logger = logging.getLogger(__name__)

history_bp = Blueprint('history', __name__, url_prefix='/api/history')

DEFAULT_LIMIT = 20
MAX_LIMIT = 500


@history_bp.route('', methods=['GET'])
def recent_changes():
    """
    Newest status changes first.

    Query parameters:
    - limit: int, max entries (default 20, max 500)
    """
    try:
        limit = int(request.args.get('limit', DEFAULT_LIMIT))
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400
    limit = max(1, min(limit, MAX_LIMIT))

    events = current_app.config['TRACKING_STORE'].recent_status_changes(limit)
    return jsonify({
        'history': [e.to_dict() for e in events],
        'count': len(events),
    })


@history_bp.route('/<flight_number>', methods=['GET'])
def flight_changes(flight_number: str):
    events = current_app.config['TRACKING_STORE'].status_changes_for(flight_number)
    return jsonify({
        'flight_number': normalize_flight_number(flight_number),
        'history': [e.to_dict() for e in events],
        'count': len(events),
    })


@history_bp.route('', methods=['DELETE'])
def clear_history():
    flight_number = request.args.get('flight_number')
    deleted = current_app.config['TRACKING_STORE'].clear_status_changes(flight_number)
    return jsonify({'deleted': deleted})
