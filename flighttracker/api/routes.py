"""
Route analytics endpoints.

- GET /api/routes - Known routes and airports
- GET /api/routes/average - Average duration for ?dep=XXX&arr=YYY
"""

import logging

from flask import Blueprint, current_app, jsonify, request

logger = logging.getLogger(__name__)

routes_bp = Blueprint('routes', __name__, url_prefix='/api/routes')


@routes_bp.route('', methods=['GET'])
def list_routes():
    """Distinct routes plus the airports that appear on each side."""
    store = current_app.config['TRACKING_STORE']
    routes = store.routes()
    return jsonify({
        'routes': [{'departure': dep, 'arrival': arr} for dep, arr in routes],
        'departure_airports': store.departure_airports(),
        'arrival_airports': store.arrival_airports(),
        'count': len(routes),
    })


@routes_bp.route('/average', methods=['GET'])
def average_duration():
    """
    Average flight duration for a route, in whole minutes.

    Actual times are preferred over scheduled ones. average_minutes is
    null when no stored flight on the route has both ends known.
    """
    dep = (request.args.get('dep') or '').strip().upper()
    arr = (request.args.get('arr') or '').strip().upper()
    if not dep or not arr:
        return jsonify({'error': 'dep and arr are required'}), 400

    stats = current_app.config['TRACKING_STORE'].route_stats(dep, arr)
    if stats is None:
        return jsonify({
            'departure': dep,
            'arrival': arr,
            'count': 0,
            'average_minutes': None,
        })

    return jsonify(stats.to_dict())
