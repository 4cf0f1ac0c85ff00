"""
Refresh control and system status endpoints.

- POST /api/refresh - Run a refresh pass now
- GET /api/status - Scheduler and database status
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from flighttracker.config import config

logger = logging.getLogger(__name__)

status_bp = Blueprint('status', __name__, url_prefix='/api')


@status_bp.route('/refresh', methods=['POST'])
def trigger_refresh():
    """
    Run one refresh pass synchronously.

    Returns 409 when a pass is already running; the trigger is dropped,
    not queued.
    """
    scheduler = current_app.config['REFRESH_SCHEDULER']
    outcome = scheduler.run_once()
    if outcome is None:
        return jsonify({'error': 'Refresh already in progress'}), 409

    report = scheduler.last_report
    return jsonify(report.to_dict() if report else {'outcome': outcome.value})


@status_bp.route('/status', methods=['GET'])
def get_system_status():
    """
    Get system health and status information.

    Returns:
    - Refresh scheduler status
    - Database connectivity
    - Configuration info
    """
    start_time = time.perf_counter()

    scheduler = current_app.config['REFRESH_SCHEDULER']
    store = current_app.config['TRACKING_STORE']

    # Check database connectivity
    db_ok = True
    try:
        with store.engine.connect() as conn:
            conn.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        db_ok = False
        logger.error(f'Database health check failed: {e}')

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'status': 'healthy' if db_ok else 'degraded',
        'database': {
            'connected': db_ok,
            'tracked_flights': store.count() if db_ok else None,
        },
        'scheduler': scheduler.stats,
        'config': {
            'refresh_interval_minutes': config.refresh.interval_minutes,
            'aviationstack_configured': config.aviationstack.is_configured,
            'opensky_authenticated': config.opensky.is_authenticated,
        },
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })
