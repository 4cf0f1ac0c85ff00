"""
FlightTracker Flask Application.

Main entry point for the web application. Initializes:
- Database schema
- Flight refresher (AviationStack + OpenSky clients)
- Periodic refresh scheduler
- API routes

Usage:
    python -m flighttracker.app

Or with gunicorn:
    gunicorn 'flighttracker.app:create_app()'
"""

import logging
import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from flighttracker.api import flights_bp, history_bp, routes_bp, status_bp
from flighttracker.config import config
from flighttracker.ingestion import FlightRefresher, RefreshScheduler
from flighttracker.records import FlightRecord
from flighttracker.store import TrackingStore

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def create_app(
    store: Optional[TrackingStore] = None,
    refresher: Optional[FlightRefresher] = None,
    start_scheduler: bool = True,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        store: Tracking store to serve; defaults to one on DATABASE_URL.
        refresher: Flight refresher; defaults to one with clients built
                   from configuration.
        start_scheduler: Whether to start the background refresh job.
                         Set to False for testing.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    # Initialize database
    if store is None:
        logger.info('Initializing database...')
        store = TrackingStore()
        store.init_schema()

    if refresher is None:
        refresher = FlightRefresher.from_config(store)

    scheduler = RefreshScheduler(refresher)

    def on_flight_update(record: FlightRecord, deleted: bool):
        if deleted:
            logger.debug(f'{record.flight_number} removed')
        else:
            logger.debug(f'{record.flight_number} updated ({record.status.value})')

    store.subscribe(on_flight_update)

    app.config['TRACKING_STORE'] = store
    app.config['FLIGHT_REFRESHER'] = refresher
    app.config['REFRESH_SCHEDULER'] = scheduler

    # Register API blueprints
    app.register_blueprint(flights_bp)
    app.register_blueprint(routes_bp)
    app.register_blueprint(history_bp)
    app.register_blueprint(status_bp)

    if start_scheduler:
        scheduler.start_background()
        logger.info(f'Refresh scheduled every {config.refresh.interval_minutes} minutes')

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {'error': 'Method not allowed'}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    # Get port from environment or default
    port = int(os.environ.get('PORT', 5000))

    logger.info(f'Starting FlightTracker on http://localhost:{port}')

    app.run(
        host='0.0.0.0',
        port=port,
        debug=config.debug,
        use_reloader=False,  # Reloader would start a second scheduler thread
    )


if __name__ == '__main__':
    run_development_server()
