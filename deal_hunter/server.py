"""
HTTP API for Deal Hunter.

A small Flask server that:
1. Serves filtered, ranked listings from the in-memory cache
2. Accepts on-demand scan requests
3. Reports cache and refresh status

Run via `deal-hunter --mode serve`, which also starts the scheduler.
"""

import logging
from flask import Flask, jsonify, request
from flask_cors import CORS

from .pipeline import Services
from .query import ListingQuery, QueryError

logger = logging.getLogger(__name__)


def _iso(value):
    return value.isoformat() if value else None


def create_app(services: Services) -> Flask:
    """
    Build the Flask app around a services bundle.

    Args:
        services: Coordinator and query engine shared with the scheduler

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    # browser dashboards on other origins call this API directly
    CORS(app)
    coordinator = services.coordinator
    engine = services.engine

    @app.route("/health")
    def health_check():
        """Health check endpoint."""
        snap = coordinator.snapshot()
        return jsonify({
            "status": "ok",
            "lastScraped": _iso(snap.last_refreshed_at),
            "scraping": snap.refreshing,
            "count": len(snap.listings),
        })

    @app.route("/api/listings")
    def listings():
        """Filtered listings, best deal first."""
        query = ListingQuery.from_args(request.args)
        try:
            result = engine.search(query)
        except QueryError as e:
            logger.warning(f"Listings request failed: {e}")
            return jsonify({"error": str(e)}), 500
        return jsonify(result.to_dict())

    @app.route("/api/scrape", methods=["POST"])
    @app.route("/api/scan", methods=["POST"])
    def scan():
        """Start a refresh unless one is already running."""
        if coordinator.trigger("on-demand"):
            return jsonify({"isScanning": True})
        return jsonify({"isScanning": True, "message": "Scan already in progress"})

    @app.route("/api/status")
    def status():
        snap = coordinator.snapshot()
        return jsonify({
            "isScanning": snap.refreshing,
            "cachedCount": len(snap.listings),
            "lastScraped": _iso(snap.last_refreshed_at),
            "error": snap.last_error,
        })

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    return app


def serve(services: Services) -> None:
    """Start the scheduler, kick off the first refresh and run the server (blocking)."""
    from .scheduler import create_scheduler

    scheduler = create_scheduler(services)
    scheduler.start()

    # Run initial refresh immediately
    services.coordinator.trigger("startup")

    app = create_app(services)
    config = services.app_config
    logger.info(f"Deal Hunter API running on {config.host}:{config.port}")
    try:
        app.run(host=config.host, port=config.port, threaded=True)
    finally:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
