import argparse
from typing import Optional

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from config_manager import AnalyticsConfig, get_analytics_config
from app.analytics.factory import create_analytics_module
from analytics_service.storage import StorageBackend


def create_app(
    analytics_config: Optional[AnalyticsConfig] = None,
    backend: Optional[StorageBackend] = None
) -> Flask:
    """Create the Flask application with the analytics API registered.

    Args:
        analytics_config: Analytics settings; loaded from the configuration
            file and environment when omitted
        backend: Storage backend to use instead of the configured one

    Returns:
        The configured Flask app; the analytics service is available as
        ``app.extensions["analytics"]``
    """
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_proto = 1,     # trust 1 hop for X-Forwarded-Proto
            x_host  = 1,     # trust 1 hop for X-Forwarded-Host
            x_prefix= 1)     # <-- pay attention to X-Forwarded-Prefix

    if analytics_config is None:
        analytics_config = get_analytics_config()

    analytics_module = create_analytics_module(analytics_config, backend=backend)
    app.register_blueprint(analytics_module["blueprint"])
    app.extensions["analytics"] = analytics_module["service"]

    @app.get("/actuator/health")
    def actuator_health():
        """Health check endpoint for monitoring tools and cloud platforms."""
        return jsonify({
            "status": "UP",
            "service": "site-analytics"
        }), 200

    return app


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    from run_app import main

    parser = argparse.ArgumentParser(description="Site analytics HTTP server")
    parser.add_argument("--port", type=int, help="Port to run the server on")
    parser.add_argument("--host", type=str, help="Host to bind the server to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    args = parser.parse_args()
    main(host=args.host, port=args.port, debug=args.debug)
