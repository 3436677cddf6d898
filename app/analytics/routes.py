"""
Analytics Routes

Flask routes for the analytics HTTP API: recording visits and clicks,
reading the aggregate, and the password-gated reset.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List

from flask import Blueprint, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from analytics_service.errors import (
    AuthorizationError,
    InvalidPayloadError,
    PayloadTooLargeError,
    PersistenceError,
)

from .auth import extract_secret
from .services import AnalyticsService

logger = logging.getLogger(__name__)


def build_cors_headers(origin: str, allowed_origins: List[str]) -> Dict[str, str]:
    """Build CORS headers for a request coming from ``origin``."""
    headers = {
        "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type,Authorization",
        "Access-Control-Max-Age": "86400",
        "Vary": "Origin",
    }
    if not allowed_origins or "*" in allowed_origins:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
    else:
        headers["Access-Control-Allow-Origin"] = allowed_origins[0]
    return headers


def read_json_body(max_body_size: int) -> Dict[str, Any]:
    """Read and parse the request body, enforcing the size cap first.

    An empty body reads as ``{}``; a JSON value that is not an object is
    treated as ``{}`` as well.

    Raises:
        PayloadTooLargeError: If the body exceeds ``max_body_size`` bytes
        InvalidPayloadError: If the body is not valid JSON
    """
    declared = request.content_length
    if declared is not None and declared > max_body_size:
        raise PayloadTooLargeError("Payload too large")

    raw = request.stream.read(max_body_size + 1)
    if len(raw) > max_body_size:
        raise PayloadTooLargeError("Payload too large")
    if not raw.strip():
        return {}

    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise InvalidPayloadError("Invalid JSON body") from exc
    return dict(payload) if isinstance(payload, Mapping) else {}


def create_analytics_blueprint(
    analytics_service: AnalyticsService,
    max_body_size: int,
    allowed_origins: List[str]
) -> Blueprint:
    """Create analytics blueprint with routes.

    Args:
        analytics_service: The analytics service instance
        max_body_size: Maximum accepted request body size in bytes
        allowed_origins: Origins allowed by CORS (``*`` allows any)

    Returns:
        Flask blueprint with analytics routes
    """
    bp = Blueprint('analytics', __name__, url_prefix='/api/analytics')

    @bp.before_app_request
    def answer_preflight():
        """Answer CORS preflight requests for any path."""
        if request.method == "OPTIONS":
            return Response(status=204)
        return None

    @bp.after_app_request
    def add_cors_headers(response: Response) -> Response:
        origin = request.headers.get("Origin", "")
        response.headers.update(build_cors_headers(origin, allowed_origins))
        if response.mimetype == "application/json":
            response.headers["Cache-Control"] = "no-store"
        return response

    @bp.app_errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not Found"}), 404

    @bp.app_errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method Not Allowed"}), 405

    @bp.errorhandler(PayloadTooLargeError)
    def payload_too_large(error):
        return jsonify({"error": str(error)}), 413

    @bp.errorhandler(InvalidPayloadError)
    def invalid_payload(error):
        return jsonify({"error": str(error)}), 400

    @bp.errorhandler(AuthorizationError)
    def unauthorized(error):
        return jsonify({"error": "Unauthorized"}), 401

    @bp.errorhandler(PersistenceError)
    def persistence_failed(error):
        logger.error(f"Analytics persistence failure: {error}")
        return jsonify({"error": "Internal Server Error"}), 500

    @bp.errorhandler(Exception)
    def unhandled(error):
        if isinstance(error, HTTPException):
            return jsonify({"error": error.name}), error.code
        logger.exception("Unhandled error in analytics route")
        return jsonify({"error": "Internal Server Error"}), 500

    @bp.route("", methods=["GET"])
    def get_analytics():
        """Return the current statistics document."""
        data = analytics_service.get_data()
        return jsonify({"data": data})

    @bp.route("/visit", methods=["POST"])
    def record_visit():
        """Record a page visit (all fields optional)."""
        payload = read_json_body(max_body_size)
        analytics_service.record_visit(payload)
        return jsonify({"success": True})

    @bp.route("/click", methods=["POST"])
    def record_click():
        """Record a click on a labelled element."""
        payload = read_json_body(max_body_size)
        analytics_service.record_click(payload)
        return jsonify({"success": True})

    @bp.route("/clear", methods=["POST"])
    def clear_analytics():
        """Reset all statistics; requires the admin password or its hash."""
        payload = read_json_body(max_body_size)
        data = analytics_service.clear(extract_secret(payload))
        return jsonify({"success": True, "data": data})

    return bp
