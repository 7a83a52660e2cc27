"""Flask application factory for the URL shortener API."""

import atexit
import logging
import weakref
from datetime import timedelta
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, redirect, request
from flask_cors import CORS

from shortener.config import Config
from shortener.errors import ShortenerError
from shortener.middleware import RateLimitMiddleware
from shortener.rate_limiter import Clock, ExpirySweeper, RateLimiter
from shortener.repository import MemoryRepository, Repository
from shortener.service import URLService

logger = logging.getLogger(__name__)

bp = Blueprint("shortener", __name__)

RATE_LIMIT_HEADERS = ["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"]

# Sweepers started by create_app; stopped together at interpreter exit.
_sweepers: "weakref.WeakSet[ExpirySweeper]" = weakref.WeakSet()


@atexit.register
def stop_sweepers() -> None:
    for sweeper in list(_sweepers):
        sweeper.stop()


def _service() -> URLService:
    return current_app.extensions["shortener"]["service"]


@bp.route("/shorten", methods=["POST"])
def create_short_url():
    """Create a shortened URL."""
    data = request.get_json(silent=True)

    if not isinstance(data, dict) or "url" not in data:
        return jsonify({"error": "Missing 'url' in request"}), 400

    url = _service().shorten(data["url"], data.get("custom_code"))
    base_url = current_app.config["BASE_URL"]

    return jsonify({
        "short_code": url.short_code,
        "short_url": f"{base_url}/{url.short_code}",
        "long_url": url.original_url,
        "expires_at": url.expires_at.isoformat(),
    })


@bp.route("/<short_code>", methods=["GET"])
def redirect_to_url(short_code: str):
    """Redirect to the original URL."""
    return redirect(_service().resolve(short_code), code=302)


@bp.route("/stats/<short_code>", methods=["GET"])
def get_stats(short_code: str):
    """Get statistics for a shortened URL."""
    return jsonify(_service().stats(short_code).to_dict())


@bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy", "urls_stored": _service().count()})


def handle_shortener_error(error: ShortenerError):
    return jsonify({"error": str(error)}), error.status_code


def create_app(
    config: Optional[Config] = None,
    repository: Optional[Repository] = None,
    clock: Optional[Clock] = None,
    start_sweeper: bool = True,
) -> Flask:
    """Build a fully wired Flask application.

    Args:
        config: Settings. Read from the environment when omitted.
        repository: URL store. A fresh MemoryRepository when omitted.
        clock: Time source for the rate limiter.
        start_sweeper: Start the idle-client sweeper thread. It is
            stopped automatically at interpreter exit.

    Returns:
        The Flask app. Rate limiting runs before every view; CORS headers
        are added to every response, 429s included.
    """
    config = config or Config.from_env()

    app = Flask(__name__)
    app.config["BASE_URL"] = config.base_url

    service = URLService(
        repository or MemoryRepository(),
        default_expiry=timedelta(seconds=config.url_expiry),
    )
    limiter = RateLimiter.from_config(config, clock=clock)
    sweeper = ExpirySweeper(limiter)

    app.extensions["shortener"] = {
        "config": config,
        "service": service,
        "limiter": limiter,
        "sweeper": sweeper,
    }

    app.register_blueprint(bp)
    app.register_error_handler(ShortenerError, handle_shortener_error)

    RateLimitMiddleware(limiter, app)
    CORS(
        app,
        origins=list(config.allowed_origins),
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
        expose_headers=RATE_LIMIT_HEADERS,
    )

    if start_sweeper:
        sweeper.start()
        _sweepers.add(sweeper)

    logger.info(
        "App ready: %d requests per %.0fs per client",
        limiter.capacity,
        limiter.window,
    )
    return app
