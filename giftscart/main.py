# giftscart/main.py
import logging
import time

from flask import Flask, g, jsonify, request

from giftscart.blueprints.admin_delivery import admin_delivery_bp
from giftscart.blueprints.auth import auth_bp
from giftscart.blueprints.coupons import coupons_bp
from giftscart.blueprints.delivery import delivery_bp
from giftscart.blueprints.location import location_bp
from giftscart.blueprints.partners import partners_bp
from giftscart.config import Config
from giftscart.database import close_db, init_database
from giftscart.errors import register_error_handlers
from giftscart.observability import (
    build_health_report,
    configure_logging,
    ensure_request_id,
    get_metrics_snapshot,
    increment_counter,
    observe_latency,
)
from giftscart.security import load_current_user, require_admin

app = Flask(__name__)
Config.configure_app(app)
configure_logging(app)
register_error_handlers(app)

app.register_blueprint(auth_bp)
app.register_blueprint(delivery_bp)
app.register_blueprint(location_bp)
app.register_blueprint(coupons_bp)
app.register_blueprint(partners_bp)
app.register_blueprint(admin_delivery_bp)

logger = logging.getLogger(__name__)

# Create any missing tables on startup
init_database()


@app.before_request
def before_request_logging():
    g.request_started_at = time.perf_counter()
    g.request_id = ensure_request_id()
    load_current_user()
    increment_counter(
        "http_requests_total",
        labels={
            "method": request.method,
            "endpoint": request.endpoint or request.path,
        },
    )


@app.after_request
def after_request_logging(response):
    started = getattr(g, 'request_started_at', None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000
        observe_latency(
            "http_request_latency_ms",
            duration_ms,
            labels={
                "method": request.method,
                "endpoint": request.endpoint or request.path,
                "status": str(response.status_code),
            },
        )
    if getattr(g, 'request_id', None):
        response.headers[Config.REQUEST_ID_HEADER] = g.request_id
    if response.status_code >= 500:
        increment_counter(
            "http_errors_total",
            labels={
                "method": request.method,
                "endpoint": request.endpoint or request.path,
                "status": str(response.status_code),
            },
        )
        logger.error("Request finished with error status %s", response.status_code)
    else:
        logger.info("Request finished", extra={"status_code": response.status_code})
    return response


@app.teardown_appcontext
def teardown_db(exception):
    close_db(exception)


@app.route('/health', methods=['GET'])
def health():
    payload, status_code = build_health_report()
    return jsonify(payload), status_code


@app.route('/admin/metrics', methods=['GET'])
@require_admin
def admin_metrics():
    return jsonify(get_metrics_snapshot())
