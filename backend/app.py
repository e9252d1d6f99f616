"""
app.py — Flask application factory for the LegalCRM practice platform.
"""

import logging
from datetime import datetime, timezone
from flask import Flask, jsonify, request, g
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from config import get_config
from database import db, check_connection
from utils.storage import ObjectStorageService
from utils.tokens import init_token_providers
from utils.validation import validation_details


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or get_config())

    _configure_logging(app)
    _init_extensions(app)
    _register_blueprints(app)
    _register_error_handlers(app)
    _register_hooks(app)
    _register_health_check(app)

    return app


# ─── Logging ──────────────────────────────────────────────────────────────────

def _configure_logging(app):
    level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    app.logger.setLevel(level)


# ─── Extensions ───────────────────────────────────────────────────────────────

def _init_extensions(app):
    db.init_app(app)
    init_token_providers(app)
    app.extensions["object_storage"] = ObjectStorageService.from_config(app.config)

    if not app.config.get("LLM_API_KEY"):
        app.logger.warning("LLM_API_KEY not set — AI assistant disabled.")
    if not app.config.get("SENDGRID_API_KEY"):
        app.logger.warning("SENDGRID_API_KEY not set — outbound email disabled.")


# ─── Blueprints ───────────────────────────────────────────────────────────────

def _register_blueprints(app):
    from routes.auth           import auth_bp
    from routes.users          import users_bp
    from routes.clients        import clients_bp
    from routes.cases          import cases_bp
    from routes.time_entries   import time_entries_bp
    from routes.invoices       import invoices_bp
    from routes.documents      import documents_bp, objects_bp
    from routes.calendar       import calendar_bp
    from routes.messages       import messages_bp
    from routes.compliance     import compliance_bp
    from routes.billing_config import billing_config_bp
    from routes.dashboard      import dashboard_bp
    from routes.ai             import ai_bp
    from routes.portal         import portal_auth_bp, portal_bp, portal_admin_bp

    app.register_blueprint(auth_bp,           url_prefix="/api/auth")
    app.register_blueprint(users_bp,          url_prefix="/api/users")
    app.register_blueprint(clients_bp,        url_prefix="/api/clients")
    app.register_blueprint(cases_bp,          url_prefix="/api/cases")
    app.register_blueprint(time_entries_bp,   url_prefix="/api/time-entries")
    app.register_blueprint(invoices_bp,       url_prefix="/api/invoices")
    app.register_blueprint(documents_bp,      url_prefix="/api/documents")
    app.register_blueprint(objects_bp)
    app.register_blueprint(calendar_bp,       url_prefix="/api/calendar")
    app.register_blueprint(messages_bp,       url_prefix="/api/messages")
    app.register_blueprint(compliance_bp,     url_prefix="/api/compliance")
    app.register_blueprint(billing_config_bp, url_prefix="/api")
    app.register_blueprint(dashboard_bp,      url_prefix="/api/dashboard")
    app.register_blueprint(ai_bp,             url_prefix="/api/ai")
    app.register_blueprint(portal_auth_bp,    url_prefix="/api/portal/auth")
    app.register_blueprint(portal_bp,         url_prefix="/api/portal")
    app.register_blueprint(portal_admin_bp,   url_prefix="/api/portal")


# ─── Error handlers ───────────────────────────────────────────────────────────

def _register_error_handlers(app):

    @app.errorhandler(ValidationError)
    def validation_failed(e):
        return jsonify({
            "success": False,
            "error": "Validation failed.",
            "details": validation_details(e),
        }), 400

    @app.errorhandler(IntegrityError)
    def integrity_violation(e):
        db.session.rollback()
        app.logger.warning(f"Integrity violation on {request.method} {request.path}: {e.orig}")
        return jsonify({
            "success": False,
            "error": "Conflicts with existing data (duplicate value or record still in use).",
        }), 409

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"success": False, "error": "Bad request.", "details": str(e)}), 400

    @app.errorhandler(401)
    def unauthorized(e):
        return jsonify({"success": False, "error": "Authentication required."}), 401

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify({"success": False, "error": "Access denied."}), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": f"Route not found: {request.path}"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"success": False, "error": "Method not allowed."}), 405

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.exception("Unhandled server error")
        return jsonify({"success": False, "error": "Internal server error."}), 500


# ─── Request / response hooks ─────────────────────────────────────────────────

def _register_hooks(app):

    @app.before_request
    def log_request():
        g.request_start = datetime.now(timezone.utc)
        app.logger.debug(f"--> {request.method} {request.path}")

    @app.after_request
    def add_headers(response):
        # Security headers
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Cookies carry the session, so dev CORS must name the origin and allow credentials
        origin = request.headers.get("Origin")
        if app.config.get("DEBUG") and origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers["Vary"] = "Origin"

        if hasattr(g, "request_start"):
            elapsed = (datetime.now(timezone.utc) - g.request_start).total_seconds() * 1000
            app.logger.debug(f"<-- {response.status_code}  ({elapsed:.1f}ms)")

        return response


# ─── Health check ─────────────────────────────────────────────────────────────

def _register_health_check(app):

    @app.route("/health")
    def health():
        """
        GET /health
        Returns platform status. Checks DB connectivity.
        """
        db_status = check_connection()
        return jsonify({
            "status": "ok" if db_status == "ok" else "degraded",
            "database": db_status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": "1.0.0",
        }), 200 if db_status == "ok" else 503

    @app.route("/")
    def index():
        return jsonify({
            "platform": app.config.get("FIRM_NAME", "LegalCRM Pro"),
            "status": "running",
            "docs": "/health",
        })


# ─── Entry point ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, port=5000, host="0.0.0.0")
