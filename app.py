"""
Face Attendance service: Flask application factory
"""
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

import config
from db import close_db, init_db
from face_utils import EmbeddingUnavailable
from utils.face_cache import TemplateCache
from utils.helpers import get_timezone, parse_cutoff
from utils.logger import get_logger
from utils.validators import ValidationError

logger = get_logger(__name__)

CONFIG_KEYS = (
    'DATABASE', 'SECRET_KEY', 'DEBUG',
    'FACE_MATCH_THRESHOLD', 'FACE_MATCH_EPSILON', 'FACE_EMBEDDING_DIMENSION', 'FACE_CACHE_TTL',
    'LATE_CUTOFF', 'APP_TIMEZONE',
    'DEFAULT_ADMIN_USERNAME', 'DEFAULT_ADMIN_PASSWORD',
)


def _validate_settings(app):
    """Reject unusable matching/attendance settings at startup"""
    if app.config['FACE_MATCH_THRESHOLD'] <= 0:
        raise ValueError("FACE_MATCH_THRESHOLD must be greater than 0")
    if app.config['FACE_MATCH_EPSILON'] < 0:
        raise ValueError("FACE_MATCH_EPSILON must not be negative")
    try:
        app.config['LATE_CUTOFF_TIME'] = parse_cutoff(app.config['LATE_CUTOFF'])
        app.config['TIMEZONE'] = get_timezone(app.config['APP_TIMEZONE'])
    except ValidationError as e:
        raise ValueError(str(e))


def create_app(overrides=None):
    """
    Build the application.

    Args:
        overrides: Optional dict applied on top of config.py (used by tests)
    """
    app = Flask(__name__)
    for key in CONFIG_KEYS:
        app.config[key] = getattr(config, key)
    app.config['MAX_CONTENT_LENGTH'] = config.MAX_UPLOAD_SIZE
    if overrides:
        app.config.update(overrides)

    _validate_settings(app)

    app.extensions['template_cache'] = TemplateCache(ttl=app.config['FACE_CACHE_TTL'])
    app.teardown_appcontext(close_db)

    from blueprints import auth_bp, employees_bp, api_bp, reports_bp
    app.register_blueprint(auth_bp)
    app.register_blueprint(employees_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(reports_bp)

    @app.after_request
    def hide_server_header(response):
        response.headers['Server'] = 'SecureServer'
        return response

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        logger.warning(f"Validation error on {request.path}: {str(error)}")
        return jsonify({"success": False, "message": str(error)}), 400

    @app.errorhandler(EmbeddingUnavailable)
    def handle_embedding_unavailable(error):
        logger.error(f"Server-side face embedding unavailable: {str(error)}")
        return jsonify({"success": False, "reason": "embedding_unavailable", "message": str(error)}), 503

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"success": False, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.error(f"Unhandled error: {str(error)}", exc_info=True)
        return jsonify({"success": False, "message": "Internal server error"}), 500

    init_db(app)
    logger.info(
        f"Face Attendance service ready (threshold={app.config['FACE_MATCH_THRESHOLD']}, "
        f"late cutoff={app.config['LATE_CUTOFF']}, timezone={app.config['APP_TIMEZONE'] or 'local'})"
    )
    return app


# ================= RUN =================
if __name__ == "__main__":
    create_app().run(host=config.HOST, port=config.PORT, debug=config.DEBUG)
