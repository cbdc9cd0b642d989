"""
Flask application factory for the GreenQuest API
"""

from datetime import date, datetime
import logging

from flask import Flask, jsonify
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS

from greenquest.config import Config
from greenquest.firebase import FirebaseClients
from greenquest.routes import api
from greenquest.services import EXTENSION_KEY, Services
from greenquest.utils.error_handler import GreenQuestError, handle_error

logger = logging.getLogger(__name__)

# Multipart framing on top of the image bytes
UPLOAD_OVERHEAD_BYTES = 64 * 1024


class GreenQuestJSONProvider(DefaultJSONProvider):
    """Firestore timestamps go out as ISO-8601 strings"""

    @staticmethod
    def default(o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def configure_logging(config):
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )


def create_app(config=None, firebase=None):
    """
    Build the Flask app.

    firebase is a FirebaseClients bundle; when omitted it is initialized from
    config. The caller owns it and is responsible for closing it.
    """
    config = config or Config.from_env()
    configure_logging(config)

    if firebase is None:
        firebase = FirebaseClients.initialize(config)

    app = Flask(__name__)
    app.json = GreenQuestJSONProvider(app)
    app.config['DEBUG'] = config.debug
    app.config['MAX_CONTENT_LENGTH'] = config.max_upload_bytes + UPLOAD_OVERHEAD_BYTES

    CORS(app, origins=config.allowed_origins)

    app.extensions[EXTENSION_KEY] = Services(config, firebase)
    app.register_blueprint(api)

    register_error_handlers(app)

    logger.info(f"GreenQuest API ready (environment={config.environment})")
    return app


def register_error_handlers(app):
    @app.errorhandler(GreenQuestError)
    def greenquest_error(error):
        return handle_error(error)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Endpoint not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({'error': 'Upload too large'}), 413

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {str(error)}")
        return jsonify({'error': 'Internal server error'}), 500
