"""
Authentication Middleware for GreenQuest
Handles Firebase token validation and request authentication
"""

from functools import wraps
import logging

from flask import jsonify, request

from greenquest.services import get_services
from greenquest.utils.error_handler import AuthenticationError

logger = logging.getLogger(__name__)


def _bearer_token():
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[len('Bearer '):].strip()
    return auth_header.strip()


def require_auth(f):
    """
    Decorator to require authentication for API endpoints
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not request.headers.get('Authorization'):
            return jsonify({'error': 'Authorization header required'}), 401

        token = _bearer_token()
        if not token:
            return jsonify({'error': 'Valid token required'}), 401

        try:
            decoded_token = get_services().auth.verify_token(token)
        except AuthenticationError as e:
            logger.warning(f"Rejected token: {e.message}")
            return jsonify({'error': e.message}), 401
        except Exception as e:
            logger.error(f"Authentication error: {str(e)}")
            return jsonify({'error': 'Authentication failed'}), 401

        # Add user info to request context
        request.current_user = decoded_token
        return f(*args, **kwargs)

    return decorated_function


def current_user_id():
    return request.current_user['uid']
