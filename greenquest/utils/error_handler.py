"""
Error Handler for GreenQuest
Centralized error handling and logging
"""

import logging
import traceback

from flask import jsonify
from google.api_core import exceptions as gcp_exceptions
from pydantic import ValidationError as SchemaValidationError

logger = logging.getLogger(__name__)


class GreenQuestError(Exception):
    """Base exception class for GreenQuest"""
    def __init__(self, message, status_code=500, error_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class ValidationError(GreenQuestError):
    """Raised when input validation fails"""
    def __init__(self, message, field=None):
        super().__init__(message, status_code=400, error_code='VALIDATION_ERROR')
        self.field = field


class AuthenticationError(GreenQuestError):
    """Raised when authentication fails"""
    def __init__(self, message):
        super().__init__(message, status_code=401, error_code='AUTH_ERROR')


class AuthorizationError(GreenQuestError):
    """Raised when user lacks required permissions"""
    def __init__(self, message):
        super().__init__(message, status_code=403, error_code='PERMISSION_ERROR')


class NotFoundError(GreenQuestError):
    """Raised when requested resource is not found"""
    def __init__(self, message):
        super().__init__(message, status_code=404, error_code='NOT_FOUND')


class ConflictError(GreenQuestError):
    """Raised when the request clashes with existing state"""
    def __init__(self, message):
        super().__init__(message, status_code=409, error_code='CONFLICT')


class PayloadTooLargeError(GreenQuestError):
    def __init__(self, message):
        super().__init__(message, status_code=413, error_code='PAYLOAD_TOO_LARGE')


class DatabaseError(GreenQuestError):
    """Raised when database operation fails"""
    def __init__(self, message):
        super().__init__(message, status_code=500, error_code='DATABASE_ERROR')


class ExternalServiceError(GreenQuestError):
    """Raised when external service call fails"""
    def __init__(self, message, service_name=None):
        super().__init__(message, status_code=503, error_code='SERVICE_ERROR')
        self.service_name = service_name


def _schema_error_details(error):
    details = []
    for item in error.errors():
        details.append({
            'field': '.'.join(str(part) for part in item.get('loc', ())),
            'message': item.get('msg', 'Invalid value')
        })
    return details


def handle_error(error):
    """
    Central error handler that converts exceptions to JSON responses
    """
    try:
        if isinstance(error, GreenQuestError):
            if error.status_code >= 500:
                logger.error(f"GreenQuest error: {error.message}")
            else:
                logger.warning(f"GreenQuest error: {error.message}")
            return jsonify({
                'error': error.message,
                'error_code': error.error_code,
                'status': 'error'
            }), error.status_code

        elif isinstance(error, SchemaValidationError):
            details = _schema_error_details(error)
            logger.warning(f"Schema validation error: {details}")
            return jsonify({
                'error': 'Invalid request data',
                'error_code': 'VALIDATION_ERROR',
                'details': details,
                'status': 'error'
            }), 400

        elif isinstance(error, ValueError):
            logger.warning(f"Validation error: {str(error)}")
            return jsonify({
                'error': str(error),
                'error_code': 'VALIDATION_ERROR',
                'status': 'error'
            }), 400

        elif isinstance(error, KeyError):
            logger.warning(f"Missing key error: {str(error)}")
            return jsonify({
                'error': f'Missing required field: {str(error)}',
                'error_code': 'MISSING_FIELD',
                'status': 'error'
            }), 400

        elif isinstance(error, PermissionError):
            logger.warning(f"Permission error: {str(error)}")
            return jsonify({
                'error': 'Insufficient permissions',
                'error_code': 'PERMISSION_DENIED',
                'status': 'error'
            }), 403

        # Firestore / Storage API errors
        elif isinstance(error, gcp_exceptions.GoogleAPIError):
            logger.error(f"Google Cloud error: {str(error)}")
            return jsonify({
                'error': 'Service temporarily unavailable',
                'error_code': 'SERVICE_ERROR',
                'status': 'error'
            }), 503

        # Firebase Admin SDK errors
        elif 'firebase_admin' in str(type(error)):
            logger.error(f"Firebase error: {str(error)}")
            return jsonify({
                'error': 'Service temporarily unavailable',
                'error_code': 'SERVICE_ERROR',
                'status': 'error'
            }), 503

        elif isinstance(error, (ConnectionError, TimeoutError)):
            logger.error(f"Connection error: {str(error)}")
            return jsonify({
                'error': 'Service temporarily unavailable',
                'error_code': 'CONNECTION_ERROR',
                'status': 'error'
            }), 503

        else:
            logger.error(f"Unhandled error: {str(error)}")
            logger.error(traceback.format_exc())

            return jsonify({
                'error': 'An unexpected error occurred',
                'error_code': 'INTERNAL_ERROR',
                'status': 'error'
            }), 500

    except Exception as e:
        # Failsafe error handling
        logger.critical(f"Error in error handler: {str(e)}")
        return jsonify({
            'error': 'Critical system error',
            'error_code': 'CRITICAL_ERROR',
            'status': 'error'
        }), 500


def parse_request(model, data):
    """
    Validate a request body against a pydantic model.

    Raises ValidationError for an empty body; pydantic's own ValidationError
    propagates for field errors and is rendered by handle_error.
    """
    if not data:
        raise ValidationError("Request body cannot be empty")
    return model.model_validate(data)
