"""
Authentication Service for GreenQuest
Handles registration, email/password sign-in and Firebase Auth profile updates
"""

import logging
import os

import requests
from firebase_admin import auth

from greenquest.utils.error_handler import (
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    GreenQuestError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = 'https://identitytoolkit.googleapis.com/v1'

REQUEST_TIMEOUT_SECONDS = 10

# Identity Toolkit error codes that mean "wrong email or password"
INVALID_CREDENTIAL_CODES = (
    'EMAIL_NOT_FOUND',
    'INVALID_PASSWORD',
    'INVALID_LOGIN_CREDENTIALS',
    'INVALID_EMAIL',
)


def _identity_toolkit_url():
    emulator_host = os.environ.get('FIREBASE_AUTH_EMULATOR_HOST')
    if emulator_host:
        return f"http://{emulator_host}/identitytoolkit.googleapis.com/v1"
    return IDENTITY_TOOLKIT_URL


class AuthService:
    def __init__(self, user_service, api_key=None, firebase_app=None):
        self.user_service = user_service
        self.api_key = api_key
        self.firebase_app = firebase_app

    def sign_up(self, email, password, display_name='EcoWarrior', school=''):
        """
        Create a Firebase Auth account and its Firestore profile
        """
        try:
            user_record = auth.create_user(
                email=email,
                password=password,
                display_name=display_name,
                app=self.firebase_app
            )
        except auth.EmailAlreadyExistsError:
            logger.warning(f"Attempt to create user with existing email: {email}")
            raise ConflictError("Email already exists")
        except ValueError as e:
            raise ValidationError(str(e))
        except Exception as e:
            logger.error(f"Error creating user: {str(e)}")
            raise ExternalServiceError(f"Failed to create user: {str(e)}", service_name='auth')

        try:
            profile = self.user_service.create_user_profile(
                user_record.uid,
                display_name=display_name,
                email=email,
                school=school
            )
        except GreenQuestError:
            # Don't leave an account without a profile behind
            self._delete_auth_user(user_record.uid)
            raise

        logger.info(f"Created new user: {email} with ID: {user_record.uid}")

        return {
            'success': True,
            'user_id': user_record.uid,
            'email': email,
            'display_name': display_name,
            'profile': profile,
            'message': 'User created successfully'
        }

    def sign_in(self, email, password):
        """
        Verify email/password with the Identity Toolkit REST API.

        The Admin SDK cannot check passwords, so this goes through the same
        endpoint the client SDK uses. Returns the ID and refresh tokens together
        with the user's profile.
        """
        if not self.api_key:
            raise ExternalServiceError("Sign-in is not configured (missing web API key)", service_name='auth')

        try:
            response = requests.post(
                f"{_identity_toolkit_url()}/accounts:signInWithPassword",
                params={'key': self.api_key},
                json={'email': email, 'password': password, 'returnSecureToken': True},
                timeout=REQUEST_TIMEOUT_SECONDS
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error contacting auth service: {str(e)}")
            raise ExternalServiceError("Authentication service unavailable", service_name='auth')

        if response.status_code != 200:
            error_code = self._error_code(response)
            if error_code.split(' ')[0] in INVALID_CREDENTIAL_CODES:
                logger.warning(f"Failed login for: {email}")
                raise AuthenticationError("Invalid email or password")
            if error_code.startswith('USER_DISABLED'):
                raise AuthenticationError("This account has been disabled")
            if error_code.startswith('TOO_MANY_ATTEMPTS_TRY_LATER'):
                raise AuthenticationError("Too many attempts, try again later")
            logger.error(f"Sign-in failed for {email}: {error_code}")
            raise ExternalServiceError(f"Sign-in failed: {error_code}", service_name='auth')

        result = response.json()
        user_id = result['localId']

        profile = self.user_service.get_user_profile(user_id)
        if profile is None:
            # Auto-heal: create a minimal profile if missing
            profile = self.user_service.create_user_profile(
                user_id,
                display_name=result.get('displayName') or 'EcoWarrior',
                email=email
            )

        logger.info(f"User logged in: {email}")

        return {
            'success': True,
            'user_id': user_id,
            'email': email,
            'id_token': result['idToken'],
            'refresh_token': result.get('refreshToken'),
            'expires_in': int(result.get('expiresIn', 3600)),
            'profile': profile
        }

    def update_auth_profile(self, uid, display_name=None, photo_url=None):
        """
        Mirror display name / photo changes onto the Firebase Auth user
        """
        changes = {}
        if display_name:
            changes['display_name'] = display_name
        if photo_url:
            changes['photo_url'] = photo_url
        if not changes:
            return False

        try:
            auth.update_user(uid, app=self.firebase_app, **changes)
            logger.info(f"Updated auth info for user: {uid}")
            return True
        except auth.UserNotFoundError:
            raise NotFoundError("User not found")
        except Exception as e:
            logger.error(f"Error updating user auth info: {str(e)}")
            raise ExternalServiceError(f"Failed to update auth profile: {str(e)}", service_name='auth')

    def verify_token(self, id_token):
        """
        Verify a Firebase ID token and return the decoded claims
        """
        try:
            return auth.verify_id_token(id_token, app=self.firebase_app)
        except auth.ExpiredIdTokenError:
            raise AuthenticationError("Token expired")
        except auth.RevokedIdTokenError:
            raise AuthenticationError("Token revoked")
        except auth.InvalidIdTokenError:
            raise AuthenticationError("Invalid token")
        except ValueError:
            raise AuthenticationError("Invalid token")

    def _delete_auth_user(self, uid):
        try:
            auth.delete_user(uid, app=self.firebase_app)
            logger.info(f"Rolled back auth user: {uid}")
        except Exception as e:
            logger.error(f"Error rolling back auth user {uid}: {str(e)}")

    @staticmethod
    def _error_code(response):
        try:
            return response.json().get('error', {}).get('message', 'UNKNOWN')
        except ValueError:
            return 'UNKNOWN'
