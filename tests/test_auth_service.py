import pytest
import requests
from firebase_admin import auth as firebase_auth
from unittest.mock import Mock, patch

from greenquest.services.auth_service import AuthService
from greenquest.utils.error_handler import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    ExternalServiceError,
)


@pytest.fixture
def user_service():
    user_service = Mock()
    user_service.create_user_profile.return_value = {'id': 'new-user-id', 'points': 0, 'level': 1}
    user_service.get_user_profile.return_value = {'id': 'test-user-id', 'display_name': 'Test User'}
    return user_service


def _response(status_code, payload):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestSignUp:

    @patch('firebase_admin.auth.create_user')
    def test_sign_up(self, mock_create_user, user_service):
        mock_create_user.return_value = Mock(uid='new-user-id')

        result = AuthService(user_service).sign_up('new@example.com', 'password123', 'Keala', 'Kalani')

        assert result['success'] is True
        assert result['user_id'] == 'new-user-id'
        assert result['profile']['points'] == 0
        user_service.create_user_profile.assert_called_once_with(
            'new-user-id', display_name='Keala', email='new@example.com', school='Kalani'
        )

    @patch('firebase_admin.auth.create_user')
    def test_duplicate_email(self, mock_create_user, user_service):
        mock_create_user.side_effect = firebase_auth.EmailAlreadyExistsError('Email exists', None, None)

        with pytest.raises(ConflictError):
            AuthService(user_service).sign_up('existing@example.com', 'password123')
        user_service.create_user_profile.assert_not_called()

    @patch('firebase_admin.auth.delete_user')
    @patch('firebase_admin.auth.create_user')
    def test_profile_failure_rolls_back_account(self, mock_create_user, mock_delete_user, user_service):
        mock_create_user.return_value = Mock(uid='new-user-id')
        user_service.create_user_profile.side_effect = DatabaseError('write failed')

        with pytest.raises(DatabaseError):
            AuthService(user_service).sign_up('new@example.com', 'password123')
        assert mock_delete_user.call_args[0][0] == 'new-user-id'


class TestSignIn:

    @patch('greenquest.services.auth_service.requests.post')
    def test_sign_in(self, mock_post, user_service):
        mock_post.return_value = _response(200, {
            'localId': 'test-user-id',
            'idToken': 'id-token',
            'refreshToken': 'refresh-token',
            'expiresIn': '3600'
        })

        result = AuthService(user_service, api_key='test-api-key').sign_in('test@example.com', 'password123')

        assert result['user_id'] == 'test-user-id'
        assert result['id_token'] == 'id-token'
        assert result['refresh_token'] == 'refresh-token'
        assert result['expires_in'] == 3600
        assert result['profile']['display_name'] == 'Test User'

        url = mock_post.call_args[0][0]
        assert url.endswith('/accounts:signInWithPassword')
        assert mock_post.call_args[1]['params'] == {'key': 'test-api-key'}
        assert mock_post.call_args[1]['json']['returnSecureToken'] is True

    @patch('greenquest.services.auth_service.requests.post')
    def test_missing_profile_is_created(self, mock_post, user_service):
        mock_post.return_value = _response(200, {'localId': 'test-user-id', 'idToken': 'id-token'})
        user_service.get_user_profile.return_value = None

        AuthService(user_service, api_key='test-api-key').sign_in('test@example.com', 'password123')

        user_service.create_user_profile.assert_called_once()

    @patch('greenquest.services.auth_service.requests.post')
    def test_wrong_password(self, mock_post, user_service):
        mock_post.return_value = _response(400, {'error': {'message': 'INVALID_LOGIN_CREDENTIALS'}})

        with pytest.raises(AuthenticationError):
            AuthService(user_service, api_key='test-api-key').sign_in('test@example.com', 'wrong')

    @patch('greenquest.services.auth_service.requests.post')
    def test_too_many_attempts(self, mock_post, user_service):
        mock_post.return_value = _response(400, {
            'error': {'message': 'TOO_MANY_ATTEMPTS_TRY_LATER : Access to this account has been temporarily disabled'}
        })

        with pytest.raises(AuthenticationError, match='Too many attempts'):
            AuthService(user_service, api_key='test-api-key').sign_in('test@example.com', 'password123')

    @patch('greenquest.services.auth_service.requests.post')
    def test_auth_service_unreachable(self, mock_post, user_service):
        mock_post.side_effect = requests.exceptions.ConnectionError('no route')

        with pytest.raises(ExternalServiceError):
            AuthService(user_service, api_key='test-api-key').sign_in('test@example.com', 'password123')

    def test_sign_in_requires_api_key(self, user_service):
        with pytest.raises(ExternalServiceError):
            AuthService(user_service).sign_in('test@example.com', 'password123')


class TestTokens:

    @patch('firebase_admin.auth.verify_id_token')
    def test_verify_token(self, mock_verify, user_service):
        mock_verify.return_value = {'uid': 'test-user-id'}

        assert AuthService(user_service).verify_token('good-token')['uid'] == 'test-user-id'

    @patch('firebase_admin.auth.verify_id_token')
    def test_expired_token(self, mock_verify, user_service):
        mock_verify.side_effect = firebase_auth.ExpiredIdTokenError('Token expired', None)

        with pytest.raises(AuthenticationError, match='expired'):
            AuthService(user_service).verify_token('old-token')

    @patch('firebase_admin.auth.verify_id_token')
    def test_invalid_token(self, mock_verify, user_service):
        mock_verify.side_effect = firebase_auth.InvalidIdTokenError('bad signature')

        with pytest.raises(AuthenticationError):
            AuthService(user_service).verify_token('forged-token')


class TestUpdateAuthProfile:

    @patch('firebase_admin.auth.update_user')
    def test_update_display_name(self, mock_update_user, user_service):
        assert AuthService(user_service).update_auth_profile('test-user-id', display_name='Keala') is True
        mock_update_user.assert_called_once_with('test-user-id', app=None, display_name='Keala')

    @patch('firebase_admin.auth.update_user')
    def test_nothing_to_update(self, mock_update_user, user_service):
        assert AuthService(user_service).update_auth_profile('test-user-id') is False
        mock_update_user.assert_not_called()
