"""
Shared fixtures for the GreenQuest test suite
"""

from datetime import datetime, timezone
import io
from unittest.mock import Mock, patch

import pytest
from PIL import Image

from greenquest.app import create_app
from greenquest.config import Config
from greenquest.firebase import FirebaseClients

TEST_BUCKET = 'greenquest-test.appspot.com'


@pytest.fixture
def mock_firestore():
    """Mock Firestore database"""
    return Mock()


@pytest.fixture
def mock_bucket():
    """Mock Cloud Storage bucket"""
    bucket = Mock()
    bucket.name = TEST_BUCKET
    return bucket


@pytest.fixture
def make_doc():
    """Factory for Firestore document snapshots"""
    def _make_doc(doc_id, data, exists=True):
        doc = Mock()
        doc.id = doc_id
        doc.exists = exists
        doc.to_dict.return_value = data
        return doc
    return _make_doc


@pytest.fixture
def make_image():
    """Factory for in-memory PNG images"""
    def _make_image(width, height, mode='RGB', fmt='PNG'):
        output = io.BytesIO()
        Image.new(mode, (width, height)).save(output, format=fmt)
        return output.getvalue()
    return _make_image


@pytest.fixture
def sample_user_data():
    """Sample user profile document"""
    return {
        'display_name': 'Test User',
        'email': 'test@example.com',
        'school': 'Kalani High School',
        'photo_url': '',
        'points': 150,
        'level': 2,
        'carbon_saved': 12.5,
        'created_at': datetime(2024, 1, 1, tzinfo=timezone.utc),
        'updated_at': datetime(2024, 1, 2, tzinfo=timezone.utc)
    }


@pytest.fixture
def sample_listing_data():
    """Sample marketplace listing document"""
    return {
        'title': 'Graphing Calculator',
        'price': 40.0,
        'condition': 'Good',
        'description': 'TI-84 Plus, works great, includes a cover',
        'meetup_location': 'School Cafeteria',
        'image_url': None,
        'seller_id': 'seller-id',
        'seller_name': 'Seller',
        'seller_avatar': '',
        'school': 'Kalani High School',
        'status': 'active',
        'likes': 2,
        'timestamp': datetime(2024, 3, 1, tzinfo=timezone.utc)
    }


@pytest.fixture
def test_config():
    return Config(
        environment='testing',
        firebase_web_api_key='test-api-key',
        firebase_storage_bucket=TEST_BUCKET,
        upload_retry_delay_seconds=0
    )


@pytest.fixture
def app(test_config, mock_firestore, mock_bucket):
    """Flask app wired to mocked Firebase clients"""
    firebase = FirebaseClients(app=None, db=mock_firestore, bucket=mock_bucket)
    app = create_app(test_config, firebase)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Test client for Flask app"""
    with app.test_client() as client:
        yield client


@pytest.fixture
def auth_headers():
    """Authorization header accepted as 'test-user-id'"""
    with patch('firebase_admin.auth.verify_id_token') as mock_verify:
        mock_verify.return_value = {'uid': 'test-user-id', 'email': 'test@example.com'}
        yield {'Authorization': 'Bearer fake-token'}
