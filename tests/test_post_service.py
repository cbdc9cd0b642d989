from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as SchemaValidationError
from unittest.mock import Mock

from greenquest.services.post_service import POST_POINTS, PostService
from greenquest.utils.error_handler import NotFoundError


def _post(day, **overrides):
    return {
        'user_id': 'test-user-id',
        'user_name': 'Test User',
        'content': f'Beach cleanup day {day}',
        'school': 'Kalani High School',
        'likes': 0,
        'comments': 0,
        'timestamp': datetime(2024, 3, day, tzinfo=timezone.utc),
        **overrides
    }


class TestPostService:

    @pytest.fixture
    def user_service(self):
        user_service = Mock()
        user_service.try_award_points.return_value = {'points': 155, 'level': 2, 'carbon_saved': 0.0, 'level_up': False}
        return user_service

    def test_create_post(self, mock_firestore, user_service, sample_user_data):
        mock_firestore.collection().add.return_value = (None, Mock(id='post-1'))

        result = PostService(mock_firestore, user_service).create_post(
            'test-user-id',
            {'content': '  Picked up 3 bags of trash at Ala Moana  '},
            author=sample_user_data
        )

        assert result['post_id'] == 'post-1'
        assert result['points_awarded'] == POST_POINTS
        user_service.try_award_points.assert_called_once_with('test-user-id', POST_POINTS)

        written = mock_firestore.collection().add.call_args[0][0]
        assert written['content'] == 'Picked up 3 bags of trash at Ala Moana'
        assert written['user_name'] == 'Test User'
        assert written['school'] == 'Kalani High School'
        assert written['likes'] == 0
        assert written['comments'] == 0
        assert written['image_url'] is None

    def test_image_only_post(self, mock_firestore, user_service):
        mock_firestore.collection().add.return_value = (None, Mock(id='post-2'))

        PostService(mock_firestore, user_service).create_post(
            'test-user-id',
            {'image_url': 'https://firebasestorage.googleapis.com/v0/b/bucket/o/posts%2Fx.jpg?alt=media'}
        )

        written = mock_firestore.collection().add.call_args[0][0]
        assert written['content'] == ''
        assert written['image_url'].startswith('https://firebasestorage.googleapis.com/')

    def test_empty_post_rejected(self, mock_firestore, user_service):
        with pytest.raises(SchemaValidationError):
            PostService(mock_firestore, user_service).create_post('test-user-id', {'content': '   '})
        mock_firestore.collection().add.assert_not_called()
        user_service.try_award_points.assert_not_called()

    def test_award_failure_still_creates_post(self, mock_firestore, user_service):
        mock_firestore.collection().add.return_value = (None, Mock(id='post-3'))
        user_service.try_award_points.return_value = None

        result = PostService(mock_firestore, user_service).create_post('test-user-id', {'content': 'Hello'})

        assert result['post_id'] == 'post-3'
        assert result['points_awarded'] == 0

    def test_get_posts(self, mock_firestore, user_service, make_doc):
        query = mock_firestore.collection().order_by()
        query.limit().stream.return_value = [make_doc('p2', _post(2)), make_doc('p1', _post(1))]

        posts = PostService(mock_firestore, user_service).get_posts(limit=2)

        assert [p['id'] for p in posts] == ['p2', 'p1']

    def test_get_posts_before_cursor(self, mock_firestore, user_service):
        before = datetime(2024, 3, 2, tzinfo=timezone.utc)

        PostService(mock_firestore, user_service).get_posts(before=before)

        mock_firestore.collection().order_by().where.assert_called_with('timestamp', '<', before)

    def test_school_posts_sorted_client_side(self, mock_firestore, user_service, make_doc):
        mock_firestore.collection().where().stream.return_value = [
            make_doc('p1', _post(1)), make_doc('p3', _post(3)), make_doc('p2', _post(2))
        ]

        service = PostService(mock_firestore, user_service)

        assert [p['id'] for p in service.get_school_posts('Kalani High School')] == ['p3', 'p2', 'p1']
        before = datetime(2024, 3, 3, tzinfo=timezone.utc)
        assert [p['id'] for p in service.get_user_posts('test-user-id', limit=1, before=before)] == ['p2']

    def test_get_posts_read_failure(self, mock_firestore, user_service):
        mock_firestore.collection().order_by.side_effect = Exception('unavailable')

        assert PostService(mock_firestore, user_service).get_posts() == []

    def test_like_post(self, mock_firestore, user_service, make_doc):
        mock_firestore.collection().document().get.return_value = make_doc('p1', _post(1, likes=4))

        likes = PostService(mock_firestore, user_service).like_post('p1')

        assert likes == 4
        mock_firestore.collection().document().update.assert_called_once()

    def test_like_missing_post(self, mock_firestore, user_service, make_doc):
        mock_firestore.collection().document().get.return_value = make_doc('nope', None, exists=False)

        with pytest.raises(NotFoundError):
            PostService(mock_firestore, user_service).like_post('nope')
