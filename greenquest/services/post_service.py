"""
Post Service for GreenQuest
Handles the social feed: creating posts, listing them and likes
"""

import logging

from firebase_admin import firestore

from greenquest.schemas import Post, PostCreate
from greenquest.utils.error_handler import DatabaseError, NotFoundError

logger = logging.getLogger(__name__)

POST_POINTS = 5


def _timestamp_key(item):
    ts = item.get('timestamp')
    return ts.timestamp() if hasattr(ts, 'timestamp') else 0


def _older_than(items, before):
    if before is None:
        return items
    return [item for item in items if item.get('timestamp') and item['timestamp'] < before]


class PostService:
    def __init__(self, db, user_service):
        self.db = db
        self.posts_ref = db.collection('posts')
        self.user_service = user_service

    def create_post(self, user_id, post_data, author=None):
        """
        Create a post and award the author points for sharing.

        author is the author's profile dict (display name, avatar, school).
        """
        post = PostCreate.model_validate(post_data)
        author = author or {}

        document = {
            'user_id': user_id,
            'user_name': author.get('display_name') or 'Anonymous',
            'user_avatar': author.get('photo_url') or '',
            'school': author.get('school') or '',
            'content': post.content.strip(),
            'image_url': str(post.image_url) if post.image_url else None,
            'likes': 0,
            'comments': 0,
            'timestamp': firestore.SERVER_TIMESTAMP
        }

        try:
            _, post_ref = self.posts_ref.add(document)
        except Exception as e:
            logger.error(f"Error creating post: {str(e)}")
            raise DatabaseError(f"Failed to create post: {str(e)}")

        logger.info(f"Post created - User: {user_id}, Post: {post_ref.id}")

        user_result = self.user_service.try_award_points(user_id, POST_POINTS)

        return {
            'post_id': post_ref.id,
            'points_awarded': POST_POINTS if user_result else 0,
            'user': user_result,
            'message': 'Your post has been shared with the community.'
        }

    def get_posts(self, limit=10, before=None):
        """
        Newest posts first
        """
        try:
            query = self.posts_ref.order_by('timestamp', direction=firestore.Query.DESCENDING)
            if before is not None:
                query = query.where('timestamp', '<', before)
            return self._to_posts(query.limit(limit).stream())
        except Exception as e:
            logger.error(f"Error getting posts: {str(e)}")
            return []

    def get_user_posts(self, user_id, limit=10, before=None):
        return self._get_filtered_posts('user_id', user_id, limit, before)

    def get_school_posts(self, school, limit=10, before=None):
        return self._get_filtered_posts('school', school, limit, before)

    def like_post(self, post_id):
        """
        Increment the like counter and return the new count
        """
        try:
            post_ref = self.posts_ref.document(post_id)
            if not post_ref.get().exists:
                raise NotFoundError("Post not found")

            post_ref.update({'likes': firestore.Increment(1)})
            likes = post_ref.get().to_dict().get('likes', 0)

            logger.info(f"Post liked: {post_id}, likes={likes}")
            return likes

        except NotFoundError:
            raise
        except Exception as e:
            logger.error(f"Error liking post: {str(e)}")
            raise DatabaseError(f"Failed to like post: {str(e)}")

    def _get_filtered_posts(self, field, value, limit, before):
        # Equality filter only; ordering happens here to avoid a composite index
        try:
            posts = self._to_posts(self.posts_ref.where(field, '==', value).stream())
            posts = _older_than(posts, before)
            posts.sort(key=_timestamp_key, reverse=True)
            return posts[:limit]
        except Exception as e:
            logger.error(f"Error getting posts by {field}: {str(e)}")
            return []

    def _to_posts(self, docs):
        posts = []
        for doc in docs:
            try:
                posts.append(Post.from_snapshot(doc).to_public())
            except ValueError as e:
                logger.warning(f"Skipping malformed post {doc.id}: {str(e)}")
        return posts
