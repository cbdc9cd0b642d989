"""
Service layer for GreenQuest

Services are built once per app from the injected Firebase clients and stored
on the Flask app; request handlers reach them through get_services().
"""

from flask import current_app

from greenquest.services.activity_service import ActivityService
from greenquest.services.auth_service import AuthService
from greenquest.services.chat_service import ChatService
from greenquest.services.leaderboard_service import LeaderboardService
from greenquest.services.marketplace_service import MarketplaceService
from greenquest.services.post_service import PostService
from greenquest.services.storage_service import StorageService
from greenquest.services.user_service import UserService

EXTENSION_KEY = 'greenquest'


class Services:
    def __init__(self, config, firebase):
        self.config = config
        self.firebase = firebase

        db = firebase.db
        self.users = UserService(db)
        self.activities = ActivityService(db, self.users, timezone=config.app_timezone)
        self.posts = PostService(db, self.users)
        self.marketplace = MarketplaceService(db, self.users)
        self.chats = ChatService(db, self.marketplace)
        self.leaderboard = LeaderboardService(db)
        self.storage = StorageService(
            firebase.bucket,
            max_width=config.image_max_width,
            max_height=config.image_max_height,
            quality=config.image_jpeg_quality,
            max_attempts=config.upload_max_attempts,
            retry_delay=config.upload_retry_delay_seconds,
            max_upload_bytes=config.max_upload_bytes,
            max_pixels=config.image_max_pixels
        )
        self.auth = AuthService(
            self.users,
            api_key=config.firebase_web_api_key,
            firebase_app=firebase.app
        )


def get_services():
    return current_app.extensions[EXTENSION_KEY]
