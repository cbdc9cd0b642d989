"""
Configuration for the GreenQuest backend
Reads settings from the environment (and an optional .env file)
"""

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent.absolute()

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    return int(value)


def _env_float(name, default):
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    return float(value)


class Config:
    """
    Runtime settings. Every attribute has a default so the app can start
    against the Firebase emulators with an empty environment.
    """

    def __init__(self, **overrides):
        self.environment = os.environ.get('ENVIRONMENT', 'production')
        self.debug = _env_bool('DEBUG')
        self.log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
        self.allowed_origins = [
            origin.strip()
            for origin in os.environ.get('ALLOWED_ORIGINS', '*').split(',')
            if origin.strip()
        ]

        # Firebase
        self.firebase_project_id = os.environ.get('FIREBASE_PROJECT_ID')
        self.firebase_web_api_key = os.environ.get('FIREBASE_WEB_API_KEY')
        self.firebase_storage_bucket = os.environ.get('FIREBASE_STORAGE_BUCKET')
        self.service_account_key_path = os.environ.get(
            'SERVICE_ACCOUNT_KEY_PATH',
            str(PROJECT_ROOT / 'serviceAccountKey.json')
        )

        # Image uploads
        self.image_max_width = _env_int('IMAGE_MAX_WIDTH', 1200)
        self.image_max_height = _env_int('IMAGE_MAX_HEIGHT', 1200)
        self.image_jpeg_quality = _env_int('IMAGE_JPEG_QUALITY', 80)
        self.image_max_pixels = _env_int('IMAGE_MAX_PIXELS', 50_000_000)
        self.upload_max_attempts = _env_int('UPLOAD_MAX_ATTEMPTS', 3)
        self.upload_retry_delay_seconds = _env_float('UPLOAD_RETRY_DELAY_SECONDS', 1.0)
        self.max_upload_bytes = _env_int('MAX_UPLOAD_BYTES', 5 * 1024 * 1024)

        # Students are in Hawaii; "today" means Hawaii time
        self.app_timezone = os.environ.get('APP_TIMEZONE', 'Pacific/Honolulu')

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown config option: {key}")
            setattr(self, key, value)

    @classmethod
    def from_env(cls, env_file=None, **overrides):
        """
        Load .env (if present) into the process environment, then build a Config
        """
        load_dotenv(env_file or PROJECT_ROOT / '.env')
        return cls(**overrides)

    @property
    def is_development(self):
        return self.environment == 'development'
