"""
Storage Service for GreenQuest
Image uploads to Cloud Storage for Firebase: resize, upload with retry, delete
"""

import logging
import os
import time
import uuid
from urllib.parse import quote, unquote, urlparse

import requests
from google.api_core import exceptions as gcp_exceptions
from werkzeug.utils import secure_filename

from greenquest.utils.error_handler import (
    AuthorizationError,
    ExternalServiceError,
    NotFoundError,
    PayloadTooLargeError,
    ValidationError,
)
from greenquest.utils.imaging import JPEG_CONTENT_TYPE, MAX_IMAGE_PIXELS, resize_image

logger = logging.getLogger(__name__)

IMAGE_KINDS = ('profiles', 'posts', 'marketplace')

DOWNLOAD_HOST = 'firebasestorage.googleapis.com'


def build_storage_path(kind, owner_id, filename, now=None):
    """
    {profiles|posts|marketplace}/{ownerId}/{millis}-{filename}

    Uploads are re-encoded as JPEG, so the extension is always .jpg.
    """
    if kind not in IMAGE_KINDS:
        raise ValidationError(f"Image kind must be one of: {', '.join(IMAGE_KINDS)}", field='kind')
    if not owner_id:
        raise ValidationError("Owner id required", field='owner_id')

    millis = int((now if now is not None else time.time()) * 1000)
    stem = os.path.splitext(secure_filename(filename or ''))[0] or 'image'
    return f"{kind}/{owner_id}/{millis}-{stem}.jpg"


def build_download_url(bucket_name, path, token):
    return f"https://{DOWNLOAD_HOST}/v0/b/{bucket_name}/o/{quote(path, safe='')}?alt=media&token={token}"


def path_from_url(url_or_path):
    """
    Storage path from a Firebase download URL, a gs:// URL or a bare path
    """
    if not url_or_path:
        raise ValidationError("Image URL or path required", field='url')

    parsed = urlparse(url_or_path)
    if parsed.scheme == 'gs':
        return parsed.path.lstrip('/')
    if parsed.scheme in ('http', 'https'):
        if parsed.netloc != DOWNLOAD_HOST or '/o/' not in parsed.path:
            raise ValidationError("Not a Firebase Storage download URL", field='url')
        return unquote(parsed.path.split('/o/', 1)[1])
    return url_or_path.lstrip('/')


class StorageService:
    def __init__(self, bucket, max_width=1200, max_height=1200, quality=80,
                 max_attempts=3, retry_delay=1.0, max_upload_bytes=5 * 1024 * 1024,
                 max_pixels=MAX_IMAGE_PIXELS):
        self.bucket = bucket
        self.max_width = max_width
        self.max_height = max_height
        self.quality = quality
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.max_upload_bytes = max_upload_bytes
        self.max_pixels = max_pixels

    def upload_image(self, kind, owner_id, filename, data):
        """
        Shrink an image to the configured bounds, re-encode it as JPEG and
        upload it under the owner's folder.

        Returns the download URL plus the stored path and final dimensions.
        """
        if self.bucket is None:
            raise ExternalServiceError("Image storage is not configured", service_name='storage')
        if not data:
            raise ValidationError("Image file is empty", field='file')
        if len(data) > self.max_upload_bytes:
            raise PayloadTooLargeError(
                f"Image must be {self.max_upload_bytes // (1024 * 1024)}MB or smaller"
            )

        try:
            jpeg_bytes, width, height = resize_image(
                data,
                max_width=self.max_width,
                max_height=self.max_height,
                quality=self.quality,
                max_pixels=self.max_pixels
            )
        except ValueError as e:
            raise ValidationError(str(e), field='file')

        path = build_storage_path(kind, owner_id, filename)
        token = str(uuid.uuid4())
        self._upload_with_retry(path, jpeg_bytes, token)

        logger.info(f"Uploaded image {path} ({width}x{height}, {len(jpeg_bytes)} bytes)")

        return {
            'url': build_download_url(self.bucket.name, path, token),
            'path': path,
            'width': width,
            'height': height,
            'size': len(jpeg_bytes)
        }

    def delete_image(self, url_or_path, owner_id):
        """
        Delete an uploaded image. Users can only delete files in their own folder.
        """
        if self.bucket is None:
            raise ExternalServiceError("Image storage is not configured", service_name='storage')

        path = path_from_url(url_or_path)
        parts = path.split('/')
        if len(parts) < 3 or parts[0] not in IMAGE_KINDS:
            raise ValidationError("Not an uploaded image path", field='url')
        if parts[1] != owner_id:
            raise AuthorizationError("You can only delete your own images")

        try:
            self.bucket.blob(path).delete()
        except gcp_exceptions.NotFound:
            raise NotFoundError("Image not found")
        except gcp_exceptions.GoogleAPIError as e:
            logger.error(f"Error deleting image {path}: {str(e)}")
            raise ExternalServiceError(f"Failed to delete image: {str(e)}", service_name='storage')

        logger.info(f"Deleted image {path}")
        return {'success': True, 'path': path}

    def _upload_with_retry(self, path, data, token):
        for attempt in range(1, self.max_attempts + 1):
            try:
                blob = self.bucket.blob(path)
                blob.metadata = {'firebaseStorageDownloadTokens': token}
                blob.upload_from_string(data, content_type=JPEG_CONTENT_TYPE)
                return blob
            except (gcp_exceptions.GoogleAPIError, requests.exceptions.RequestException) as e:
                logger.warning(f"Upload attempt {attempt}/{self.max_attempts} failed for {path}: {str(e)}")
                if attempt == self.max_attempts:
                    raise ExternalServiceError(
                        f"Image upload failed after {attempt} attempts",
                        service_name='storage'
                    )
                time.sleep(self.retry_delay)
