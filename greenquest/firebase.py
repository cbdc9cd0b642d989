"""
Firebase client bundle for the GreenQuest backend

Built once at process start and handed to every service, instead of reaching
for module-level SDK singletons.
"""

import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore, storage

logger = logging.getLogger(__name__)

APP_NAME = 'greenquest'


class FirebaseClients:
    """
    Holds the Firebase Admin app together with the Firestore client and the
    Storage bucket created from it
    """

    def __init__(self, app, db, bucket):
        self.app = app
        self.db = db
        self.bucket = bucket

    @classmethod
    def initialize(cls, config):
        """
        Initialize the Firebase Admin SDK from config.

        Uses the service account key when the file exists (local development),
        otherwise application default credentials (Cloud Functions runtime).
        """
        options = {}
        if config.firebase_project_id:
            options['projectId'] = config.firebase_project_id
        if config.firebase_storage_bucket:
            options['storageBucket'] = config.firebase_storage_bucket

        try:
            app = firebase_admin.get_app(APP_NAME)
        except ValueError:
            key_path = config.service_account_key_path
            if key_path and os.path.exists(key_path):
                cred = credentials.Certificate(key_path)
                logger.info(f"Initializing Firebase with service account key: {key_path}")
            else:
                cred = credentials.ApplicationDefault()
                logger.info("Initializing Firebase with application default credentials")
            app = firebase_admin.initialize_app(cred, options=options, name=APP_NAME)

        db = firestore.client(app=app)
        bucket = storage.bucket(app=app) if config.firebase_storage_bucket else None
        if bucket is None:
            logger.warning("FIREBASE_STORAGE_BUCKET not set; image uploads are disabled")

        return cls(app=app, db=db, bucket=bucket)

    def close(self):
        """
        Release the Firebase app and every client created from it
        """
        if self.app is None:
            return
        if self.db is not None:
            self.db.close()
        try:
            firebase_admin.delete_app(self.app)
            logger.info("Firebase app closed")
        except ValueError:
            # already deleted
            pass
        finally:
            self.app = None
