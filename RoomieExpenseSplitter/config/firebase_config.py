"""
Firebase Configuration

Initializes the Firebase Admin SDK and exposes a cached Firestore client.

Environment:
    FIREBASE_CREDENTIALS: Path to a service-account JSON file. When unset,
        application default credentials are used.
    FIREBASE_PROJECT_ID: Optional project ID override.

Functions:
    get_db: Return the Firestore client, or None if Firebase cannot be initialized.
"""

import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)

_db = None


def _build_credentials():
    path = os.getenv("FIREBASE_CREDENTIALS")
    if path:
        return credentials.Certificate(path)
    return credentials.ApplicationDefault()


def get_db():
    """
    Get the Firestore client.

    The Firebase app is initialized on first use and the client is cached
    for the lifetime of the process.

    Returns:
        google.cloud.firestore.Client | None: The client, or None if the
        SDK could not be initialized (missing credentials, bad project...).
    """
    global _db
    if _db is not None:
        return _db

    try:
        try:
            app = firebase_admin.get_app()
        except ValueError:
            options = {}
            project_id = os.getenv("FIREBASE_PROJECT_ID")
            if project_id:
                options["projectId"] = project_id
            app = firebase_admin.initialize_app(_build_credentials(), options or None)
        _db = firestore.client(app)
    except Exception:
        logger.exception("Firebase initialization failed")
        return None

    return _db
