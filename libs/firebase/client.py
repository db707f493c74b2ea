"""Firebase Admin bootstrap and the async Firestore client for conversation storage."""

import json
from typing import Optional

import firebase_admin
import structlog
from firebase_admin import credentials
from google.cloud.firestore_v1.async_client import AsyncClient

from libs.common.settings import Settings, get_settings

logger = structlog.get_logger(__name__)


def _load_credentials(settings: Settings) -> Optional[credentials.Certificate]:
    """Service-account credentials from inline JSON or a file path, if configured."""
    if settings.firebase_admin_sdk_json:
        try:
            return credentials.Certificate(json.loads(settings.firebase_admin_sdk_json))
        except json.JSONDecodeError as e:
            raise ValueError("LEGALCHAT_FIREBASE_ADMIN_SDK_JSON is not valid JSON") from e

    if settings.firebase_admin_sdk_path:
        try:
            return credentials.Certificate(settings.firebase_admin_sdk_path)
        except FileNotFoundError:
            logger.error("Firebase credentials file not found", path=settings.firebase_admin_sdk_path)
            raise

    return None


def initialize_firebase_app(settings: Settings | None = None) -> None:
    """Initialize the default Firebase app once per process."""
    if firebase_admin._apps:
        return

    settings = settings or get_settings()
    cred = _load_credentials(settings)
    if cred is None:
        logger.warning("No Firebase credentials configured, using application default credentials")

    options = {"projectId": settings.firestore_project} if settings.firestore_project else None
    firebase_admin.initialize_app(cred, options)
    logger.info("Firebase app initialized", project=settings.firestore_project)


def get_firestore_async_client(settings: Settings | None = None) -> AsyncClient:
    """Async Firestore client for the configured project and database."""
    settings = settings or get_settings()
    initialize_firebase_app(settings)
    return AsyncClient(project=settings.firestore_project, database=settings.firestore_database)
