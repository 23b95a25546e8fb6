"""
pressgate/config.py - Application configuration and Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment,
and lazily initializes the Firebase Admin SDK (Firestore client) from the provided credentials.
Other modules import `settings` from here and call `get_db()` when they need Firestore.
"""
from functools import lru_cache
from typing import Literal, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    firebase_cred_file: str = Field("firebase_service_account.json")
    firebase_project_id: Optional[str] = None

    # Firebase credentials from environment variables (for Cloud Run)
    firebase_private_key_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_auth_uri: Optional[str] = None
    firebase_token_uri: Optional[str] = None
    firebase_auth_provider_x509_cert_url: Optional[str] = None
    firebase_client_x509_cert_url: Optional[str] = None

    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: str = "*"  # Comma-separated list or '*' for all

    # firestore | memory (memory is for local development and tests)
    store_backend: Literal["firestore", "memory"] = "firestore"

    # Profile lookups slower than this are treated as StoreUnavailable
    profile_timeout_seconds: float = Field(5.0, gt=0)
    write_retry_attempts: int = Field(3, ge=1)
    write_retry_base_delay: float = Field(0.2, ge=0)

    # Whether unauthenticated principals may read the site settings document
    public_site_config: bool = True
    # Accept `mock_jwt_token_<uid>` bearer tokens (development only)
    allow_mock_tokens: bool = False

    def credential_dict(self) -> Optional[dict]:
        """Service account dict built from split env vars, or None if any is missing."""
        fields = [
            self.firebase_private_key_id,
            self.firebase_private_key,
            self.firebase_client_email,
            self.firebase_client_id,
            self.firebase_auth_uri,
            self.firebase_token_uri,
            self.firebase_auth_provider_x509_cert_url,
            self.firebase_client_x509_cert_url,
        ]
        if not all(fields):
            return None
        return {
            "type": "service_account",
            "project_id": self.firebase_project_id,
            "private_key_id": self.firebase_private_key_id,
            "private_key": self.firebase_private_key.replace("\\n", "\n"),
            "client_email": self.firebase_client_email,
            "client_id": self.firebase_client_id,
            "auth_uri": self.firebase_auth_uri,
            "token_uri": self.firebase_token_uri,
            "auth_provider_x509_cert_url": self.firebase_auth_provider_x509_cert_url,
            "client_x509_cert_url": self.firebase_client_x509_cert_url,
        }


# Load settings from environment (.env file, etc.)
settings = Settings()


@lru_cache(maxsize=1)
def get_firebase_app() -> firebase_admin.App:
    """
    Initialize the Firebase Admin SDK once.
    Env-var credentials (Cloud Run) win over the service account file (local development).
    """
    cred_dict = settings.credential_dict()
    cred = credentials.Certificate(cred_dict) if cred_dict else credentials.Certificate(settings.firebase_cred_file)
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    try:
        return firebase_admin.initialize_app(cred, options)
    except ValueError as e:
        if "already exists" in str(e):
            # Firebase app already initialized, get the default app
            return firebase_admin.get_app()
        raise


@lru_cache(maxsize=1)
def get_db():
    """Firestore database client bound to the default Firebase app."""
    return firestore.client(app=get_firebase_app())
