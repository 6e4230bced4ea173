"""
Firebase client cache -- one long-lived client per default project
===================================================================

The Firebase Admin SDK is initialised lazily. Requests for the configured
default project share a single ``firebase_admin.App`` for the life of the
process; its construction is guarded by a lock so concurrent first callers
observe exactly one initialisation.

Requests that name any other project get a request-scoped app built from
the credentials they carry. Scoped apps are never cached and are deleted by
``FCMClient.close()`` once the attempt that used them is finished.

Credentials are loaded from one of:
  - a path to a JSON service account file
  - a raw JSON string of the service account
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from threading import Lock
from typing import Callable

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin.exceptions import FirebaseError

from pushrelay.core.exceptions import ConfigError, ProviderInitError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Credential material
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CredentialMaterial:
    """Service account credentials for one Firebase project."""
    credentials_file: str = ""
    credentials_json: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.credentials_file and not self.credentials_json


def _load_certificate(material: CredentialMaterial) -> credentials.Certificate:
    if material.credentials_file:
        return credentials.Certificate(material.credentials_file)
    return credentials.Certificate(json.loads(material.credentials_json))


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

@dataclass
class FCMClient:
    """A Firebase app bound to one project, plus the calls the relay needs."""
    app: firebase_admin.App
    project_id: str
    scoped: bool = False

    def send_multicast(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        return messaging.send_each_for_multicast(message, app=self.app)

    def send(self, message: messaging.Message) -> str:
        return messaging.send(message, app=self.app)

    def close(self) -> None:
        """Delete a request-scoped app. The cached client is never closed."""
        if not self.scoped:
            return
        try:
            firebase_admin.delete_app(self.app)
        except ValueError:
            logger.debug("Firebase app %s was already deleted", self.app.name)


ClientFactory = Callable[[str, CredentialMaterial, bool], FCMClient]


def create_client(project_id: str, material: CredentialMaterial, scoped: bool) -> FCMClient:
    """Initialise a Firebase app for ``project_id``.

    Raises:
        ConfigError: If no credential material was supplied.
        ProviderInitError: If the SDK rejects the credentials.
    """
    if material.is_empty:
        raise ConfigError(
            f"No Firebase credentials available for project {project_id!r}",
            project_id=project_id,
        )

    # Scoped apps need a unique name so concurrent requests for the same
    # foreign project do not collide in the SDK's app registry.
    name = f"pushrelay-{project_id}"
    if scoped:
        name = f"{name}-{uuid.uuid4().hex}"

    try:
        cred = _load_certificate(material)
        app = firebase_admin.initialize_app(cred, {"projectId": project_id}, name=name)
    except (ValueError, OSError, FirebaseError) as exc:
        logger.error("Failed to initialise Firebase app for project %s: %s", project_id, exc)
        raise ProviderInitError(
            f"Firebase initialisation failed for project {project_id!r}: {exc}",
            project_id=project_id,
            cause=exc,
        ) from exc

    logger.info(
        "Initialised %s Firebase app for project %s",
        "request-scoped" if scoped else "shared",
        project_id,
    )
    return FCMClient(app=app, project_id=project_id, scoped=scoped)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class ClientCache:
    """Singleton-with-override cache of Firebase clients."""

    def __init__(
        self,
        default_project_id: str,
        default_credentials: CredentialMaterial | None = None,
        factory: ClientFactory = create_client,
    ) -> None:
        self.default_project_id = default_project_id
        self.default_credentials = default_credentials or CredentialMaterial()
        self._factory = factory
        self._client: FCMClient | None = None
        self._lock = Lock()

    @property
    def cached(self) -> FCMClient | None:
        return self._client

    def acquire(
        self,
        project_id: str,
        material: CredentialMaterial | None = None,
    ) -> FCMClient:
        """Return a client for ``project_id``.

        Raises:
            ConfigError: If ``project_id`` is empty or no credentials exist.
            ProviderInitError: If client construction fails.
        """
        if not project_id:
            raise ConfigError("FCM project id is empty")

        material = material or CredentialMaterial()

        if project_id != self.default_project_id:
            return self._factory(project_id, material, True)

        client = self._client
        if client is not None:
            return client

        with self._lock:
            if self._client is None:
                if material.is_empty:
                    material = self.default_credentials
                self._client = self._factory(project_id, material, False)
            return self._client
