"""
Task persistence: translates between wire tasks and Firestore documents.

Each task is one document in a single collection.  The document id is the
task id; the remaining fields are stored as::

    {"title": str, "completed": bool, "createAt": timestamp}
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.credentials import AnonymousCredentials
from google.auth.exceptions import GoogleAuthError
from pydantic import ValidationError

from todo_app.config import Settings
from todo_app.schema import Task

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "todo-app"
CONNECT_TIMEOUT = 10.0


class StoreError(Exception):
    """A query, write, or decode against the document store failed."""


class StoreConnectionError(StoreError):
    """The store could not be reached at startup."""


class InvalidTaskIdError(ValueError):
    pass


class TaskStore(ABC):
    """Find/insert/update/delete over one logical collection of tasks."""

    # Firestore auto-ids: 20 characters from [A-Za-z0-9].
    ID_PATTERN = re.compile(r"^[A-Za-z0-9]{20}$")

    def parse_id(self, raw: str) -> str:
        task_id = raw.strip()
        if not self.ID_PATTERN.match(task_id):
            raise InvalidTaskIdError(f"invalid task id: {raw!r}")
        return task_id

    @abstractmethod
    def list_tasks(self) -> list[Task]:
        ...

    @abstractmethod
    def insert_task(self, title: str) -> Task:
        """Persist a new, incomplete task stamped with the current time."""

    @abstractmethod
    def update_task(self, task_id: str, title: str, completed: bool) -> None:
        """Overwrite title and completed; a missing id is a no-op."""

    @abstractmethod
    def delete_task(self, task_id: str) -> None:
        """Remove the task if present; a missing id is a no-op."""

    def close(self) -> None:
        pass


class _EmulatorCredential(credentials.Base):
    """The Firestore emulator accepts unauthenticated requests."""

    def get_credential(self):
        return AnonymousCredentials()


class FirestoreTaskStore(TaskStore):

    def __init__(self, collection, app=None):
        self._collection = collection
        self._app = app

    def list_tasks(self) -> list[Task]:
        try:
            snapshots = list(self._collection.stream())
        except GoogleAPIError as e:
            raise StoreError(f"failed to fetch todos: {e}") from e

        try:
            return [self._to_task(snap) for snap in snapshots]
        except (KeyError, TypeError, ValidationError) as e:
            raise StoreError(f"failed to decode todos: {e}") from e

    def insert_task(self, title: str) -> Task:
        doc_ref = self._collection.document()
        created_at = datetime.now(timezone.utc)
        try:
            doc_ref.set({
                "title": title,
                "completed": False,
                "createAt": created_at,
            })
        except GoogleAPIError as e:
            raise StoreError(f"failed to save todo: {e}") from e
        return Task(id=doc_ref.id, title=title, completed=False, created_at=created_at)

    def update_task(self, task_id: str, title: str, completed: bool) -> None:
        try:
            self._collection.document(task_id).update({
                "title": title,
                "completed": completed,
            })
        except NotFound:
            logger.debug("update matched no task %s", task_id)
        except GoogleAPIError as e:
            raise StoreError(f"failed to update todo: {e}") from e

    def delete_task(self, task_id: str) -> None:
        try:
            self._collection.document(task_id).delete()
        except GoogleAPIError as e:
            raise StoreError(f"failed to delete todo: {e}") from e

    def close(self) -> None:
        if self._app is not None:
            firebase_admin.delete_app(self._app)
            self._app = None

    @staticmethod
    def _to_task(snap) -> Task:
        data = snap.to_dict()
        return Task(
            id=snap.id,
            title=data["title"],
            completed=data.get("completed", False),
            created_at=data["createAt"],
        )


def connect_store(settings: Settings) -> FirestoreTaskStore:
    """Initialise the Firestore client and check the collection is reachable.

    Raises StoreConnectionError on any failure; the caller decides whether
    that is fatal.
    """
    if settings.emulator_host:
        os.environ["FIRESTORE_EMULATOR_HOST"] = settings.emulator_host
        cred = _EmulatorCredential()
    elif settings.credentials_path:
        cred = None
    else:
        cred = credentials.ApplicationDefault()

    database_id = None if settings.database == "(default)" else settings.database
    app = None
    try:
        if cred is None:
            cred = credentials.Certificate(settings.credentials_path)
        app = firebase_admin.initialize_app(
            cred, {"projectId": settings.project_id}, name=FIREBASE_APP_NAME,
        )
        client = firestore.client(app, database_id=database_id)
        collection = client.collection(settings.collection)
        collection.limit(1).get(timeout=CONNECT_TIMEOUT)
    except (GoogleAPIError, GoogleAuthError, ValueError, OSError) as e:
        if app is not None:
            firebase_admin.delete_app(app)
        raise StoreConnectionError(
            f"cannot reach Firestore collection {settings.collection!r}: {e}"
        ) from e

    logger.info(
        "Connected to Firestore project=%s database=%s collection=%s",
        settings.project_id, settings.database, settings.collection,
    )
    return FirestoreTaskStore(collection, app=app)
