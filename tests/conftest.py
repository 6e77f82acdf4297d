import secrets
import string
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from todo_app.main import create_app
from todo_app.schema import Task
from todo_app.store import StoreError, TaskStore

ALPHABET = string.ascii_letters + string.digits


def new_id() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(20))


class MemoryTaskStore(TaskStore):
    """Dict-backed store with the same semantics as the Firestore adapter."""

    def __init__(self):
        self.docs: dict[str, dict] = {}

    def list_tasks(self):
        return [
            Task(id=task_id, title=doc["title"], completed=doc["completed"],
                 created_at=doc["createAt"])
            for task_id, doc in self.docs.items()
        ]

    def insert_task(self, title):
        task_id = new_id()
        created_at = datetime.now(timezone.utc)
        self.docs[task_id] = {"title": title, "completed": False, "createAt": created_at}
        return Task(id=task_id, title=title, completed=False, created_at=created_at)

    def update_task(self, task_id, title, completed):
        if task_id in self.docs:
            self.docs[task_id].update(title=title, completed=completed)

    def delete_task(self, task_id):
        self.docs.pop(task_id, None)


class BrokenTaskStore(TaskStore):
    """Every store call fails, as if the database were unreachable."""

    def list_tasks(self):
        raise StoreError("connection refused")

    def insert_task(self, title):
        raise StoreError("connection refused")

    def update_task(self, task_id, title, completed):
        raise StoreError("connection refused")

    def delete_task(self, task_id):
        raise StoreError("connection refused")


@pytest.fixture
def store():
    return MemoryTaskStore()


@pytest.fixture
def client(store):
    with TestClient(create_app(store)) as c:
        yield c


@pytest.fixture
def broken_client():
    with TestClient(create_app(BrokenTaskStore())) as c:
        yield c
