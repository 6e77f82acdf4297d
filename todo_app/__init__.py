"""Todo Service: CRUD HTTP API over a Firestore collection of tasks."""

__version__ = "1.0.0"
