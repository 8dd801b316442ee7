"""Durable storage: artifact store and per-run step journal."""

from drw.storage.journal import StepId, StepJournal, StepPhase
from drw.storage.store import DurableStore, FileStore, InMemoryStore

__all__ = [
    "DurableStore",
    "FileStore",
    "InMemoryStore",
    "StepId",
    "StepJournal",
    "StepPhase",
]
