"""On-device JSON cache used as a best-effort fallback for a few entity kinds.

One file per kind, each an ordered list of records upserted by id. The cache is
never authoritative: read failures look like "no data" and write failures are
logged and dropped.
"""

import json
import os
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, List, Optional, Type, TypeVar

import structlog
from pydantic import ValidationError

from config import (
    EXERCISES_CACHE_FILE,
    PROGRAMS_CACHE_FILE,
    PROGRESS_CACHE_FILE,
    USERS_CACHE_FILE,
)
from models import Document, Exercise, Program, ProgressLog, User

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=Document)


class LocalCacheStore(Generic[T]):
    def __init__(self, path: str, model: Type[T]):
        self.path = path
        self.model = model

    def load(self) -> List[T]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
            return [self.model.model_validate(item) for item in raw]
        except (OSError, ValueError, TypeError, ValidationError):
            logger.warning("cache_read_failed", path=self.path, exc_info=True)
            return []

    def save_all(self, records: Iterable[T]) -> None:
        payload = [r.model_dump(mode="json") for r in records]
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError, ValueError):
            logger.warning("cache_write_failed", path=self.path, exc_info=True)

    def upsert(self, record: T) -> None:
        self.upsert_many([record])

    def upsert_many(self, records: Iterable[T]) -> None:
        current = self.load()
        index = {r.id: i for i, r in enumerate(current)}
        for record in records:
            if record.id in index:
                current[index[record.id]] = record
            else:
                index[record.id] = len(current)
                current.append(record)
        self.save_all(current)

    def remove(self, record_id: str) -> None:
        current = self.load()
        kept = [r for r in current if r.id != record_id]
        if len(kept) != len(current):
            self.save_all(kept)

    def get(self, record_id: str) -> Optional[T]:
        return next((r for r in self.load() if r.id == record_id), None)

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [r for r in self.load() if predicate(r)]


@dataclass
class LocalCache:
    programs: LocalCacheStore[Program]
    exercises: LocalCacheStore[Exercise]
    progress: LocalCacheStore[ProgressLog]
    users: LocalCacheStore[User]

    @classmethod
    def in_directory(cls, cache_dir: str) -> "LocalCache":
        return cls(
            programs=LocalCacheStore(os.path.join(cache_dir, PROGRAMS_CACHE_FILE), Program),
            exercises=LocalCacheStore(os.path.join(cache_dir, EXERCISES_CACHE_FILE), Exercise),
            progress=LocalCacheStore(os.path.join(cache_dir, PROGRESS_CACHE_FILE), ProgressLog),
            users=LocalCacheStore(os.path.join(cache_dir, USERS_CACHE_FILE), User),
        )
