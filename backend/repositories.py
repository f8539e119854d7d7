"""Repositories that prefer the remote store and fall back to the local cache.

Writes go to the remote store first and are copied into the local cache only once
the store accepted them. Reads ask the store; a successful answer (even an empty
one) is authoritative and refreshes the cache. Only when the store cannot be
reached do we serve whatever the cache holds for the same filter. Callers are not
told whether data came from the network or the cache.
"""

import asyncio
from typing import Callable, Optional, Type

import structlog
from pydantic import ValidationError

from config import (
    EXERCISES_COLLECTION,
    PROGRAMS_COLLECTION,
    PROGRESS_LOGS_COLLECTION,
    USERS_COLLECTION,
)
from document_client import DocumentClient, WriteOp
from exceptions import RemoteUnavailable
from local_cache import LocalCache, LocalCacheStore
from models import Document, Exercise, Program, ProgressLog, User, WorkoutDay, WorkoutPlan
from result import Error, ErrorKind, Result, Success, invalid, not_found
from workout_plans import WorkoutPlanRepository

logger = structlog.get_logger(__name__)


class ReconcilingRepository:
    def __init__(self, client: DocumentClient):
        self.client = client

    async def _create(self, collection: str, record: Document, cache: LocalCacheStore) -> Result:
        record = record.model_copy(update={"id": self.client.new_id(collection)})
        try:
            await self.client.set(collection, record.id, record.model_dump())
        except RemoteUnavailable as e:
            logger.warning("remote_write_failed", collection=collection, error=e.message)
            return Error(e.message)
        await asyncio.to_thread(cache.upsert, record)
        return Success(record.id)

    async def _read_list(
        self,
        collection: str,
        fetch,
        model: Type[Document],
        refresh: Callable[[list], None],
        fallback: Callable[[], list],
    ) -> Result:
        try:
            docs = await fetch()
        except RemoteUnavailable as e:
            cached = await asyncio.to_thread(fallback)
            if cached:
                logger.info("serving_cached_records", collection=collection, count=len(cached))
                return Success(cached)
            logger.warning("remote_read_failed", collection=collection, error=e.message)
            return Error(e.message, ErrorKind.LOCAL_CACHE_MISS)
        try:
            records = [model.model_validate(d) for d in docs]
        except ValidationError:
            logger.warning("malformed_remote_records", collection=collection, exc_info=True)
            return invalid(f"Malformed {collection} data")
        await asyncio.to_thread(refresh, records)
        return Success(records)

    async def _read_one(
        self,
        collection: str,
        doc_id: str,
        model: Type[Document],
        cache: LocalCacheStore,
        missing_message: str,
    ) -> Result:
        try:
            doc = await self.client.get_by_id(collection, doc_id)
        except RemoteUnavailable as e:
            cached = await asyncio.to_thread(cache.get, doc_id)
            if cached is not None:
                return Success(cached)
            logger.warning("remote_read_failed", collection=collection, id=doc_id, error=e.message)
            return Error(e.message, ErrorKind.LOCAL_CACHE_MISS)
        if doc is None:
            # absent upstream is authoritative, the cache is not consulted
            return not_found(missing_message)
        try:
            record = model.model_validate(doc)
        except ValidationError:
            logger.warning("malformed_remote_record", collection=collection, id=doc_id, exc_info=True)
            return invalid(f"Malformed {collection} data")
        await asyncio.to_thread(cache.upsert, record)
        return Success(record)


class ProgramRepository(ReconcilingRepository):
    def __init__(self, client: DocumentClient, cache: LocalCache, workout_plans: WorkoutPlanRepository):
        super().__init__(client)
        self.cache = cache
        self.workout_plans = workout_plans

    async def create_program(self, program: Program) -> Result:
        return await self._create(PROGRAMS_COLLECTION, program, self.cache.programs)

    async def get_programs(self) -> Result:
        return await self._read_list(
            PROGRAMS_COLLECTION,
            lambda: self.client.query(PROGRAMS_COLLECTION, {}),
            Program,
            refresh=self.cache.programs.save_all,
            fallback=self.cache.programs.load,
        )

    async def get_program(self, program_id: str) -> Result:
        return await self._read_one(PROGRAMS_COLLECTION, program_id, Program, self.cache.programs, "Program not found")

    async def update_program(self, program: Program) -> Result:
        patch = program.model_dump(exclude={"id"})
        try:
            matched = await self.client.update(PROGRAMS_COLLECTION, program.id, patch)
        except RemoteUnavailable as e:
            return Error(e.message)
        if not matched:
            return not_found("Program not found")
        await asyncio.to_thread(self.cache.programs.upsert, program)
        return Success()

    async def delete_program(self, program_id: str) -> Result:
        """Delete a program together with the exercises it owns."""
        try:
            if await self.client.get_by_id(PROGRAMS_COLLECTION, program_id) is None:
                return not_found("Program not found")
            exercises = await self.client.query(EXERCISES_COLLECTION, {"programId": program_id})
            ops = [WriteOp("delete", EXERCISES_COLLECTION, e["id"]) for e in exercises]
            ops.append(WriteOp("delete", PROGRAMS_COLLECTION, program_id))
            await self.client.batch_write(ops)
        except RemoteUnavailable as e:
            return Error(e.message)
        await asyncio.to_thread(self.cache.programs.remove, program_id)
        for e in exercises:
            await asyncio.to_thread(self.cache.exercises.remove, e["id"])
        return Success()

    async def add_exercise(self, exercise: Exercise) -> Result:
        return await self._create(EXERCISES_COLLECTION, exercise, self.cache.exercises)

    async def get_exercises_for_program(self, program_id: str) -> Result:
        return await self._read_list(
            EXERCISES_COLLECTION,
            lambda: self.client.query(EXERCISES_COLLECTION, {"programId": program_id}),
            Exercise,
            refresh=self.cache.exercises.upsert_many,
            fallback=lambda: self.cache.exercises.find(lambda e: e.programId == program_id),
        )

    async def get_all_exercises(self) -> Result:
        """Every exercise across programs, for picking workout-plan days."""
        return await self._read_list(
            EXERCISES_COLLECTION,
            lambda: self.client.query(EXERCISES_COLLECTION, {}),
            Exercise,
            refresh=self.cache.exercises.save_all,
            fallback=self.cache.exercises.load,
        )

    async def delete_exercise(self, exercise_id: str) -> Result:
        try:
            deleted = await self.client.delete(EXERCISES_COLLECTION, exercise_id)
        except RemoteUnavailable as e:
            return Error(e.message)
        await asyncio.to_thread(self.cache.exercises.remove, exercise_id)
        if not deleted:
            return not_found("Exercise not found")
        return Success()

    async def join_program(self, program_id: str, user_id: str) -> Result:
        """Copy a program into a one-day workout plan owned by ``user_id``."""
        program_result = await self.get_program(program_id)
        if not program_result.is_success:
            return program_result
        program = program_result.data

        exercises_result = await self.get_exercises_for_program(program_id)
        exercises = exercises_result.data if exercises_result.is_success else []

        plan = WorkoutPlan(
            creatorId=user_id,
            name=program.name,
            description=program.description,
            daysPerWeek=1,
            days=[WorkoutDay(name="Day 1", exerciseIds=[e.id for e in exercises])],
        )
        return await self.workout_plans.create_workout_plan(plan)


class ProgressRepository(ReconcilingRepository):
    def __init__(self, client: DocumentClient, cache: LocalCache):
        super().__init__(client)
        self.cache = cache

    async def log_progress(self, log: ProgressLog) -> Result:
        return await self._create(PROGRESS_LOGS_COLLECTION, log, self.cache.progress)

    async def get_progress_for_user(self, user_id: str) -> Result:
        return await self._read_list(
            PROGRESS_LOGS_COLLECTION,
            lambda: self.client.query(PROGRESS_LOGS_COLLECTION, {"userId": user_id}),
            ProgressLog,
            refresh=self.cache.progress.upsert_many,
            fallback=lambda: self.cache.progress.find(lambda p: p.userId == user_id),
        )

    async def get_progress_for_exercise(self, user_id: str, exercise_id: str) -> Result:
        return await self._read_list(
            PROGRESS_LOGS_COLLECTION,
            lambda: self.client.query(PROGRESS_LOGS_COLLECTION, {"userId": user_id, "exerciseId": exercise_id}),
            ProgressLog,
            refresh=self.cache.progress.upsert_many,
            fallback=lambda: self.cache.progress.find(
                lambda p: p.userId == user_id and p.exerciseId == exercise_id
            ),
        )


class UserRepository(ReconcilingRepository):
    def __init__(self, client: DocumentClient, cache: LocalCache):
        super().__init__(client)
        self.cache = cache

    async def get_user(self, user_id: str) -> Result:
        return await self._read_one(USERS_COLLECTION, user_id, User, self.cache.users, "User not found")

    async def search_users(self, query: str) -> Result:
        # name prefix match
        try:
            docs = await self.client.query_range(USERS_COLLECTION, "name", query, query + "\uf8ff")
        except RemoteUnavailable as e:
            return Error(e.message)
        try:
            return Success([User.model_validate(d) for d in docs])
        except ValidationError:
            logger.warning("malformed_remote_records", collection=USERS_COLLECTION, exc_info=True)
            return invalid("Malformed users data")

    async def update_user(self, user_id: str, name: str, bio: str, profile_pic_url: str) -> Result:
        patch = {"name": name, "bio": bio, "profilePicUrl": profile_pic_url}
        try:
            matched = await self.client.update(USERS_COLLECTION, user_id, patch)
        except RemoteUnavailable as e:
            return Error(e.message)
        if not matched:
            return not_found("User not found")
        cached: Optional[User] = await asyncio.to_thread(self.cache.users.get, user_id)
        if cached is not None:
            await asyncio.to_thread(self.cache.users.upsert, cached.model_copy(update=patch))
        return Success()

