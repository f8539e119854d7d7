import structlog
from pydantic import ValidationError

from config import WORKOUT_PLANS_COLLECTION
from document_client import DocumentClient
from exceptions import RemoteUnavailable
from models import WorkoutPlan
from result import Error, Result, Success, invalid, not_found, unauthorized

logger = structlog.get_logger(__name__)


class WorkoutPlanRepository:
    """Workout plans live only in the remote store; there is no local copy."""

    def __init__(self, client: DocumentClient):
        self.client = client

    async def create_workout_plan(self, plan: WorkoutPlan) -> Result:
        if not plan.creatorId:
            plan = plan.model_copy(update={"creatorId": plan.userId})
        try:
            plan_id = await self.client.create(WORKOUT_PLANS_COLLECTION, plan.model_dump(exclude={"id"}))
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success(plan_id)

    async def get_workout_plans_for_user(self, user_id: str) -> Result:
        """Plans the user created (either owner field) or joined, de-duplicated."""
        try:
            created = await self.client.query(WORKOUT_PLANS_COLLECTION, {"creatorId": user_id})
            legacy = await self.client.query(WORKOUT_PLANS_COLLECTION, {"userId": user_id})
            joined = await self.client.query(WORKOUT_PLANS_COLLECTION, {"joinedUserIds": user_id})
        except RemoteUnavailable as e:
            logger.warning("workout_plans_fetch_failed", user_id=user_id, error=e.message)
            return Error(e.message)

        plans = {}
        for doc in created + legacy + joined:
            plans.setdefault(doc["id"], doc)
        logger.debug(
            "workout_plans_fetched",
            user_id=user_id,
            created=len(created) + len(legacy),
            joined=len(joined),
        )
        return self._parse(list(plans.values()))

    async def get_all_workout_plans(self) -> Result:
        try:
            docs = await self.client.query(WORKOUT_PLANS_COLLECTION, {})
        except RemoteUnavailable as e:
            return Error(e.message)
        return self._parse(docs)

    async def get_workout_plan(self, plan_id: str) -> Result:
        try:
            doc = await self.client.get_by_id(WORKOUT_PLANS_COLLECTION, plan_id)
        except RemoteUnavailable as e:
            return Error(e.message)
        if doc is None:
            return not_found("Workout plan not found")
        try:
            return Success(WorkoutPlan.model_validate(doc))
        except ValidationError:
            return invalid("Failed to parse workout plan")

    async def join_workout_plan(self, plan_id: str, user_id: str) -> Result:
        try:
            matched = await self.client.array_union(WORKOUT_PLANS_COLLECTION, plan_id, "joinedUserIds", user_id)
        except RemoteUnavailable as e:
            logger.warning("workout_plan_join_failed", plan_id=plan_id, user_id=user_id, error=e.message)
            return Error(e.message)
        if not matched:
            return not_found("Workout plan not found")
        logger.info("workout_plan_joined", plan_id=plan_id, user_id=user_id)
        return Success()

    async def leave_workout_plan(self, plan_id: str, user_id: str) -> Result:
        try:
            matched = await self.client.array_remove(WORKOUT_PLANS_COLLECTION, plan_id, "joinedUserIds", user_id)
        except RemoteUnavailable as e:
            logger.warning("workout_plan_leave_failed", plan_id=plan_id, user_id=user_id, error=e.message)
            return Error(e.message)
        if not matched:
            return not_found("Workout plan not found")
        logger.info("workout_plan_left", plan_id=plan_id, user_id=user_id)
        return Success()

    async def delete_workout_plan(self, plan_id: str, requester_id: str) -> Result:
        found = await self.get_workout_plan(plan_id)
        if not found.is_success:
            return found
        if found.data.owner_id != requester_id:
            return unauthorized("Only the creator can delete this workout plan")
        try:
            await self.client.delete(WORKOUT_PLANS_COLLECTION, plan_id)
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success()

    @staticmethod
    def _parse(docs) -> Result:
        try:
            return Success([WorkoutPlan.model_validate(d) for d in docs])
        except ValidationError:
            return invalid("Failed to parse workout plans")
