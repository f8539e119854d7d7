from dataclasses import dataclass

from auth import AuthService
from config import CACHE_DIR, FOLLOWING_FEED_SCAN_LIMIT
from document_client import DocumentClient
from feed import ClientFilteredFollowingFeed, FeedPaginator
from local_cache import LocalCache
from repositories import ProgramRepository, ProgressRepository, UserRepository
from social import SocialCoordinator
from workout_plans import WorkoutPlanRepository


@dataclass
class Services:
    auth: AuthService
    users: UserRepository
    programs: ProgramRepository
    progress: ProgressRepository
    workout_plans: WorkoutPlanRepository
    social: SocialCoordinator


def build_services(client: DocumentClient, cache_dir: str = CACHE_DIR) -> Services:
    """Build every collaborator once; each gets its dependencies passed in."""
    cache = LocalCache.in_directory(cache_dir)
    workout_plans = WorkoutPlanRepository(client)
    paginator = FeedPaginator(client)
    return Services(
        auth=AuthService(client),
        users=UserRepository(client, cache),
        programs=ProgramRepository(client, cache, workout_plans),
        progress=ProgressRepository(client, cache),
        workout_plans=workout_plans,
        social=SocialCoordinator(
            client,
            paginator,
            ClientFilteredFollowingFeed(paginator, FOLLOWING_FEED_SCAN_LIMIT),
        ),
    )
