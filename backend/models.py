import time
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


def now_millis() -> int:
    return int(time.time() * 1000)


def like_id(post_id: str, user_id: str) -> str:
    # At most one like per (post, user).
    return f"{post_id}_{user_id}"


def follow_id(follower_id: str, followed_id: str) -> str:
    return f"{follower_id}_{followed_id}"


class Document(BaseModel):
    # Unknown fields from newer writers are dropped, not rejected.
    model_config = ConfigDict(extra="ignore")

    id: str = ""


# ------------------------- STORED DOCUMENTS -------------------------


class User(Document):
    name: str = ""
    email: str = ""
    role: Literal["trainee", "trainer"] = "trainee"
    profilePicUrl: str = ""
    bio: str = ""


class Program(Document):
    trainerId: str = ""
    trainerName: str = ""
    name: str = ""
    description: str = ""


class Exercise(Document):
    programId: str = ""
    name: str = ""
    sets: int = 0
    reps: int = 0
    restTime: int = 0  # seconds
    notes: str = ""


class ProgressLog(Document):
    userId: str = ""
    exerciseId: str = ""
    date: int = 0  # epoch millis
    weight: float = 0.0
    repsDone: int = 0
    notes: str = ""


# Embedded Data Model: days and overrides live inside WorkoutPlan
class WorkoutExerciseOverride(BaseModel):
    sets: Optional[int] = None
    reps: Optional[int] = None
    restTime: Optional[int] = None


class WorkoutDay(BaseModel):
    name: str = ""
    exerciseIds: List[str] = []
    overrides: Dict[str, WorkoutExerciseOverride] = {}


class WorkoutPlan(Document):
    userId: str = ""  # legacy owner field, superseded by creatorId
    creatorId: str = ""
    name: str = ""
    description: str = ""
    daysPerWeek: int = 0
    focusAreas: str = ""
    restDays: str = ""
    days: List[WorkoutDay] = []
    joinedUserIds: List[str] = []
    createdAt: int = Field(default_factory=now_millis)

    @property
    def owner_id(self) -> str:
        return self.creatorId or self.userId


class Post(Document):
    userId: str = ""
    userName: str = ""
    userProfilePicUrl: str = ""
    content: str = ""
    imageUrl: Optional[str] = None
    workoutReference: Optional[str] = None
    timestamp: int = Field(default_factory=now_millis)
    likeCount: int = 0
    commentCount: int = 0


class Comment(Document):
    postId: str = ""
    userId: str = ""
    userName: str = ""
    userProfilePicUrl: str = ""
    content: str = ""
    timestamp: int = Field(default_factory=now_millis)


class Like(Document):
    postId: str = ""
    userId: str = ""
    timestamp: int = Field(default_factory=now_millis)


class Follow(Document):
    followerId: str = ""
    followedId: str = ""
    timestamp: int = Field(default_factory=now_millis)


class Notification(Document):
    userId: str = ""  # recipient
    actorId: str = ""
    actorName: str = ""
    actorProfilePicUrl: str = ""
    type: Literal["like", "comment", "follow"] = "like"
    postId: str = ""
    message: str = ""
    isRead: bool = False
    timestamp: int = Field(default_factory=now_millis)


# ------------------------- REQUEST BODIES -------------------------


class UserRegister(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: Literal["trainee", "trainer"] = "trainee"


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    name: str
    bio: str = ""
    profilePicUrl: str = ""


class ProgramCreate(BaseModel):
    name: str
    description: str = ""


class ExerciseCreate(BaseModel):
    name: str
    sets: int = 0
    reps: int = 0
    restTime: int = 0
    notes: str = ""


class ProgressCreate(BaseModel):
    exerciseId: str
    weight: float = 0.0
    repsDone: int = 0
    notes: str = ""
    date: Optional[int] = None


class WorkoutPlanCreate(BaseModel):
    name: str
    description: str = ""
    daysPerWeek: int = 0
    focusAreas: str = ""
    restDays: str = ""
    days: List[WorkoutDay] = []


class PostCreate(BaseModel):
    content: str
    imageUrl: Optional[str] = None
    workoutReference: Optional[str] = None


class PostUpdate(BaseModel):
    content: str


class CommentCreate(BaseModel):
    content: str
