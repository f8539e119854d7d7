from __future__ import annotations

from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import POSTS_PAGE_SIZE
from database import check_db, create_client, create_indexes, get_database
from deps import get_current_user_id, get_services, unwrap
from document_client import MongoDocumentClient
from feed import decode_cursor, encode_cursor
from logging_config import configure_logging
from models import (
    Comment,
    CommentCreate,
    Exercise,
    ExerciseCreate,
    Post,
    PostCreate,
    PostUpdate,
    ProfileUpdate,
    Program,
    ProgramCreate,
    ProgressCreate,
    ProgressLog,
    UserLogin,
    UserRegister,
    WorkoutPlan,
    WorkoutPlanCreate,
    now_millis,
)
from services import Services, build_services

logger = structlog.get_logger(__name__)

app = FastAPI(title="RepTrack Fitness & Social API")


# --- CORS (mobile and web clients)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_exception", path=request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.on_event("startup")
async def startup_services():
    configure_logging("reptrack")
    mongo = create_client()
    await check_db(mongo)
    db = get_database(mongo)
    await create_indexes(db)
    app.state.mongo = mongo
    app.state.services = build_services(MongoDocumentClient(db))


@app.on_event("shutdown")
async def shutdown_services():
    mongo = getattr(app.state, "mongo", None)
    if mongo is not None:
        mongo.close()


@app.get("/")
async def root():
    return {"message": "RepTrack API is running"}


# ------------------------- AUTH -------------------------


@app.post("/auth/register", status_code=201)
async def register(user: UserRegister, services: Services = Depends(get_services)):
    session = unwrap(await services.auth.sign_up(user.name, user.email, user.password, user.role))
    return {"id": session.user.id, "access_token": session.token, "token_type": "bearer"}


@app.post("/auth/login")
async def login(user: UserLogin, services: Services = Depends(get_services)):
    session = unwrap(await services.auth.sign_in(user.email, user.password))
    return {"access_token": session.token, "token_type": "bearer", "user_id": session.user.id}


# ------------------------- USERS -------------------------


@app.get("/me")
async def me(user_id: str = Depends(get_current_user_id), services: Services = Depends(get_services)):
    return unwrap(await services.users.get_user(user_id))


@app.get("/users")
async def search_users(q: str, services: Services = Depends(get_services)):
    return unwrap(await services.users.search_users(q))


@app.get("/users/{user_id}")
async def get_user(user_id: str, services: Services = Depends(get_services)):
    return unwrap(await services.users.get_user(user_id))


@app.patch("/users/{user_id}/profile")
async def update_profile(
    user_id: str,
    profile: ProfileUpdate,
    current_user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    if current_user_id != user_id:
        raise HTTPException(status_code=403, detail="Not allowed")
    unwrap(await services.users.update_user(user_id, profile.name, profile.bio, profile.profilePicUrl))
    return {"message": "Profile updated"}


@app.get("/users/{user_id}/posts")
async def user_posts(user_id: str, services: Services = Depends(get_services)):
    return unwrap(await services.social.get_posts_for_user(user_id))


@app.get("/users/{user_id}/followers/count")
async def followers_count(user_id: str, services: Services = Depends(get_services)):
    return {"count": unwrap(await services.social.get_followers_count(user_id))}


@app.get("/users/{user_id}/following/count")
async def following_count(user_id: str, services: Services = Depends(get_services)):
    return {"count": unwrap(await services.social.get_following_count(user_id))}


@app.get("/users/{user_id}/following")
async def following(user_id: str, services: Services = Depends(get_services)):
    return unwrap(await services.social.get_following(user_id))


# ------------------------- PROGRAMS -------------------------


async def _require_trainer(services: Services, user_id: str):
    user = unwrap(await services.users.get_user(user_id))
    if user.role != "trainer":
        raise HTTPException(status_code=403, detail="Trainers only")
    return user


async def _require_program_owner(services: Services, program_id: str, user_id: str) -> Program:
    program = unwrap(await services.programs.get_program(program_id))
    if program.trainerId != user_id:
        raise HTTPException(status_code=403, detail="Not allowed")
    return program


@app.post("/programs", status_code=201)
async def create_program(
    data: ProgramCreate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    trainer = await _require_trainer(services, user_id)
    program = Program(trainerId=trainer.id, trainerName=trainer.name, **data.model_dump())
    program_id = unwrap(await services.programs.create_program(program))
    return {"id": program_id, "message": "Program created"}


@app.get("/programs")
async def list_programs(services: Services = Depends(get_services)):
    return unwrap(await services.programs.get_programs())


@app.get("/programs/{program_id}")
async def get_program(program_id: str, services: Services = Depends(get_services)):
    return unwrap(await services.programs.get_program(program_id))


@app.put("/programs/{program_id}")
async def update_program(
    program_id: str,
    data: ProgramCreate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    program = await _require_program_owner(services, program_id, user_id)
    unwrap(await services.programs.update_program(program.model_copy(update=data.model_dump())))
    return {"message": "Program updated"}


@app.delete("/programs/{program_id}")
async def delete_program(
    program_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    await _require_program_owner(services, program_id, user_id)
    unwrap(await services.programs.delete_program(program_id))
    return {"message": "Program deleted"}


@app.post("/programs/{program_id}/exercises", status_code=201)
async def add_exercise(
    program_id: str,
    data: ExerciseCreate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    await _require_program_owner(services, program_id, user_id)
    exercise_id = unwrap(await services.programs.add_exercise(Exercise(programId=program_id, **data.model_dump())))
    return {"id": exercise_id, "message": "Exercise added"}


@app.get("/programs/{program_id}/exercises")
async def list_exercises(program_id: str, services: Services = Depends(get_services)):
    return unwrap(await services.programs.get_exercises_for_program(program_id))


@app.get("/exercises")
async def list_all_exercises(services: Services = Depends(get_services)):
    return unwrap(await services.programs.get_all_exercises())


@app.delete("/programs/{program_id}/exercises/{exercise_id}")
async def delete_exercise(
    program_id: str,
    exercise_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    await _require_program_owner(services, program_id, user_id)
    unwrap(await services.programs.delete_exercise(exercise_id))
    return {"message": "Exercise deleted"}


@app.post("/programs/{program_id}/join", status_code=201)
async def join_program(
    program_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    plan_id = unwrap(await services.programs.join_program(program_id, user_id))
    return {"id": plan_id, "message": "Program joined"}


# ------------------------- PROGRESS -------------------------


@app.post("/progress", status_code=201)
async def log_progress(
    data: ProgressCreate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    fields = data.model_dump()
    fields["date"] = fields["date"] or now_millis()
    log_id = unwrap(await services.progress.log_progress(ProgressLog(userId=user_id, **fields)))
    return {"id": log_id, "message": "Progress logged"}


@app.get("/progress")
async def get_progress(
    exercise_id: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    if exercise_id:
        result = await services.progress.get_progress_for_exercise(user_id, exercise_id)
    else:
        result = await services.progress.get_progress_for_user(user_id)
    return sorted(unwrap(result), key=lambda log: log.date, reverse=True)


# ------------------------- WORKOUT PLANS -------------------------


@app.post("/workout-plans", status_code=201)
async def create_workout_plan(
    data: WorkoutPlanCreate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    plan_id = unwrap(await services.workout_plans.create_workout_plan(WorkoutPlan(creatorId=user_id, **data.model_dump())))
    return {"id": plan_id, "message": "Workout plan created"}


@app.get("/workout-plans")
async def my_workout_plans(user_id: str = Depends(get_current_user_id), services: Services = Depends(get_services)):
    return unwrap(await services.workout_plans.get_workout_plans_for_user(user_id))


@app.get("/workout-plans/all")
async def all_workout_plans(services: Services = Depends(get_services)):
    return unwrap(await services.workout_plans.get_all_workout_plans())


@app.get("/workout-plans/{plan_id}")
async def get_workout_plan(plan_id: str, services: Services = Depends(get_services)):
    return unwrap(await services.workout_plans.get_workout_plan(plan_id))


@app.post("/workout-plans/{plan_id}/join")
async def join_workout_plan(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.workout_plans.join_workout_plan(plan_id, user_id))
    return {"joined": True}


@app.delete("/workout-plans/{plan_id}/join")
async def leave_workout_plan(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.workout_plans.leave_workout_plan(plan_id, user_id))
    return {"joined": False}


@app.delete("/workout-plans/{plan_id}")
async def delete_workout_plan(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.workout_plans.delete_workout_plan(plan_id, user_id))
    return {"message": "Workout plan deleted"}


# ------------------------- FEED & POSTS -------------------------


@app.post("/posts", status_code=201)
async def create_post(
    data: PostCreate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    author = unwrap(await services.users.get_user(user_id))
    post = Post(userId=author.id, userName=author.name, userProfilePicUrl=author.profilePicUrl, **data.model_dump())
    post_id = unwrap(await services.social.create_post(post))
    return {"id": post_id, "message": "Post created"}


@app.get("/feed")
async def get_feed(
    limit: int = POSTS_PAGE_SIZE,
    cursor: Optional[str] = None,
    services: Services = Depends(get_services),
):
    try:
        after = decode_cursor(cursor) if cursor else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    page = unwrap(await services.social.get_posts(min(limit, 100), after))
    return {
        "items": page.posts,
        "nextCursor": encode_cursor(page.next_cursor) if page.next_cursor else None,
        "maybeMore": page.maybe_more,
    }


@app.get("/feed/following")
async def following_feed(user_id: str = Depends(get_current_user_id), services: Services = Depends(get_services)):
    return unwrap(await services.social.get_following_feed(user_id))


@app.get("/posts/{post_id}")
async def get_post(post_id: str, services: Services = Depends(get_services)):
    return unwrap(await services.social.get_post(post_id))


@app.patch("/posts/{post_id}")
async def update_post(
    post_id: str,
    data: PostUpdate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.update_post(post_id, data.content, requester_id=user_id))
    return {"message": "Post updated"}


@app.delete("/posts/{post_id}")
async def delete_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.delete_post(post_id, requester_id=user_id))
    return {"message": "Post deleted"}


@app.get("/posts/{post_id}/like")
async def like_status(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    liked = unwrap(await services.social.has_user_liked(post_id, user_id))
    count = unwrap(await services.social.get_like_count(post_id))
    return {"liked": liked, "count": count}


@app.post("/posts/{post_id}/like")
async def like_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.like_post(post_id, user_id))
    return {"liked": True}


@app.delete("/posts/{post_id}/like")
async def unlike_post(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.unlike_post(post_id, user_id))
    return {"liked": False}


@app.post("/posts/{post_id}/like/toggle")
async def toggle_like(
    post_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return {"liked": unwrap(await services.social.toggle_like(post_id, user_id))}


@app.get("/posts/{post_id}/comments")
async def list_comments(post_id: str, services: Services = Depends(get_services)):
    return unwrap(await services.social.get_comments_for_post(post_id))


@app.post("/posts/{post_id}/comments", status_code=201)
async def add_comment(
    post_id: str,
    data: CommentCreate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.get_post(post_id))
    author = unwrap(await services.users.get_user(user_id))
    comment = Comment(
        postId=post_id,
        userId=author.id,
        userName=author.name,
        userProfilePicUrl=author.profilePicUrl,
        content=data.content,
    )
    comment_id = unwrap(await services.social.add_comment(comment))
    return {"id": comment_id, "message": "Comment added"}


@app.delete("/posts/{post_id}/comments/{comment_id}")
async def delete_comment(
    post_id: str,
    comment_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.delete_comment(comment_id, post_id, requester_id=user_id))
    return {"message": "Comment deleted"}


# ------------------------- FOLLOWS -------------------------


@app.get("/follow/{target_id}")
async def is_following(
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return {"following": unwrap(await services.social.is_following(user_id, target_id))}


@app.post("/follow/{target_id}")
async def follow_user(
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.follow_user(user_id, target_id))
    return {"following": True}


@app.delete("/follow/{target_id}")
async def unfollow_user(
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.unfollow_user(user_id, target_id))
    return {"following": False}


# ------------------------- NOTIFICATIONS -------------------------


@app.get("/notifications")
async def list_notifications(user_id: str = Depends(get_current_user_id), services: Services = Depends(get_services)):
    return unwrap(await services.social.get_notifications(user_id))


@app.get("/notifications/unread-count")
async def unread_count(user_id: str = Depends(get_current_user_id), services: Services = Depends(get_services)):
    return {"count": unwrap(await services.social.get_unread_count(user_id))}


@app.post("/notifications/read-all")
async def mark_all_read(user_id: str = Depends(get_current_user_id), services: Services = Depends(get_services)):
    return {"updated": unwrap(await services.social.mark_all_as_read(user_id))}


@app.post("/notifications/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.mark_as_read(notification_id, requester_id=user_id))
    return {"message": "Notification marked as read"}


@app.delete("/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    unwrap(await services.social.delete_notification(notification_id, requester_id=user_id))
