import os

from dotenv import load_dotenv


load_dotenv()

# Defaults work for local MongoDB.
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "reptrack")

SECRET_KEY = os.getenv("SECRET_KEY", "fallback_secret")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

CACHE_DIR = os.path.expanduser(os.getenv("CACHE_DIR", "~/.reptrack"))

POSTS_PAGE_SIZE = int(os.getenv("POSTS_PAGE_SIZE", "20"))
FOLLOWING_FEED_SCAN_LIMIT = int(os.getenv("FOLLOWING_FEED_SCAN_LIMIT", "100"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
APP_ENV = os.getenv("APP_ENV", "local")

# Collections
USERS_COLLECTION = "users"
PROGRAMS_COLLECTION = "programs"
EXERCISES_COLLECTION = "exercises"
PROGRESS_LOGS_COLLECTION = "progress_logs"
WORKOUT_PLANS_COLLECTION = "workout_plans"
POSTS_COLLECTION = "posts"
COMMENTS_COLLECTION = "comments"
LIKES_COLLECTION = "likes"
FOLLOWS_COLLECTION = "follows"
NOTIFICATIONS_COLLECTION = "notifications"

# Local cache files (one per entity kind)
PROGRAMS_CACHE_FILE = "reptrack_programs.json"
EXERCISES_CACHE_FILE = "reptrack_exercises.json"
PROGRESS_CACHE_FILE = "reptrack_progress.json"
USERS_CACHE_FILE = "reptrack_users.json"
