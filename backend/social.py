"""Posts, comments, likes, follows and notifications.

The store has no cross-document transactions, so every multi-document action is
an ordered sequence of independent writes with no rollback:

1. the primary write (the like, the comment, ...). If it fails we stop and
   report the failure.
2. the parent post's denormalized counter, via the store's atomic increment.
3. the notification for the post owner.

Steps 2 and 3 are best-effort. Their helpers return a ``Result`` that callers
are free to drop; a failure there is logged and never reaches the caller, so a
successful like does not promise an updated counter or a delivered notification.
"""

from typing import Optional

import structlog
from pydantic import ValidationError

from config import (
    COMMENTS_COLLECTION,
    FOLLOWS_COLLECTION,
    LIKES_COLLECTION,
    NOTIFICATIONS_COLLECTION,
    POSTS_COLLECTION,
    POSTS_PAGE_SIZE,
    USERS_COLLECTION,
)
from document_client import DocumentClient, PageCursor, WriteOp
from exceptions import RemoteUnavailable
from feed import FeedPaginator, FollowingFeedSource
from models import Comment, Follow, Like, Notification, Post, follow_id, like_id, now_millis
from result import Error, Result, Success, invalid, not_found, unauthorized

logger = structlog.get_logger(__name__)

NOTIFICATION_MESSAGES = {
    "like": "{actor} liked your post",
    "comment": "{actor} commented on your post",
}


class SocialCoordinator:
    def __init__(self, client: DocumentClient, paginator: FeedPaginator, following_feed: FollowingFeedSource):
        self.client = client
        self.paginator = paginator
        self.following_feed = following_feed

    # ------------------------- POSTS -------------------------

    async def create_post(self, post: Post) -> Result:
        post = post.model_copy(update={"timestamp": now_millis(), "likeCount": 0, "commentCount": 0})
        try:
            post_id = await self.client.create(POSTS_COLLECTION, post.model_dump(exclude={"id"}))
        except RemoteUnavailable as e:
            return Error(e.message)
        logger.info("post_created", post_id=post_id, user_id=post.userId)
        return Success(post_id)

    async def get_posts(self, limit: int = POSTS_PAGE_SIZE, cursor: Optional[PageCursor] = None) -> Result:
        return await self.paginator.list_page(limit, cursor)

    async def get_post(self, post_id: str) -> Result:
        try:
            doc = await self.client.get_by_id(POSTS_COLLECTION, post_id)
        except RemoteUnavailable as e:
            return Error(e.message)
        if doc is None:
            return not_found("Post not found")
        try:
            return Success(Post.model_validate(doc))
        except ValidationError:
            return invalid("Failed to parse post")

    async def get_posts_for_user(self, user_id: str) -> Result:
        try:
            docs = await self.client.query(POSTS_COLLECTION, {"userId": user_id})
        except RemoteUnavailable as e:
            logger.warning("user_posts_fetch_failed", user_id=user_id, error=e.message)
            return Error(e.message)
        try:
            posts = [Post.model_validate(d) for d in docs]
        except ValidationError:
            return invalid("Failed to parse posts")
        return Success(sorted(posts, key=lambda p: p.timestamp, reverse=True))

    async def update_post(self, post_id: str, content: str, requester_id: Optional[str] = None) -> Result:
        if requester_id is not None:
            owned = await self._check_post_owner(post_id, requester_id)
            if not owned.is_success:
                return owned
        try:
            matched = await self.client.update(POSTS_COLLECTION, post_id, {"content": content})
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success() if matched else not_found("Post not found")

    async def delete_post(self, post_id: str, requester_id: Optional[str] = None) -> Result:
        """Delete a post along with its likes and comments."""
        if requester_id is not None:
            owned = await self._check_post_owner(post_id, requester_id)
            if not owned.is_success:
                return owned
        try:
            likes = await self.client.query(LIKES_COLLECTION, {"postId": post_id})
            comments = await self.client.query(COMMENTS_COLLECTION, {"postId": post_id})
            ops = [WriteOp("delete", LIKES_COLLECTION, d["id"]) for d in likes]
            ops += [WriteOp("delete", COMMENTS_COLLECTION, d["id"]) for d in comments]
            ops.append(WriteOp("delete", POSTS_COLLECTION, post_id))
            await self.client.batch_write(ops)
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success()

    async def _check_post_owner(self, post_id: str, requester_id: str) -> Result:
        found = await self.get_post(post_id)
        if not found.is_success:
            return found
        if found.data.userId != requester_id:
            return unauthorized("Not allowed")
        return found

    # ------------------------- LIKES -------------------------

    async def like_post(self, post_id: str, user_id: str) -> Result:
        """Like a post once. ``Success(True)`` if a like was added, ``Success(False)``
        if the user had already liked it (nothing is written in that case)."""
        like = Like(id=like_id(post_id, user_id), postId=post_id, userId=user_id)
        try:
            created = await self.client.create_if_absent(LIKES_COLLECTION, like.id, like.model_dump())
        except RemoteUnavailable as e:
            logger.warning("like_failed", post_id=post_id, user_id=user_id, error=e.message)
            return Error(e.message)
        if not created:
            return Success(False)

        await self._adjust_counter(post_id, "likeCount", 1)
        await self._notify_post_owner(post_id, user_id, "like")
        return Success(True)

    async def unlike_post(self, post_id: str, user_id: str) -> Result:
        """Remove a like. The like notification, if any, is left in place."""
        try:
            removed = await self.client.delete(LIKES_COLLECTION, like_id(post_id, user_id))
        except RemoteUnavailable as e:
            logger.warning("unlike_failed", post_id=post_id, user_id=user_id, error=e.message)
            return Error(e.message)
        if removed:
            await self._adjust_counter(post_id, "likeCount", -1)
        return Success(removed)

    async def toggle_like(self, post_id: str, user_id: str) -> Result:
        """Flip the like state. Returns ``Success(liked)`` with the new state."""
        liked = await self.has_user_liked(post_id, user_id)
        if not liked.is_success:
            return liked
        if liked.data:
            result = await self.unlike_post(post_id, user_id)
            return Success(False) if result.is_success else result
        result = await self.like_post(post_id, user_id)
        return Success(True) if result.is_success else result

    async def has_user_liked(self, post_id: str, user_id: str) -> Result:
        try:
            doc = await self.client.get_by_id(LIKES_COLLECTION, like_id(post_id, user_id))
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success(doc is not None)

    async def get_like_count(self, post_id: str) -> Result:
        try:
            return Success(await self.client.count(LIKES_COLLECTION, {"postId": post_id}))
        except RemoteUnavailable as e:
            return Error(e.message)

    async def reconcile_post_counters(self, post_id: str) -> Result:
        """Overwrite the post's counters with fresh counts of its likes and comments."""
        try:
            counts = {
                "likeCount": await self.client.count(LIKES_COLLECTION, {"postId": post_id}),
                "commentCount": await self.client.count(COMMENTS_COLLECTION, {"postId": post_id}),
            }
            matched = await self.client.update(POSTS_COLLECTION, post_id, counts)
        except RemoteUnavailable as e:
            return Error(e.message)
        if not matched:
            return not_found("Post not found")
        logger.info("post_counters_reconciled", post_id=post_id, **counts)
        return Success(counts)

    # ------------------------- COMMENTS -------------------------

    async def add_comment(self, comment: Comment) -> Result:
        comment = comment.model_copy(update={"timestamp": now_millis()})
        try:
            comment_id = await self.client.create(COMMENTS_COLLECTION, comment.model_dump(exclude={"id"}))
        except RemoteUnavailable as e:
            logger.warning("comment_failed", post_id=comment.postId, error=e.message)
            return Error(e.message)

        await self._adjust_counter(comment.postId, "commentCount", 1)
        await self._notify_post_owner(comment.postId, comment.userId, "comment")
        return Success(comment_id)

    async def get_comments_for_post(self, post_id: str) -> Result:
        try:
            docs = await self.client.query(COMMENTS_COLLECTION, {"postId": post_id})
        except RemoteUnavailable as e:
            return Error(e.message)
        try:
            comments = [Comment.model_validate(d) for d in docs]
        except ValidationError:
            return invalid("Failed to parse comments")
        return Success(sorted(comments, key=lambda c: c.timestamp))

    async def delete_comment(self, comment_id: str, post_id: str, requester_id: Optional[str] = None) -> Result:
        """Delete a comment of ``post_id`` and decrement that post's counter."""
        try:
            doc = await self.client.get_by_id(COMMENTS_COLLECTION, comment_id)
            if doc is None or doc.get("postId") != post_id:
                return not_found("Comment not found")
            if requester_id is not None and doc.get("userId") != requester_id:
                return unauthorized("Not allowed")
            removed = await self.client.delete(COMMENTS_COLLECTION, comment_id)
        except RemoteUnavailable as e:
            return Error(e.message)
        if removed:
            await self._adjust_counter(doc["postId"], "commentCount", -1)
        return Success()

    # ------------------------- BEST-EFFORT EFFECTS -------------------------

    async def _adjust_counter(self, post_id: str, field_name: str, delta: int) -> Result:
        """Best-effort. The returned result may be ignored."""
        try:
            await self.client.increment_field(POSTS_COLLECTION, post_id, field_name, delta)
        except RemoteUnavailable as e:
            logger.warning("post_counter_update_failed", post_id=post_id, field=field_name, delta=delta, error=e.message)
            return Error(e.message)
        return Success()

    async def _notify_post_owner(self, post_id: str, actor_id: str, kind: str) -> Result:
        """Best-effort. Notifies the post owner unless they are the actor.

        The actor's name and photo are read now, so the notification shows the
        profile as it is at this moment and is never updated afterwards.
        """
        try:
            post = await self.client.get_by_id(POSTS_COLLECTION, post_id)
            if post is None:
                return not_found("Post not found")
            owner_id = post.get("userId", "")
            if not owner_id or owner_id == actor_id:
                return Success(None)

            actor = await self.client.get_by_id(USERS_COLLECTION, actor_id) or {}
            actor_name = actor.get("name") or "Someone"
            notification = Notification(
                userId=owner_id,
                actorId=actor_id,
                actorName=actor_name,
                actorProfilePicUrl=actor.get("profilePicUrl") or "",
                type=kind,
                postId=post_id,
                message=NOTIFICATION_MESSAGES[kind].format(actor=actor_name),
                timestamp=now_millis(),
            )
            notification_id = await self.client.create(
                NOTIFICATIONS_COLLECTION, notification.model_dump(exclude={"id"})
            )
        except (RemoteUnavailable, ValidationError) as e:
            logger.warning("notification_create_failed", post_id=post_id, actor_id=actor_id, type=kind, error=str(e))
            return Error(str(e))
        logger.debug("notification_created", type=kind, user_id=owner_id)
        return Success(notification_id)

    # ------------------------- FOLLOWS -------------------------

    async def follow_user(self, follower_id: str, followed_id: str) -> Result:
        if follower_id == followed_id:
            return invalid("Cannot follow yourself")
        follow = Follow(id=follow_id(follower_id, followed_id), followerId=follower_id, followedId=followed_id)
        try:
            await self.client.set(FOLLOWS_COLLECTION, follow.id, follow.model_dump())
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success()

    async def unfollow_user(self, follower_id: str, followed_id: str) -> Result:
        try:
            await self.client.delete(FOLLOWS_COLLECTION, follow_id(follower_id, followed_id))
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success()

    async def is_following(self, follower_id: str, followed_id: str) -> Result:
        try:
            doc = await self.client.get_by_id(FOLLOWS_COLLECTION, follow_id(follower_id, followed_id))
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success(doc is not None)

    async def get_following(self, user_id: str) -> Result:
        try:
            docs = await self.client.query(FOLLOWS_COLLECTION, {"followerId": user_id})
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success([d["followedId"] for d in docs if d.get("followedId")])

    async def get_followers_count(self, user_id: str) -> Result:
        try:
            return Success(await self.client.count(FOLLOWS_COLLECTION, {"followedId": user_id}))
        except RemoteUnavailable as e:
            return Error(e.message)

    async def get_following_count(self, user_id: str) -> Result:
        try:
            return Success(await self.client.count(FOLLOWS_COLLECTION, {"followerId": user_id}))
        except RemoteUnavailable as e:
            return Error(e.message)

    async def get_following_feed(self, user_id: str) -> Result:
        following = await self.get_following(user_id)
        if not following.is_success:
            return following
        return await self.following_feed.posts_by(following.data)

    # ------------------------- NOTIFICATIONS -------------------------

    async def get_notifications(self, user_id: str) -> Result:
        try:
            docs = await self.client.query(NOTIFICATIONS_COLLECTION, {"userId": user_id})
        except RemoteUnavailable as e:
            logger.warning("notifications_fetch_failed", user_id=user_id, error=e.message)
            return Error(e.message)
        try:
            notifications = [Notification.model_validate(d) for d in docs]
        except ValidationError:
            return invalid("Failed to parse notifications")
        return Success(sorted(notifications, key=lambda n: n.timestamp, reverse=True))

    async def mark_as_read(self, notification_id: str, requester_id: Optional[str] = None) -> Result:
        if requester_id is not None:
            owned = await self._check_recipient(notification_id, requester_id)
            if not owned.is_success:
                return owned
        try:
            matched = await self.client.update(NOTIFICATIONS_COLLECTION, notification_id, {"isRead": True})
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success() if matched else not_found("Notification not found")

    async def mark_all_as_read(self, user_id: str) -> Result:
        try:
            unread = await self.client.query(NOTIFICATIONS_COLLECTION, {"userId": user_id, "isRead": False})
            await self.client.batch_write(
                [WriteOp("update", NOTIFICATIONS_COLLECTION, d["id"], {"isRead": True}) for d in unread]
            )
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success(len(unread))

    async def get_unread_count(self, user_id: str) -> Result:
        try:
            return Success(await self.client.count(NOTIFICATIONS_COLLECTION, {"userId": user_id, "isRead": False}))
        except RemoteUnavailable as e:
            return Error(e.message)

    async def delete_notification(self, notification_id: str, requester_id: Optional[str] = None) -> Result:
        if requester_id is not None:
            owned = await self._check_recipient(notification_id, requester_id)
            if not owned.is_success:
                return owned
        try:
            await self.client.delete(NOTIFICATIONS_COLLECTION, notification_id)
        except RemoteUnavailable as e:
            return Error(e.message)
        return Success()

    async def _check_recipient(self, notification_id: str, requester_id: str) -> Result:
        # only the recipient may read or dismiss a notification
        try:
            doc = await self.client.get_by_id(NOTIFICATIONS_COLLECTION, notification_id)
        except RemoteUnavailable as e:
            return Error(e.message)
        if doc is None:
            return not_found("Notification not found")
        if doc.get("userId") != requester_id:
            return unauthorized("Not allowed")
        return Success()
