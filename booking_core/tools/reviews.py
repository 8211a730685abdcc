"""Customer reviews: public submission and admin moderation."""

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from booking_core.auth import AuthContext, Permission, require_admin, require_permission
from booking_core.config import AppConfig, settings
from booking_core.errors import NotFoundError, ValidationError
from booking_core.schemas.review_schema import Review, ReviewData, ReviewStats
from booking_core.storage.activity_log import ActivityLog
from booking_core.storage.filters import Eq, all_of
from booking_core.storage.rate_limit import InMemoryRateLimitBackend, RateLimiter
from booking_core.storage.store import REVIEWS, SERVICES, DocumentStore
from booking_core.utils import Clock, local_today, to_epoch_ms, utc_now
from booking_core.validation.validators import (
    MAX_MESSAGE_LENGTH,
    sanitize_input,
    validate_review_data,
)

logger = logging.getLogger(__name__)


class ReviewManager:
    """
    Reviews are created unapproved and only shown publicly once an admin
    approves them. Only approved reviews can be featured; rejecting a
    review deletes it.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: AppConfig = settings,
        clock: Clock = utc_now,
        rate_limiter: Optional[RateLimiter] = None,
        activity_log: Optional[ActivityLog] = None,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock
        self._rate_limiter = rate_limiter or RateLimiter(InMemoryRateLimitBackend(clock))
        self._activity = activity_log or ActivityLog(store, clock)

    async def _require_review(self, review_id: str) -> Review:
        doc = await self._store.get(REVIEWS, review_id)
        if doc is None:
            raise NotFoundError("Review not found")
        return Review.model_validate(doc)

    async def _query(self, where=None, limit: Optional[int] = None) -> list[Review]:
        docs = await self._store.query(
            REVIEWS, where=where, order_by="createdAt", descending=True, limit=limit
        )
        return [Review.model_validate(d) for d in docs]

    async def create_review(self, data: Any) -> str:
        """Submit a review for moderation. Returns the new review id."""
        try:
            review = data if isinstance(data, ReviewData) else ReviewData.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(errors=[e["msg"] for e in exc.errors()]) from None

        review = review.model_copy(update={
            "customer_name": sanitize_input(review.customer_name),
            "comment": sanitize_input(review.comment)[:MAX_MESSAGE_LENGTH],
        })
        result = validate_review_data(review)
        if not result.is_valid:
            raise ValidationError(errors=result.errors)

        await self._rate_limiter.check(
            f"review:{review.customer_name.strip().lower()}",
            limit=1,
            window_sec=self._config.rate_limits.review_window_sec,
            message="You have already submitted a review recently. Thank you!",
        )

        if await self._store.get(SERVICES, review.service_id) is None:
            raise NotFoundError("Selected service not found")

        now = to_epoch_ms(self._clock())
        review_date = review.date or local_today(
            self._clock, self._config.business.timezone
        ).isoformat()
        review_id = await self._store.insert(REVIEWS, {
            "customerName": review.customer_name,
            "rating": review.rating,
            "comment": review.comment,
            "serviceId": review.service_id,
            "isApproved": False,
            "isFeatured": False,
            "date": review_date,
            "createdAt": now,
            "updatedAt": now,
        })

        logger.info("Review %s submitted for service %s", review_id, review.service_id)
        await self._activity.record(
            "review_submitted",
            metadata={
                "reviewId": review_id,
                "customerName": review.customer_name,
                "serviceId": review.service_id,
            },
        )
        return review_id

    async def approve_review(
        self, review_id: str, auth: Optional[AuthContext], featured: bool = False
    ) -> None:
        require_admin(auth, "approve reviews")
        review = await self._require_review(review_id)
        if review.is_approved:
            raise ValidationError("Review is already approved")

        await self._store.patch(REVIEWS, review_id, {
            "isApproved": True,
            "isFeatured": featured,
            "updatedAt": to_epoch_ms(self._clock()),
        })
        await self._activity.record(
            "review_approved",
            user_id=auth.user_id,
            metadata={"reviewId": review_id, "featured": featured},
        )

    async def reject_review(
        self, review_id: str, auth: Optional[AuthContext], reason: Optional[str] = None
    ) -> None:
        """Delete a review, recording the reason in the activity log."""
        require_admin(auth, "reject reviews")
        review = await self._require_review(review_id)
        await self._store.delete(REVIEWS, review_id)

        logger.info("Review %s rejected", review_id)
        metadata = {"reviewId": review_id, "customerName": review.customer_name}
        if reason:
            metadata["reason"] = sanitize_input(reason)
        await self._activity.record("review_rejected", user_id=auth.user_id, metadata=metadata)

    async def toggle_featured(self, review_id: str, auth: Optional[AuthContext]) -> bool:
        """Flip ``isFeatured`` on an approved review and return the new value."""
        require_admin(auth, "feature reviews")
        review = await self._require_review(review_id)
        if not review.is_approved:
            raise ValidationError("Cannot feature an unapproved review")

        featured = not review.is_featured
        await self._store.patch(REVIEWS, review_id, {
            "isFeatured": featured,
            "updatedAt": to_epoch_ms(self._clock()),
        })
        await self._activity.record(
            "review_featured_toggled",
            user_id=auth.user_id,
            metadata={"reviewId": review_id, "featured": featured},
        )
        return featured

    async def update_review(
        self,
        review_id: str,
        auth: Optional[AuthContext],
        comment: Optional[str] = None,
        rating: Optional[int] = None,
    ) -> None:
        require_admin(auth, "edit reviews")
        review = await self._require_review(review_id)

        changes: dict[str, Any] = {}
        if comment is not None:
            changes["comment"] = sanitize_input(comment)[:MAX_MESSAGE_LENGTH]
        if rating is not None:
            if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
                raise ValidationError("Rating must be between 1 and 5 stars", field="rating")
            changes["rating"] = rating
        if not changes:
            return

        changed_fields = ", ".join(changes)
        changes["updatedAt"] = to_epoch_ms(self._clock())
        await self._store.patch(REVIEWS, review_id, changes)
        await self._activity.record(
            "review_updated",
            user_id=auth.user_id,
            metadata={
                "reviewId": review_id,
                "customerName": review.customer_name,
                "changes": changed_fields,
            },
        )

    async def get_review(self, review_id: str) -> Optional[Review]:
        doc = await self._store.get(REVIEWS, review_id)
        return Review.model_validate(doc) if doc else None

    async def get_approved_reviews(self, limit: int = 20) -> list[Review]:
        return await self._query(Eq("isApproved", True), limit)

    async def get_featured_reviews(self, limit: int = 6) -> list[Review]:
        return await self._query(all_of(Eq("isApproved", True), Eq("isFeatured", True)), limit)

    async def get_reviews_by_service(
        self, service_id: str, approved_only: bool = True, limit: int = 50
    ) -> list[Review]:
        where = all_of(
            Eq("serviceId", service_id),
            Eq("isApproved", True) if approved_only else None,
        )
        return await self._query(where, limit)

    async def get_pending_reviews(
        self, auth: Optional[AuthContext], limit: int = 50
    ) -> list[Review]:
        require_permission(auth, Permission.REVIEWS_READ, "view pending reviews")
        return await self._query(Eq("isApproved", False), limit)

    async def get_review_stats(self, auth: Optional[AuthContext]) -> ReviewStats:
        """Counts plus average rating and distribution over approved reviews."""
        require_admin(auth, "view review statistics")
        reviews = await self._query(limit=self._config.stats.fetch_cap)
        approved = [r for r in reviews if r.is_approved]

        distribution = {star: 0 for star in (5, 4, 3, 2, 1)}
        for r in approved:
            distribution[r.rating] += 1
        average = sum(r.rating for r in approved) / len(approved) if approved else 0.0

        return ReviewStats(
            total=len(reviews),
            approved=len(approved),
            featured=sum(1 for r in approved if r.is_featured),
            pending=len(reviews) - len(approved),
            average_rating=round(average, 1),
            rating_distribution=distribution,
        )
