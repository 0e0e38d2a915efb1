"""Project reviews written by team members"""

import logging
import uuid
from typing import List
from uuid import UUID

from sqlalchemy import select

from clubportal.exceptions import NotProjectMember, ProjectNotFound, UserNotFound, ValidationFailed
from clubportal.models import Project, Review, User
from clubportal.services.change_feed import ChangeFeed, ChangeOperation, change_feed
from clubportal.services.snapshots import publish_instance
from clubportal.services.transaction import Transaction, TransactionRunner

logger = logging.getLogger(__name__)


class ReviewService:
    """Append-only reviews; only current project members may write"""

    def __init__(self, runner: TransactionRunner, feed: ChangeFeed = change_feed):
        self.runner = runner
        self.feed = feed

    async def add_review(self, user_id: str, project_id: UUID, comment: str) -> Review:
        """
        Raises:
            ValidationFailed: Blank comment
            ProjectNotFound: Unknown project
            NotProjectMember: Writer is not on the team
        """
        comment = (comment or "").strip()
        if not comment:
            raise ValidationFailed("Review comment is required")

        async def body(tx: Transaction) -> Review:
            project = await tx.get(Project, project_id)
            if project is None:
                raise ProjectNotFound(f"Project {project_id} not found")
            user = await tx.get(User, user_id)
            if user is None:
                raise UserNotFound(f"User {user_id} not found")
            if user_id not in (project.members or []):
                raise NotProjectMember()

            return tx.add(
                Review(
                    id=uuid.uuid4(),
                    project_id=project_id,
                    user_id=user_id,
                    user_name=user.name or user.email or "Anonymous",
                    comment=comment,
                )
            )

        review = await self.runner.run(body, operation="add_review")
        logger.info(f"User {user_id} reviewed project {project_id}")
        publish_instance(self.feed, "reviews", review, ChangeOperation.ADDED)
        return review

    async def list_reviews(self, project_id: UUID) -> List[Review]:
        """Reviews for a project, newest first"""
        async with self.runner.session_factory() as session:
            if await session.get(Project, project_id) is None:
                raise ProjectNotFound(f"Project {project_id} not found")
            result = await session.execute(
                select(Review)
                .where(Review.project_id == project_id)
                .order_by(Review.created_at.desc(), Review.id.desc())
            )
            return list(result.scalars().all())
