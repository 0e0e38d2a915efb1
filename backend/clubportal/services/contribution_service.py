"""Contribution workflow: submit, review and list work records"""

import logging
import time
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select

from clubportal.exceptions import (
    AlreadyProcessed,
    ContributionNotFound,
    Forbidden,
    ProjectNotFound,
    UserNotFound,
    ValidationFailed,
)
from clubportal.models import Contribution, ContributionStatus, Project, User
from clubportal.schemas.contribution import ImagePayload
from clubportal.services.change_feed import ChangeFeed, ChangeOperation, change_feed
from clubportal.services.image_service import ImageService, safe_filename
from clubportal.services.s3_service import S3ServiceError
from clubportal.services.snapshots import publish_instance
from clubportal.services.transaction import Transaction, TransactionRunner

logger = logging.getLogger(__name__)


class ContributionWorkflow:
    """
    Contribution state machine: ``pending -> verified`` or
    ``pending -> rejected``. Both end states are terminal.

    Approval writes the contribution and the owner's ``total_points`` in one
    transaction. Storage uploads happen before, and deletes after, the
    transaction so a retried body never repeats them.
    """

    def __init__(
        self,
        runner: TransactionRunner,
        storage,
        image_service: Optional[ImageService] = None,
        feed: ChangeFeed = change_feed,
    ):
        self.runner = runner
        self.storage = storage
        self.images = image_service or ImageService()
        self.feed = feed

    @staticmethod
    async def _require_admin(tx: Transaction, admin_id: str) -> User:
        admin = await tx.get(User, admin_id)
        if admin is None or not admin.is_admin:
            raise Forbidden("Admin role required")
        return admin

    @staticmethod
    async def _read_pending(tx: Transaction, contribution_id: UUID) -> Contribution:
        contribution = await tx.get(Contribution, contribution_id)
        if contribution is None:
            raise ContributionNotFound(f"Contribution {contribution_id} not found")
        if contribution.status != ContributionStatus.PENDING:
            raise AlreadyProcessed(
                f"Contribution {contribution_id} is already {contribution.status.value}"
            )
        return contribution

    def _store_image(self, user_id: str, image: ImagePayload) -> Tuple[str, str]:
        jpeg = self.images.compress_data_url(image.data_url)
        base_name = safe_filename(image.filename).rsplit(".", 1)[0]
        image_key = f"contributions/{user_id}/{int(time.time() * 1000)}_{base_name}.jpg"
        image_url = self.storage.upload_bytes(jpeg, image_key, content_type="image/jpeg")
        return image_key, image_url

    def _delete_image(self, image_key: Optional[str], image_url: Optional[str] = None) -> None:
        """Best-effort delete of a stored image; failures are only logged"""
        key = image_key or (self.storage.key_from_url(image_url) if image_url else None)
        if not key:
            return
        try:
            self.storage.delete_object(key)
        except S3ServiceError as e:
            logger.warning(f"Could not delete stored image {key}: {e}")

    async def submit(
        self,
        user_id: str,
        text: str,
        project_id: Optional[UUID] = None,
        image: Optional[ImagePayload] = None,
    ) -> Contribution:
        """
        Create a pending contribution.

        Args:
            user_id: Submitting user
            text: Description of the work, must not be blank
            project_id: Project the work belongs to, None for general work
            image: Optional evidence image as a data URL

        Returns:
            The committed contribution

        Raises:
            ValidationFailed: Blank text
            ProjectNotFound: Unknown project
            UploadTooLarge: Image over the size limit
            InvalidUpload: Image payload unreadable
        """
        text = (text or "").strip()
        if not text:
            raise ValidationFailed("Contribution text is required")

        image_key = image_url = None
        if image is not None:
            image_key, image_url = self._store_image(user_id, image)

        async def body(tx: Transaction) -> Contribution:
            user = await tx.get(User, user_id)
            if user is None:
                raise UserNotFound(f"User {user_id} not found")
            if project_id is not None and await tx.get(Project, project_id) is None:
                raise ProjectNotFound(f"Project {project_id} not found")

            return tx.add(
                Contribution(
                    id=uuid.uuid4(),
                    user_id=user_id,
                    project_id=project_id,
                    text=text,
                    image_url=image_url,
                    image_key=image_key,
                    status=ContributionStatus.PENDING,
                    points_awarded=0,
                )
            )

        try:
            contribution = await self.runner.run(body, operation="submit_contribution")
        except Exception:
            if image_key:
                self._delete_image(image_key)
            raise

        logger.info(f"User {user_id} submitted contribution {contribution.id}")
        publish_instance(self.feed, "contributions", contribution, ChangeOperation.ADDED)
        return contribution

    async def approve(self, admin_id: str, contribution_id: UUID, points: int) -> Contribution:
        """
        Verify a pending contribution and credit its owner.

        Raises:
            ValidationFailed: Negative points
            Forbidden: Caller is not an admin
            ContributionNotFound: Unknown contribution
            AlreadyProcessed: Contribution is no longer pending
            UserNotFound: Owner no longer exists
        """
        if points is None or points < 0:
            raise ValidationFailed("Points must be a non-negative integer")

        async def body(tx: Transaction) -> Tuple[Contribution, User]:
            await self._require_admin(tx, admin_id)
            contribution = await self._read_pending(tx, contribution_id)
            owner = await tx.get(User, contribution.user_id)
            if owner is None:
                raise UserNotFound(f"User {contribution.user_id} not found")

            tx.update(
                contribution,
                status=ContributionStatus.VERIFIED,
                points_awarded=points,
                verified_by=admin_id,
                verified_at=datetime.utcnow(),
            )
            tx.update(owner, total_points=(owner.total_points or 0) + points)
            return contribution, owner

        contribution, owner = await self.runner.run(body, operation="approve_contribution")
        logger.info(
            f"Admin {admin_id} approved contribution {contribution_id} "
            f"for {points} points (user {owner.id} now at {owner.total_points})"
        )
        publish_instance(self.feed, "contributions", contribution)
        publish_instance(self.feed, "users", owner)
        return contribution

    async def reject(self, admin_id: str, contribution_id: UUID) -> Contribution:
        """
        Reject a pending contribution. The stored image is deleted after
        commit on a best-effort basis.

        Raises:
            Forbidden: Caller is not an admin
            ContributionNotFound: Unknown contribution
            AlreadyProcessed: Contribution is no longer pending
        """

        async def body(tx: Transaction) -> Tuple[Contribution, Optional[str], Optional[str]]:
            await self._require_admin(tx, admin_id)
            contribution = await self._read_pending(tx, contribution_id)
            image_key, image_url = contribution.image_key, contribution.image_url

            tx.update(
                contribution,
                status=ContributionStatus.REJECTED,
                verified_by=admin_id,
                verified_at=datetime.utcnow(),
                image_url=None,
                image_key=None,
            )
            return contribution, image_key, image_url

        contribution, image_key, image_url = await self.runner.run(
            body, operation="reject_contribution"
        )
        logger.info(f"Admin {admin_id} rejected contribution {contribution_id}")
        self._delete_image(image_key, image_url)
        publish_instance(self.feed, "contributions", contribution)
        return contribution

    async def list_contributions(
        self,
        user_id: str,
        status: Optional[ContributionStatus] = None,
        project_id: Optional[UUID] = None,
    ) -> Tuple[List[Contribution], Dict[str, int]]:
        """
        List a user's contributions, newest first.

        Returns:
            Tuple of (contributions, counts per status including ``total``)
        """
        filters = [Contribution.user_id == user_id]
        if project_id is not None:
            filters.append(Contribution.project_id == project_id)

        query = select(Contribution).where(*filters)
        if status is not None:
            query = query.where(Contribution.status == status)
        query = query.order_by(Contribution.created_at.desc(), Contribution.id.desc())

        count_query = (
            select(Contribution.status, func.count(Contribution.id))
            .where(*filters)
            .group_by(Contribution.status)
        )

        async with self.runner.session_factory() as session:
            contributions = list((await session.execute(query)).scalars().all())
            count_rows = (await session.execute(count_query)).all()

        counts = {s.value: 0 for s in ContributionStatus}
        for row_status, count in count_rows:
            counts[ContributionStatus(row_status).value] = count
        counts["total"] = sum(counts.values())
        return contributions, counts

    async def list_pending(self, limit: int = 100) -> List[Contribution]:
        """Pending review queue, newest first"""
        query = (
            select(Contribution)
            .where(Contribution.status == ContributionStatus.PENDING)
            .order_by(Contribution.created_at.desc(), Contribution.id.desc())
            .limit(limit)
        )
        async with self.runner.session_factory() as session:
            return list((await session.execute(query)).scalars().all())
