"""Join-request broker for projects outside self-service joining"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from clubportal.config import settings
from clubportal.exceptions import (
    AlreadyInProject,
    AlreadyMember,
    AlreadyProcessed,
    DuplicateRequest,
    Forbidden,
    JoinRequestNotFound,
    NoPendingRequest,
    ProjectFull,
    ProjectNotFound,
    UserNotFound,
)
from clubportal.models import JoinRequest, JoinRequestStatus, Project, User
from clubportal.models.join_request import pending_key_for
from clubportal.services.change_feed import ChangeFeed, ChangeOperation, change_feed
from clubportal.services.snapshots import publish_instance
from clubportal.services.transaction import Transaction, TransactionRunner

logger = logging.getLogger(__name__)


class JoinRequestBroker:
    """
    Pending join requests, at most one per (user, project) pair.

    The pair is enforced by the unique ``pending_key`` column, so two
    concurrent requests cannot both be inserted.
    """

    def __init__(
        self,
        runner: TransactionRunner,
        feed: ChangeFeed = change_feed,
        project_max_members: Optional[int] = None,
    ):
        self.runner = runner
        self.feed = feed
        self.project_max_members = project_max_members or settings.project_max_members

    @staticmethod
    async def _require_admin(tx: Transaction, admin_id: str) -> User:
        admin = await tx.get(User, admin_id)
        if admin is None or not admin.is_admin:
            raise Forbidden("Admin role required")
        return admin

    @staticmethod
    async def _read_pending(tx: Transaction, request_id: UUID) -> JoinRequest:
        join_request = await tx.get(JoinRequest, request_id)
        if join_request is None:
            raise JoinRequestNotFound(f"Join request {request_id} not found")
        if join_request.status != JoinRequestStatus.PENDING:
            raise AlreadyProcessed(
                f"Join request {request_id} is already {join_request.status.value}"
            )
        return join_request

    async def request_to_join(self, user_id: str, project_id: UUID) -> JoinRequest:
        """
        File a pending request to join a project.

        Raises:
            ProjectNotFound: Unknown project
            AlreadyMember: User already belongs to the project
            DuplicateRequest: A pending request already exists
        """

        async def body(tx: Transaction) -> JoinRequest:
            project = await tx.get(Project, project_id)
            if project is None:
                raise ProjectNotFound(f"Project {project_id} not found")
            if await tx.get(User, user_id) is None:
                raise UserNotFound(f"User {user_id} not found")
            if user_id in (project.members or []):
                raise AlreadyMember()

            pending_key = pending_key_for(user_id, project_id)
            existing = await tx.scalars(
                select(JoinRequest.id).where(JoinRequest.pending_key == pending_key)
            )
            if existing:
                raise DuplicateRequest()

            return tx.add(
                JoinRequest(
                    id=uuid.uuid4(),
                    user_id=user_id,
                    project_id=project_id,
                    status=JoinRequestStatus.PENDING,
                    pending_key=pending_key,
                )
            )

        try:
            join_request = await self.runner.run(body, operation="request_to_join")
        except IntegrityError as e:
            # A concurrent request for the same pair won the unique key
            logger.info(f"Duplicate join request from {user_id} for project {project_id}")
            raise DuplicateRequest() from e

        logger.info(f"User {user_id} requested to join project {project_id}")
        publish_instance(self.feed, "join_requests", join_request, ChangeOperation.ADDED)
        return join_request

    async def withdraw_request(self, user_id: str, project_id: UUID) -> int:
        """
        Delete the caller's pending request(s) for a project.

        Returns:
            Number of requests removed

        Raises:
            NoPendingRequest: Nothing pending for this pair
        """

        async def body(tx: Transaction) -> List[JoinRequest]:
            pending = await tx.scalars(
                select(JoinRequest).where(
                    JoinRequest.user_id == user_id,
                    JoinRequest.project_id == project_id,
                    JoinRequest.status == JoinRequestStatus.PENDING,
                )
            )
            if not pending:
                raise NoPendingRequest()

            for join_request in pending:
                await tx.delete(join_request)
            return pending

        removed = await self.runner.run(body, operation="withdraw_request")
        logger.info(f"User {user_id} withdrew {len(removed)} join request(s) for {project_id}")
        for join_request in removed:
            publish_instance(self.feed, "join_requests", join_request, ChangeOperation.REMOVED)
        return len(removed)

    async def approve(self, admin_id: str, request_id: UUID) -> JoinRequest:
        """
        Approve a pending request and add the user to the project in the
        same transaction. Department scope is waived; size and
        single-project rules still apply.

        Raises:
            Forbidden: Caller is not an admin
            JoinRequestNotFound: Unknown request
            AlreadyProcessed: Request already decided
            AlreadyInProject: User belongs to another project
            ProjectFull: Project reached its member limit
        """

        async def body(tx: Transaction) -> Tuple[JoinRequest, Project, User, bool]:
            await self._require_admin(tx, admin_id)
            join_request = await self._read_pending(tx, request_id)
            project = await tx.get(Project, join_request.project_id)
            if project is None:
                raise ProjectNotFound(f"Project {join_request.project_id} not found")
            user = await tx.get(User, join_request.user_id)
            if user is None:
                raise UserNotFound(f"User {join_request.user_id} not found")

            members = list(project.members or [])
            joining = user.id not in members
            if joining:
                if user.project_id is not None and user.project_id != project.id:
                    raise AlreadyInProject()
                if len(members) >= self.project_max_members:
                    raise ProjectFull(
                        f"Project '{project.name}' already has {self.project_max_members} members"
                    )

            tx.update(
                join_request,
                status=JoinRequestStatus.APPROVED,
                pending_key=None,
                decided_by=admin_id,
                decided_at=datetime.utcnow(),
            )
            if joining:
                tx.update(project, members=members + [user.id])
                tx.update(user, project_id=project.id)
            return join_request, project, user, joining

        join_request, project, user, joined = await self.runner.run(
            body, operation="approve_join_request"
        )
        logger.info(f"Admin {admin_id} approved join request {request_id}")
        publish_instance(self.feed, "join_requests", join_request)
        if joined:
            publish_instance(self.feed, "projects", project)
            publish_instance(self.feed, "users", user)
        return join_request

    async def reject(self, admin_id: str, request_id: UUID) -> JoinRequest:
        """Reject a pending request"""

        async def body(tx: Transaction) -> JoinRequest:
            await self._require_admin(tx, admin_id)
            join_request = await self._read_pending(tx, request_id)
            return tx.update(
                join_request,
                status=JoinRequestStatus.REJECTED,
                pending_key=None,
                decided_by=admin_id,
                decided_at=datetime.utcnow(),
            )

        join_request = await self.runner.run(body, operation="reject_join_request")
        logger.info(f"Admin {admin_id} rejected join request {request_id}")
        publish_instance(self.feed, "join_requests", join_request)
        return join_request

    async def list_requests(
        self,
        project_id: Optional[UUID] = None,
        status: Optional[JoinRequestStatus] = JoinRequestStatus.PENDING,
        user_id: Optional[str] = None,
    ) -> List[JoinRequest]:
        """Join requests, oldest first"""
        query = select(JoinRequest)
        if project_id is not None:
            query = query.where(JoinRequest.project_id == project_id)
        if status is not None:
            query = query.where(JoinRequest.status == status)
        if user_id is not None:
            query = query.where(JoinRequest.user_id == user_id)
        query = query.order_by(JoinRequest.created_at.asc(), JoinRequest.id.asc())

        async with self.runner.session_factory() as session:
            return list((await session.execute(query)).scalars().all())
