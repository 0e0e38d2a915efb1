"""Leaderboard and per-user scoring summaries"""

import logging
from typing import List, Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from clubportal.exceptions import UserNotFound
from clubportal.models import ADMIN_ROLES, Contribution, ContributionStatus, User
from clubportal.schemas.leaderboard import LeaderboardEntry, UserSummary

logger = logging.getLogger(__name__)


class ScoringService:
    """
    Read-only views over ``User.total_points``.

    Admins and superadmins are never ranked. Ties are broken by sign-up
    order (``created_at``, then ``id``), so ranks are stable.
    """

    DEFAULT_LIMIT = 100

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @staticmethod
    def _ranked_query():
        return (
            select(User)
            .where(User.role.not_in(ADMIN_ROLES))
            .order_by(User.total_points.desc(), User.created_at.asc(), User.id.asc())
        )

    async def get_leaderboard(self, limit: Optional[int] = DEFAULT_LIMIT) -> List[LeaderboardEntry]:
        """
        Rank participants by points.

        Args:
            limit: Maximum number of entries, None for everyone

        Returns:
            Entries with 1-based ``rank``
        """
        query = self._ranked_query()
        if limit is not None:
            query = query.limit(limit)

        async with self.session_factory() as session:
            users = (await session.execute(query)).scalars().all()

        return [
            LeaderboardEntry(
                rank=position,
                user_id=user.id,
                name=user.name,
                total_points=user.total_points,
                departments=list(user.departments or []),
            )
            for position, user in enumerate(users, start=1)
        ]

    async def get_rank(self, session, user: User) -> Optional[int]:
        """1-based leaderboard position of ``user``, None for admins"""
        if user.role in ADMIN_ROLES:
            return None

        ahead = select(func.count(User.id)).where(
            User.role.not_in(ADMIN_ROLES),
            or_(
                User.total_points > user.total_points,
                and_(User.total_points == user.total_points, User.created_at < user.created_at),
                and_(
                    User.total_points == user.total_points,
                    User.created_at == user.created_at,
                    User.id < user.id,
                ),
            ),
        )
        return (await session.execute(ahead)).scalar_one() + 1

    async def get_user_summary(self, user_id: str) -> UserSummary:
        """
        Contribution counts, points and rank for one user.

        Raises:
            UserNotFound: Unknown user
        """
        async with self.session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFound(f"User {user_id} not found")

            rows = (
                await session.execute(
                    select(
                        Contribution.status,
                        func.count(Contribution.id),
                        func.coalesce(func.sum(Contribution.points_awarded), 0),
                    )
                    .where(Contribution.user_id == user_id)
                    .group_by(Contribution.status)
                )
            ).all()
            rank = await self.get_rank(session, user)

        counts = {status: 0 for status in ContributionStatus}
        verified_points = 0
        for status, count, points in rows:
            status = ContributionStatus(status)
            counts[status] = count
            if status == ContributionStatus.VERIFIED:
                verified_points = int(points)

        return UserSummary(
            user_id=user.id,
            name=user.name,
            total_points=user.total_points,
            contribution_count=sum(counts.values()),
            pending_count=counts[ContributionStatus.PENDING],
            verified_count=counts[ContributionStatus.VERIFIED],
            rejected_count=counts[ContributionStatus.REJECTED],
            verified_points=verified_points,
            rank=rank,
        )
