"""Departments, projects and users: administration and read views"""

import logging
import uuid
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select

from clubportal.exceptions import (
    DepartmentNotFound,
    Forbidden,
    ProjectNotFound,
    UserNotFound,
    ValidationFailed,
)
from clubportal.models import Department, Project, User, UserRole
from clubportal.services.change_feed import ChangeFeed, ChangeOperation, change_feed
from clubportal.services.snapshots import publish_instance
from clubportal.services.transaction import Transaction, TransactionRunner

logger = logging.getLogger(__name__)


class DirectoryService:
    """
    Single-document administration that never touches membership
    counters, plus the read views the portal pages need.
    """

    def __init__(self, runner: TransactionRunner, feed: ChangeFeed = change_feed):
        self.runner = runner
        self.feed = feed

    @staticmethod
    async def _require_role(tx: Transaction, actor_id: str, *roles: str) -> User:
        actor = await tx.get(User, actor_id)
        if actor is None or actor.role not in roles:
            raise Forbidden(f"Requires role: {' or '.join(roles)}")
        return actor

    # Departments

    async def list_departments(self) -> List[Department]:
        async with self.runner.session_factory() as session:
            result = await session.execute(select(Department).order_by(Department.name.asc()))
            return list(result.scalars().all())

    async def upsert_department(
        self, actor_id: str, department_id: str, name: str, capacity: int
    ) -> Department:
        """
        Create a department or update its name and capacity.

        ``filled_count`` is never written here.

        Raises:
            Forbidden: Caller is not a superadmin
            ValidationFailed: Capacity below the seats already held
        """
        if capacity < 0:
            raise ValidationFailed("Capacity must be zero (unlimited) or positive")

        async def body(tx: Transaction) -> Tuple[Department, bool]:
            await self._require_role(tx, actor_id, UserRole.SUPERADMIN.value)
            department = await tx.get(Department, department_id)

            if department is None:
                return tx.add(
                    Department(id=department_id, name=name, capacity=capacity, filled_count=0)
                ), True

            if capacity > 0 and capacity < department.filled_count:
                raise ValidationFailed(
                    f"Capacity {capacity} is below the {department.filled_count} seats already held"
                )
            return tx.update(department, name=name, capacity=capacity), False

        department, created = await self.runner.run(body, operation="upsert_department")
        logger.info(
            f"{'Created' if created else 'Updated'} department {department_id} "
            f"(capacity {capacity})"
        )
        publish_instance(
            self.feed,
            "departments",
            department,
            ChangeOperation.ADDED if created else ChangeOperation.MODIFIED,
        )
        return department

    # Projects

    async def list_projects(self, department_id: Optional[str] = None) -> List[Project]:
        query = select(Project)
        if department_id is not None:
            query = query.where(Project.department_id == department_id)
        query = query.order_by(Project.created_at.asc(), Project.id.asc())
        async with self.runner.session_factory() as session:
            return list((await session.execute(query)).scalars().all())

    async def get_project(self, project_id: UUID) -> Tuple[Project, List[User]]:
        """
        Project with its member profiles in ``members`` order.

        Raises:
            ProjectNotFound: Unknown project
        """
        async with self.runner.session_factory() as session:
            project = await session.get(Project, project_id)
            if project is None:
                raise ProjectNotFound(f"Project {project_id} not found")

            member_ids = list(project.members or [])
            users = {}
            if member_ids:
                result = await session.execute(select(User).where(User.id.in_(member_ids)))
                users = {user.id: user for user in result.scalars().all()}

        return project, [users[member_id] for member_id in member_ids if member_id in users]

    async def create_project(
        self,
        actor_id: str,
        name: str,
        description: Optional[str] = None,
        department_id: Optional[str] = None,
    ) -> Project:
        """
        Raises:
            Forbidden: Caller is not an admin
            DepartmentNotFound: Unknown department
        """

        async def body(tx: Transaction) -> Project:
            await self._require_role(tx, actor_id, UserRole.ADMIN.value, UserRole.SUPERADMIN.value)
            if department_id is not None and await tx.get(Department, department_id) is None:
                raise DepartmentNotFound(f"Department {department_id} not found")

            return tx.add(
                Project(
                    id=uuid.uuid4(),
                    name=name,
                    description=description,
                    department_id=department_id,
                    members=[],
                )
            )

        project = await self.runner.run(body, operation="create_project")
        logger.info(f"Admin {actor_id} created project {project.id} ({name})")
        publish_instance(self.feed, "projects", project, ChangeOperation.ADDED)
        return project

    # Users

    async def list_users(self, role: Optional[str] = None) -> List[User]:
        query = select(User)
        if role is not None:
            query = query.where(User.role == role)
        query = query.order_by(User.created_at.asc(), User.id.asc())
        async with self.runner.session_factory() as session:
            return list((await session.execute(query)).scalars().all())

    async def set_role(self, actor_id: str, target_user_id: str, role: str) -> User:
        """
        Change a user's role.

        Raises:
            Forbidden: Caller is not a superadmin, or tries to demote themselves
            ValidationFailed: Unknown role
            UserNotFound: Unknown target user
        """
        valid_roles = [r.value for r in UserRole]
        if role not in valid_roles:
            raise ValidationFailed(f"Role must be one of: {', '.join(valid_roles)}")
        if actor_id == target_user_id and role != UserRole.SUPERADMIN.value:
            raise Forbidden("Superadmins cannot demote themselves")

        async def body(tx: Transaction) -> User:
            await self._require_role(tx, actor_id, UserRole.SUPERADMIN.value)
            user = await tx.get(User, target_user_id)
            if user is None:
                raise UserNotFound(f"User {target_user_id} not found")
            return tx.update(user, role=role)

        user = await self.runner.run(body, operation="set_role")
        logger.info(f"Superadmin {actor_id} set role of {target_user_id} to {role}")
        publish_instance(self.feed, "users", user)
        return user
