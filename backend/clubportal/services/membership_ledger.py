"""Membership ledger: department seats and project teams"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from clubportal.config import settings
from clubportal.exceptions import (
    AlreadyInProject,
    DepartmentFull,
    DepartmentNotFound,
    Forbidden,
    ProjectFull,
    ProjectNotFound,
    ProjectRestricted,
    SelectionLocked,
    UserNotFound,
    WrongSelectionCount,
)
from clubportal.models import Department, Project, User
from clubportal.services.change_feed import ChangeFeed, change_feed
from clubportal.services.snapshots import publish_instance
from clubportal.services.transaction import Transaction, TransactionRunner

logger = logging.getLogger(__name__)


class MembershipLedger:
    """
    Owns every write to ``User.departments``, ``Department.filled_count``,
    ``User.project_id`` and ``Project.members``.

    Each operation is a single optimistic transaction that reads everything
    it needs, decides, and only then writes. Change events are published
    after commit.
    """

    def __init__(
        self,
        runner: TransactionRunner,
        feed: ChangeFeed = change_feed,
        selection_count: Optional[int] = None,
        admin_max_departments: Optional[int] = None,
        project_max_members: Optional[int] = None,
        enforce_department_scope: Optional[bool] = None,
    ):
        self.runner = runner
        self.feed = feed
        self.selection_count = selection_count or settings.department_selection_count
        self.admin_max_departments = admin_max_departments or settings.admin_max_departments
        self.project_max_members = project_max_members or settings.project_max_members
        self.enforce_department_scope = (
            settings.enforce_department_scope
            if enforce_department_scope is None
            else enforce_department_scope
        )

    # Shared primitives

    @staticmethod
    async def _read_user(tx: Transaction, user_id: str) -> User:
        user = await tx.get(User, user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return user

    @staticmethod
    async def _require_admin(tx: Transaction, admin_id: str) -> User:
        admin = await tx.get(User, admin_id)
        if admin is None or not admin.is_admin:
            raise Forbidden("Admin role required")
        return admin

    @staticmethod
    def _require_departments(departments: Dict[str, Department], wanted: Sequence[str]) -> None:
        missing = [dept_id for dept_id in wanted if dept_id not in departments]
        if missing:
            raise DepartmentNotFound(f"Unknown department(s): {', '.join(missing)}")

    @staticmethod
    def _transfer(
        tx: Transaction,
        user: User,
        departments: Dict[str, Department],
        target_ids: Sequence[str],
    ) -> List[Department]:
        """
        Move ``user`` from its current departments to ``target_ids``.

        Capacity is checked for every added department before anything is
        written; counters and the user's list are then updated together.
        Departments missing from ``departments`` are skipped on removal.

        Returns:
            Departments whose counters changed

        Raises:
            DepartmentFull: An added department has no free seat
        """
        current = list(user.departments or [])
        removed = [dept_id for dept_id in current if dept_id not in target_ids]
        added = [dept_id for dept_id in target_ids if dept_id not in current]

        for dept_id in added:
            department = departments[dept_id]
            if department.is_full:
                raise DepartmentFull(
                    f"Department '{department.name}' is full "
                    f"({department.filled_count}/{department.capacity})"
                )

        touched = []
        for dept_id in removed:
            department = departments.get(dept_id)
            if department is None:
                continue
            tx.update(department, filled_count=max(0, department.filled_count - 1))
            touched.append(department)

        for dept_id in added:
            department = departments[dept_id]
            tx.update(department, filled_count=department.filled_count + 1)
            touched.append(department)

        tx.update(user, departments=list(target_ids))
        return touched

    def _publish(self, user: User, departments: Sequence[Department] = ()) -> None:
        publish_instance(self.feed, "users", user)
        for department in departments:
            publish_instance(self.feed, "departments", department)

    # Departments

    async def select_departments(self, user_id: str, department_ids: Sequence[str]) -> User:
        """
        Self-service department selection, allowed once.

        Args:
            user_id: Selecting user
            department_ids: Exactly ``selection_count`` distinct department ids

        Returns:
            Updated user

        Raises:
            WrongSelectionCount: Wrong number of ids or duplicates
            SelectionLocked: User already holds departments
            DepartmentNotFound: Unknown department id
            DepartmentFull: Any selected department has no free seat
        """
        wanted = list(dict.fromkeys(department_ids))
        if len(wanted) != len(department_ids) or len(wanted) != self.selection_count:
            raise WrongSelectionCount(
                f"Select exactly {self.selection_count} different departments"
            )

        async def body(tx: Transaction) -> Tuple[User, List[Department]]:
            user = await self._read_user(tx, user_id)
            departments = await tx.get_many(Department, wanted)

            if user.departments:
                raise SelectionLocked()
            self._require_departments(departments, wanted)

            touched = self._transfer(tx, user, departments, wanted)
            return user, touched

        user, touched = await self.runner.run(body, operation="select_departments")
        logger.info(f"User {user_id} selected departments {wanted}")
        self._publish(user, touched)
        return user

    async def admin_reassign_departments(
        self,
        admin_id: str,
        target_user_id: str,
        department_ids: Sequence[str],
    ) -> User:
        """
        Replace a user's departments regardless of lock-in.

        Only newly added departments are capacity checked. Old departments
        that no longer exist are skipped.

        Raises:
            Forbidden: Caller is not an admin
            WrongSelectionCount: Duplicates or more than ``admin_max_departments``
            DepartmentNotFound: Unknown new department id
            DepartmentFull: A newly added department has no free seat
        """
        wanted = list(dict.fromkeys(department_ids))
        if len(wanted) != len(department_ids) or len(wanted) > self.admin_max_departments:
            raise WrongSelectionCount(
                f"Assign at most {self.admin_max_departments} different departments"
            )

        async def body(tx: Transaction) -> Tuple[User, List[Department]]:
            await self._require_admin(tx, admin_id)
            user = await self._read_user(tx, target_user_id)
            departments = await tx.get_many(
                Department, list(user.departments or []) + wanted
            )

            self._require_departments(departments, wanted)

            touched = self._transfer(tx, user, departments, wanted)
            return user, touched

        user, touched = await self.runner.run(body, operation="admin_reassign_departments")
        logger.info(f"Admin {admin_id} reassigned user {target_user_id} to departments {wanted}")
        self._publish(user, touched)
        return user

    async def reset_departments(self, admin_id: str, target_user_id: str) -> User:
        """Release every department a user holds so they can select again"""

        async def body(tx: Transaction) -> Tuple[User, List[Department]]:
            await self._require_admin(tx, admin_id)
            user = await self._read_user(tx, target_user_id)
            departments = await tx.get_many(Department, list(user.departments or []))

            touched = self._transfer(tx, user, departments, [])
            return user, touched

        user, touched = await self.runner.run(body, operation="reset_departments")
        logger.info(f"Admin {admin_id} reset departments of user {target_user_id}")
        self._publish(user, touched)
        return user

    # Projects

    async def join_project(self, user_id: str, project_id: UUID) -> Project:
        """
        Add a user to a project team.

        Joining a project the user already belongs to is a no-op.

        Raises:
            ProjectNotFound: Unknown project
            AlreadyInProject: User belongs to another project
            ProjectRestricted: Project department is not one of the user's
            ProjectFull: Project reached ``project_max_members``
        """

        async def body(tx: Transaction) -> Tuple[Project, User, bool]:
            project = await tx.get(Project, project_id)
            if project is None:
                raise ProjectNotFound(f"Project {project_id} not found")
            user = await self._read_user(tx, user_id)

            members = list(project.members or [])
            if user_id in members:
                return project, user, False
            if user.project_id is not None and user.project_id != project.id:
                raise AlreadyInProject()
            if (
                self.enforce_department_scope
                and project.department_id
                and project.department_id not in (user.departments or [])
            ):
                raise ProjectRestricted()
            if len(members) >= self.project_max_members:
                raise ProjectFull(
                    f"Project '{project.name}' already has {self.project_max_members} members"
                )

            tx.update(project, members=members + [user_id])
            tx.update(user, project_id=project.id)
            return project, user, True

        project, user, changed = await self.runner.run(body, operation="join_project")
        if changed:
            logger.info(f"User {user_id} joined project {project_id}")
            publish_instance(self.feed, "projects", project)
            self._publish(user)
        return project

    async def leave_project(self, user_id: str, project_id: UUID) -> Project:
        """Remove a user from a project team; a no-op if not a member"""

        async def body(tx: Transaction) -> Tuple[Project, User, bool]:
            project = await tx.get(Project, project_id)
            if project is None:
                raise ProjectNotFound(f"Project {project_id} not found")
            user = await self._read_user(tx, user_id)

            members = list(project.members or [])
            if user_id not in members and user.project_id != project.id:
                return project, user, False

            tx.update(project, members=[member for member in members if member != user_id])
            if user.project_id == project.id:
                tx.update(user, project_id=None)
            return project, user, True

        project, user, changed = await self.runner.run(body, operation="leave_project")
        if changed:
            logger.info(f"User {user_id} left project {project_id}")
            publish_instance(self.feed, "projects", project)
            self._publish(user)
        return project
