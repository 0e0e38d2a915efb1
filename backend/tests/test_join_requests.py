"""Tests for the join-request broker"""

import uuid

import pytest
import pytest_asyncio

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
)
from clubportal.models import JoinRequest, JoinRequestStatus, Project, User
from clubportal.services.change_feed import ChangeOperation
from clubportal.services.join_request_service import JoinRequestBroker
from clubportal.services.transaction import Transaction

from conftest import make_user, reload, save


@pytest.fixture
def broker(runner, feed) -> JoinRequestBroker:
    return JoinRequestBroker(runner, feed, project_max_members=4)


@pytest_asyncio.fixture
async def scoped_project(session_factory, departments) -> Project:
    """Design project the member cannot join directly"""
    project = Project(id=uuid.uuid4(), name="Brand kit", department_id="design", members=[])
    await save(session_factory, project)
    return project


@pytest.mark.asyncio
class TestRequestToJoin:
    """Test filing and withdrawing requests"""

    async def test_request_is_pending(self, broker, scoped_project, member):
        """Test a new request starts pending"""
        join_request = await broker.request_to_join(member.id, scoped_project.id)

        assert join_request.status == JoinRequestStatus.PENDING
        assert join_request.user_id == member.id

    async def test_duplicate_pending_request(self, broker, scoped_project, member):
        """Test a second pending request for the same project is refused"""
        await broker.request_to_join(member.id, scoped_project.id)

        with pytest.raises(DuplicateRequest):
            await broker.request_to_join(member.id, scoped_project.id)

        assert len(await broker.list_requests(project_id=scoped_project.id)) == 1

    async def test_can_request_again_after_rejection(self, broker, scoped_project, member, admin):
        """Test a decided request frees the pair for a new one"""
        first = await broker.request_to_join(member.id, scoped_project.id)
        await broker.reject(admin.id, first.id)

        second = await broker.request_to_join(member.id, scoped_project.id)

        assert second.id != first.id

    async def test_already_member(self, broker, session_factory, member):
        """Test members cannot request their own project"""
        project = Project(id=uuid.uuid4(), name="Robotics", members=[member.id])
        await save(session_factory, project)

        with pytest.raises(AlreadyMember):
            await broker.request_to_join(member.id, project.id)

    async def test_unknown_project(self, broker, member):
        """Test requesting a missing project"""
        with pytest.raises(ProjectNotFound):
            await broker.request_to_join(member.id, uuid.uuid4())

    async def test_withdraw(self, broker, feed, session_factory, scoped_project, member):
        """Test withdrawing deletes the pending request"""
        join_request = await broker.request_to_join(member.id, scoped_project.id)
        subscription = feed.subscribe(["join_requests"])

        assert await broker.withdraw_request(member.id, scoped_project.id) == 1

        assert await reload(session_factory, JoinRequest, join_request.id) is None
        event = await subscription.get()
        assert event.operation == ChangeOperation.REMOVED
        assert event.data is None
        subscription.cancel()

    async def test_withdraw_without_request(self, broker, scoped_project, member):
        """Test withdrawing with nothing pending"""
        with pytest.raises(NoPendingRequest):
            await broker.withdraw_request(member.id, scoped_project.id)


@pytest.mark.asyncio
class TestDecisions:
    """Test admin approval and rejection"""

    async def test_approve_adds_member_despite_scope(self, broker, session_factory, scoped_project, member, admin):
        """Test approval joins the user even outside their departments"""
        join_request = await broker.request_to_join(member.id, scoped_project.id)

        approved = await broker.approve(admin.id, join_request.id)

        assert approved.status == JoinRequestStatus.APPROVED
        assert approved.decided_by == admin.id
        assert (await reload(session_factory, Project, scoped_project.id)).members == [member.id]
        assert (await reload(session_factory, User, member.id)).project_id == scoped_project.id

    async def test_approve_twice(self, broker, scoped_project, member, admin):
        """Test decided requests cannot be decided again"""
        join_request = await broker.request_to_join(member.id, scoped_project.id)
        await broker.approve(admin.id, join_request.id)

        with pytest.raises(AlreadyProcessed):
            await broker.reject(admin.id, join_request.id)

    async def test_reject_during_approval_wins(
        self, broker, session_factory, scoped_project, member, admin, superadmin, monkeypatch
    ):
        """Test a rejection committed between approval's read and write stops the approval"""
        join_request = await broker.request_to_join(member.id, scoped_project.id)

        original_get = Transaction.get
        interleaved = []

        async def get_then_race(self, model, key):
            result = await original_get(self, model, key)
            if model is User and key == member.id and not interleaved:
                interleaved.append(True)
                # Another admin decides while this approval is still reading
                await broker.reject(superadmin.id, join_request.id)
            return result

        monkeypatch.setattr(Transaction, "get", get_then_race)

        with pytest.raises(AlreadyProcessed):
            await broker.approve(admin.id, join_request.id)

        stored = await reload(session_factory, JoinRequest, join_request.id)
        assert stored.status == JoinRequestStatus.REJECTED
        assert stored.decided_by == superadmin.id
        assert (await reload(session_factory, Project, scoped_project.id)).members == []
        assert (await reload(session_factory, User, member.id)).project_id is None

    async def test_approval_during_rejection_wins(
        self, broker, session_factory, scoped_project, member, admin, superadmin, monkeypatch
    ):
        """Test an approval committed between rejection's read and write stops the rejection"""
        join_request = await broker.request_to_join(member.id, scoped_project.id)

        original_get = Transaction.get
        interleaved = []

        async def get_then_race(self, model, key):
            result = await original_get(self, model, key)
            if model is JoinRequest and not interleaved:
                interleaved.append(True)
                await broker.approve(superadmin.id, join_request.id)
            return result

        monkeypatch.setattr(Transaction, "get", get_then_race)

        with pytest.raises(AlreadyProcessed):
            await broker.reject(admin.id, join_request.id)

        stored = await reload(session_factory, JoinRequest, join_request.id)
        assert stored.status == JoinRequestStatus.APPROVED
        assert stored.decided_by == superadmin.id
        assert (await reload(session_factory, Project, scoped_project.id)).members == [member.id]

    async def test_approve_full_project(self, broker, session_factory, scoped_project, member, admin):
        """Test approval still enforces the member limit"""
        join_request = await broker.request_to_join(member.id, scoped_project.id)
        others = [make_user(f"team-{n}") for n in range(4)]
        await save(session_factory, *others)
        async with session_factory() as session:
            project = await session.get(Project, scoped_project.id)
            project.members = [u.id for u in others]
            await session.commit()

        with pytest.raises(ProjectFull):
            await broker.approve(admin.id, join_request.id)

        stored = await reload(session_factory, JoinRequest, join_request.id)
        assert stored.status == JoinRequestStatus.PENDING

    async def test_approve_user_in_other_project(self, broker, session_factory, scoped_project, member, admin):
        """Test approval still enforces one project per user"""
        join_request = await broker.request_to_join(member.id, scoped_project.id)
        elsewhere = Project(id=uuid.uuid4(), name="Drone", members=[member.id])
        await save(session_factory, elsewhere)
        async with session_factory() as session:
            user = await session.get(User, member.id)
            user.project_id = elsewhere.id
            await session.commit()

        with pytest.raises(AlreadyInProject):
            await broker.approve(admin.id, join_request.id)

    async def test_members_cannot_decide(self, broker, scoped_project, member, other_member):
        """Test deciding requires an admin"""
        join_request = await broker.request_to_join(member.id, scoped_project.id)

        with pytest.raises(Forbidden):
            await broker.approve(other_member.id, join_request.id)

    async def test_unknown_request(self, broker, admin):
        """Test deciding a missing request"""
        with pytest.raises(JoinRequestNotFound):
            await broker.reject(admin.id, uuid.uuid4())

    async def test_list_filters(self, broker, scoped_project, member, other_member, admin):
        """Test listing by status, oldest first"""
        first = await broker.request_to_join(member.id, scoped_project.id)
        second = await broker.request_to_join(other_member.id, scoped_project.id)
        await broker.reject(admin.id, first.id)

        pending = await broker.list_requests(project_id=scoped_project.id)
        everything = await broker.list_requests(project_id=scoped_project.id, status=None)
        rejected = await broker.list_requests(status=JoinRequestStatus.REJECTED)

        assert [r.id for r in pending] == [second.id]
        assert [r.id for r in everything] == [first.id, second.id]
        assert [r.id for r in rejected] == [first.id]
