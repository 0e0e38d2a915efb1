"""Tests for contribution, leaderboard, user and upload API endpoints"""

import base64
from io import BytesIO

import pytest
from httpx import AsyncClient
from fastapi import status
from PIL import Image

from clubportal.config import settings
from clubportal.models import User

from conftest import BUCKET_URL, bearer


def png_data_url() -> str:
    buffer = BytesIO()
    Image.new("RGB", (32, 32), color=(20, 120, 200)).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.mark.asyncio
class TestContributionEndpoints:
    """Test /api/v1/contributions"""

    async def submit(self, client: AsyncClient, user: User, **body) -> dict:
        body.setdefault("text", "Fixed the club website header")
        response = await client.post("/api/v1/contributions", json=body, headers=bearer(user))
        assert response.status_code == status.HTTP_201_CREATED
        return response.json()

    async def test_submit_with_image(self, async_client: AsyncClient, member: User, storage):
        """Test submissions store the compressed image"""
        data = await self.submit(
            async_client, member, image={"filename": "proof.png", "dataUrl": png_data_url()}
        )

        assert data["status"] == "pending"
        assert data["points_awarded"] == 0
        assert data["image_url"].startswith(f"{BUCKET_URL}/")
        assert len(storage.objects) == 1

    async def test_submit_blank_text(self, async_client: AsyncClient, member: User):
        """Test blank descriptions are refused"""
        response = await async_client.post(
            "/api/v1/contributions", json={"text": "   "}, headers=bearer(member)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["type"].endswith("/validation_error")

    async def test_submit_storage_down(self, async_client: AsyncClient, member: User, storage):
        """Test storage failures surface as 502"""
        storage.fail_uploads = True

        response = await async_client.post(
            "/api/v1/contributions",
            json={"text": "Poster", "image": {"filename": "p.png", "dataUrl": png_data_url()}},
            headers=bearer(member),
        )

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["type"].endswith("/storage_error")

    async def test_approve_awards_points(self, async_client: AsyncClient, member: User, admin: User):
        """Test approval is reflected in the member summary"""
        contribution = await self.submit(async_client, member)

        response = await async_client.post(
            f"/api/v1/contributions/{contribution['id']}/approve",
            json={"points": 7},
            headers=bearer(admin),
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "verified"
        assert response.json()["verified_by"] == admin.id

        summary = (await async_client.get(f"/api/v1/users/{member.id}/summary", headers=bearer(member))).json()
        assert summary["total_points"] == 17
        assert summary["verified_count"] == 1
        assert summary["verified_points"] == 7

    async def test_approve_twice(self, async_client: AsyncClient, member: User, admin: User):
        """Test a decided contribution cannot be approved again"""
        contribution = await self.submit(async_client, member)
        url = f"/api/v1/contributions/{contribution['id']}/approve"
        await async_client.post(url, json={"points": 3}, headers=bearer(admin))

        response = await async_client.post(url, json={"points": 3}, headers=bearer(admin))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["type"].endswith("/already_processed")

    async def test_member_cannot_approve(self, async_client: AsyncClient, member: User):
        """Test approval is admin only"""
        contribution = await self.submit(async_client, member)

        response = await async_client.post(
            f"/api/v1/contributions/{contribution['id']}/approve",
            json={"points": 100},
            headers=bearer(member),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["type"] == "https://clubportal.dev/errors/forbidden"

    async def test_negative_points(self, async_client: AsyncClient, member: User, admin: User):
        """Test negative awards fail validation"""
        contribution = await self.submit(async_client, member)

        response = await async_client.post(
            f"/api/v1/contributions/{contribution['id']}/approve",
            json={"points": -5},
            headers=bearer(admin),
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["errors"][0]["field"] == "points"

    async def test_reject(self, async_client: AsyncClient, member: User, admin: User):
        """Test rejection leaves points unchanged"""
        contribution = await self.submit(async_client, member)

        response = await async_client.post(
            f"/api/v1/contributions/{contribution['id']}/reject", headers=bearer(admin)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "rejected"
        me = (await async_client.get("/api/v1/auth/me", headers=bearer(member))).json()
        assert me["total_points"] == 10

    async def test_list_with_counts(self, async_client: AsyncClient, member: User, admin: User):
        """Test members see their own contributions with counts"""
        first = await self.submit(async_client, member, text="First")
        await self.submit(async_client, member, text="Second")
        await async_client.post(
            f"/api/v1/contributions/{first['id']}/reject", headers=bearer(admin)
        )

        data = (await async_client.get("/api/v1/contributions", headers=bearer(member))).json()

        assert data["counts"] == {"pending": 1, "verified": 0, "rejected": 1, "total": 2}
        pending = (await async_client.get("/api/v1/contributions/pending", headers=bearer(admin))).json()
        assert [c["text"] for c in pending] == ["Second"]


@pytest.mark.asyncio
class TestUserEndpoints:
    """Test leaderboard, summaries and roles"""

    async def test_leaderboard_excludes_admins(self, async_client: AsyncClient, member: User, other_member: User, admin: User):
        """Test only participants are ranked"""
        response = await async_client.get("/api/v1/leaderboard", headers=bearer(member))

        assert response.status_code == status.HTTP_200_OK
        entries = response.json()["entries"]
        assert [e["user_id"] for e in entries] == [member.id, other_member.id]
        assert entries[0]["rank"] == 1

    async def test_summary_of_someone_else(self, async_client: AsyncClient, member: User, other_member: User):
        """Test members cannot read other summaries"""
        response = await async_client.get(
            f"/api/v1/users/{other_member.id}/summary", headers=bearer(member)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    async def test_list_users_admin_only(self, async_client: AsyncClient, member: User, admin: User):
        """Test the user directory"""
        assert (await async_client.get("/api/v1/users", headers=bearer(member))).status_code == 403

        response = await async_client.get("/api/v1/users", headers=bearer(admin))
        assert response.status_code == status.HTTP_200_OK
        assert {u["id"] for u in response.json()} == {member.id, admin.id}

    async def test_promote(self, async_client: AsyncClient, member: User, superadmin: User):
        """Test superadmins can change roles"""
        response = await async_client.patch(
            f"/api/v1/users/{member.id}/role", json={"role": "admin"}, headers=bearer(superadmin)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["role"] == "admin"


@pytest.mark.asyncio
class TestUploadEndpoint:
    """Test /api/v1/uploads"""

    async def test_upload(self, async_client: AsyncClient, member: User, storage):
        """Test a data URL is stored under the user's prefix"""
        response = await async_client.post(
            "/api/v1/uploads",
            json={"filename": "poster final.png", "dataUrl": png_data_url()},
            headers=bearer(member),
        )

        assert response.status_code == status.HTTP_200_OK
        url = response.json()["url"]
        assert url.startswith(f"{BUCKET_URL}/uploads/member-1/")
        assert url.endswith("_poster_final.png")
        (key,) = storage.objects
        assert storage.objects[key][1] == "image/png"

    async def test_too_large(self, async_client: AsyncClient, member: User, monkeypatch):
        """Test oversized payloads get 413 with an error body"""
        monkeypatch.setattr(settings, "upload_max_bytes", 10)

        response = await async_client.post(
            "/api/v1/uploads",
            json={"filename": "X", "dataUrl": png_data_url()},
            headers=bearer(member),
        )

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert response.json() == {"error": "File X is too large"}

    async def test_missing_fields(self, async_client: AsyncClient, member: User):
        """Test malformed bodies get 400"""
        response = await async_client.post(
            "/api/v1/uploads", json={"filename": "a.png"}, headers=bearer(member)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "error" in response.json()

    async def test_storage_failure(self, async_client: AsyncClient, member: User, storage):
        """Test storage failures get 500 with an error body"""
        storage.fail_uploads = True

        response = await async_client.post(
            "/api/v1/uploads",
            json={"filename": "a.png", "dataUrl": png_data_url()},
            headers=bearer(member),
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "ServiceUnavailable" in response.json()["error"]

    async def test_requires_auth(self, async_client: AsyncClient):
        """Test uploads need a bearer token"""
        response = await async_client.post(
            "/api/v1/uploads", json={"filename": "a.png", "dataUrl": png_data_url()}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
