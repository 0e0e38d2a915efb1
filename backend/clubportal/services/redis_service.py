"""Redis service for token revocation and login throttling"""

import redis.asyncio as redis
from typing import Optional

from clubportal.config import settings

KEY_PREFIX = "clubportal"
LOGIN_ATTEMPT_WINDOW_SECONDS = 900  # 15 minutes


class RedisService:
    """Service for Redis operations including token blacklisting"""

    _client: Optional[redis.Redis] = None

    @classmethod
    async def get_client(cls) -> redis.Redis:
        """Get or create Redis client"""
        if cls._client is None:
            cls._client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        return cls._client

    @classmethod
    async def close(cls):
        """Close Redis connection"""
        if cls._client:
            await cls._client.aclose()
            cls._client = None

    @staticmethod
    def _blacklist_key(token: str) -> str:
        return f"{KEY_PREFIX}:blacklist:{token}"

    @staticmethod
    def _attempts_key(ip_address: str) -> str:
        return f"{KEY_PREFIX}:login_attempts:{ip_address}"

    async def ping(self) -> bool:
        client = await self.get_client()
        return await client.ping()

    async def blacklist_token(self, token: str, expiration_seconds: int):
        """
        Revoke a token until it would have expired anyway

        Args:
            token: JWT token to blacklist
            expiration_seconds: Remaining lifetime of the token
        """
        client = await self.get_client()
        await client.setex(self._blacklist_key(token), max(1, expiration_seconds), "1")

    async def is_token_blacklisted(self, token: str) -> bool:
        client = await self.get_client()
        return await client.get(self._blacklist_key(token)) is not None

    async def increment_login_attempts(self, ip_address: str) -> int:
        """
        Count a failed password login for an IP address

        Returns:
            Failed attempts within the current window
        """
        client = await self.get_client()
        key = self._attempts_key(ip_address)
        count = await client.incr(key)

        # Window starts at the first failure
        if count == 1:
            await client.expire(key, LOGIN_ATTEMPT_WINDOW_SECONDS)

        return count

    async def reset_login_attempts(self, ip_address: str):
        client = await self.get_client()
        await client.delete(self._attempts_key(ip_address))

    async def get_login_attempts(self, ip_address: str) -> int:
        client = await self.get_client()
        result = await client.get(self._attempts_key(ip_address))
        return int(result) if result else 0
