import os
from typing import Optional

import redis.asyncio as redis

from persona_chat.logger import GLOBAL_LOGGER as log

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))


def build_redis_client() -> redis.Redis:
    return redis.Redis(
        host=REDIS_HOST,
        port=REDIS_PORT,
        db=REDIS_DB,
        decode_responses=True,
        socket_timeout=2.0,
        socket_connect_timeout=2.0,
    )


def _metadata_key(persona_key: str) -> str:
    """
    example : persona:meta:persona:42
    The value is the JSON-serialized persona attributes.
    """
    return f"persona:meta:{persona_key}"


class PersonaMetadataCacheStore:
    """
    Key-value store for persona attributes.

    Entries have no TTL: persona metadata is pinned and immutable, the only
    way out is an explicit `delete`.
    Errors propagate; the caller decides whether a failure is fatal.
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self.client = client or build_redis_client()

    async def get(self, persona_key: str) -> Optional[str]:
        value = await self.client.get(_metadata_key(persona_key))
        if value:
            log.debug("Persona metadata cache HIT | persona_key=%s", persona_key)
        else:
            log.debug("Persona metadata cache MISS | persona_key=%s", persona_key)
        return value

    async def set(self, persona_key: str, value: str) -> None:
        await self.client.set(_metadata_key(persona_key), value)
        log.debug("Cached persona metadata | persona_key=%s", persona_key)

    async def delete(self, persona_key: str) -> None:
        await self.client.delete(_metadata_key(persona_key))
        log.info("Persona metadata cache entry removed | persona_key=%s", persona_key)

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except Exception as e:
            log.warning("Redis ping failed | error=%s", str(e))
            return False

    async def aclose(self) -> None:
        await self.client.aclose()
