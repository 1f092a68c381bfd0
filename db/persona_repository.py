from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from persona_chat.exception.custom_exception import UpstreamError
from persona_chat.logger import GLOBAL_LOGGER as log

from .models import Nft


class PersonaRecordRepository:
    """
    Read side of the `nfts` table: token id -> locator of the pinned
    metadata document.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_metadata_uri(self, token_id: str) -> Optional[str]:
        try:
            async with self.session_factory() as db:
                out = await db.execute(select(Nft).where(Nft.token_id == str(token_id)))
                nft = out.scalar_one_or_none()
        except Exception as e:
            log.error("Persona record lookup failed | token_id=%s | error=%s", token_id, str(e))
            raise UpstreamError("Failed to load persona record", e) from e

        if nft is None:
            log.info("Persona record not found | token_id=%s", token_id)
            return None

        # older mints only recorded the pin cid
        locator = nft.metadata_uri or nft.pinata_cid
        log.debug("Persona record loaded | token_id=%s | has_locator=%s", token_id, bool(locator))
        return locator
