from __future__ import annotations

import json
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from persona_chat.exception.custom_exception import (
    ContentFetchError,
    TokenNotFoundError,
)
from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.types import PersonaAttributes, PersonaKey


class CacheStore(Protocol):
    async def get(self, persona_key: str) -> Optional[str]: ...

    async def set(self, persona_key: str, value: str) -> None: ...

    async def delete(self, persona_key: str) -> None: ...


class PersonaRecordStore(Protocol):
    async def get_metadata_uri(self, token_id: str) -> Optional[str]: ...


class ContentFetcher(Protocol):
    async def fetch_json(self, locator: str) -> Any: ...


def extract_personal_data(document: Any) -> Optional[dict]:
    """
    The mint flow writes `personalData` either at the top level of the
    metadata document or nested under `properties`.
    """
    if not isinstance(document, dict):
        raise ContentFetchError("Persona metadata document is not a JSON object")

    data = document.get("personalData")
    if data is None and isinstance(document.get("properties"), dict):
        data = document["properties"].get("personalData")
    return data


class PersonaMetadataCache:
    """
    Cache-aside lookup of persona attributes.

    Redis -> (miss) -> `nfts` record -> pinned metadata over the gateway ->
    write back to Redis. Pinned metadata never changes, so entries live until
    `invalidate` is called.
    """

    def __init__(
        self,
        cache_store: CacheStore,
        record_store: PersonaRecordStore,
        fetcher: ContentFetcher,
    ):
        self.cache_store = cache_store
        self.record_store = record_store
        self.fetcher = fetcher

    async def _read_cache(self, persona_key: str) -> Optional[PersonaAttributes]:
        try:
            raw = await self.cache_store.get(persona_key)
        except Exception as e:
            log.warning("Persona cache read failed, treating as miss | persona_key=%s | error=%s", persona_key, str(e))
            return None

        if not raw:
            return None

        try:
            return PersonaAttributes.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            log.warning("Corrupt persona cache entry ignored | persona_key=%s | error=%s", persona_key, str(e))
            return None

    async def _write_cache(self, persona_key: str, attributes: PersonaAttributes) -> None:
        try:
            await self.cache_store.set(persona_key, attributes.model_dump_json())
        except Exception as e:
            log.warning("Persona cache write-back failed | persona_key=%s | error=%s", persona_key, str(e))

    async def get_persona_attributes(self, persona_key) -> PersonaAttributes:
        key = PersonaKey.parse(persona_key)
        cache_key = str(key)

        cached = await self._read_cache(cache_key)
        if cached is not None:
            return cached

        locator = await self.record_store.get_metadata_uri(key.token_id)
        if not locator:
            raise TokenNotFoundError(f"Token not found | token_id={key.token_id}")

        document = await self.fetcher.fetch_json(locator)
        personal_data = extract_personal_data(document)

        if personal_data is None:
            log.warning("Persona metadata has no personalData | persona_key=%s", cache_key)
            attributes = PersonaAttributes()
        else:
            try:
                attributes = PersonaAttributes.model_validate(personal_data)
            except ValidationError as e:
                raise ContentFetchError("Persona metadata has an invalid shape", e) from e

        await self._write_cache(cache_key, attributes)
        log.info("Persona metadata resolved from pinned document | persona_key=%s", cache_key)
        return attributes

    async def invalidate(self, persona_key) -> None:
        key = str(PersonaKey.parse(persona_key))
        await self.cache_store.delete(key)
        log.info("Persona metadata invalidated | persona_key=%s", key)
