from fastapi import APIRouter, Depends

from api.dependencies import get_manager
from persona_chat.logger import GLOBAL_LOGGER as log

router = APIRouter(prefix="/personas")


@router.delete("/{token_id}/cache")
async def invalidate_persona_cache(token_id: str, manager=Depends(get_manager)):
    """Drop the cached metadata so the next chat re-reads the pinned document."""
    key = manager.persona_key(token_id)
    await manager.metadata_cache.invalidate(key)
    return {"success": True, "personaKey": str(key)}


@router.delete("/{token_id}/vectors")
async def delete_persona_vectors(token_id: str, manager=Depends(get_manager)):
    key = manager.persona_key(token_id)
    deleted = await manager.ingestion.delete_persona(key)
    log.info("Persona vectors removed via API | persona_key=%s | rows=%d", key, deleted)
    return {"success": True, "personaKey": str(key), "deletedCount": deleted}
