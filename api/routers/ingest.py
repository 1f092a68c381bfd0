from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from api.dependencies import get_manager
from persona_chat.exception.custom_exception import InvalidInputError, PersonaChatException
from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.types import UploadedFile

router = APIRouter()


async def _read_upload(uf: UploadFile) -> UploadedFile:
    return UploadedFile(
        name=uf.filename or "file",
        content=await uf.read(),
        mime_type=uf.content_type or "application/octet-stream",
    )


@router.post("/ingest")
async def ingest(
    files: list[UploadFile] = File(...),
    tokenId: str = Form(...),
    manager=Depends(get_manager),
):
    """
    Upload endpoint:
      - fingerprints the files and skips what this persona already has
      - extracts, chunks and embeds the rest
      - stores chunks + fingerprints in one transaction
    """
    if not files:
        raise InvalidInputError("No files uploaded")

    key = manager.persona_key(tokenId)
    uploads = [await _read_upload(f) for f in files]

    log.info("Ingest request received | persona_key=%s | files=%d", key, len(uploads))

    try:
        result = await manager.ingestion.ingest(uploads, key)
    except PersonaChatException:
        raise
    except Exception as e:
        log.error("Ingestion failed | persona_key=%s | error=%s", key, str(e))
        return JSONResponse(
            status_code=500,
            content={"code": "INGESTION_FAILED", "message": "Failed to process files"},
        )

    return {
        "success": result.new_files_processed > 0 or not result.errors,
        "insertedCount": result.inserted_count,
        "newFilesProcessed": result.new_files_processed,
        "skippedFiles": result.skipped_files,
        "errors": result.errors,
        "message": result.message,
    }
