from __future__ import annotations

import io

from pypdf import PdfReader

from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.types import ExtractedText, UploadedFile
from persona_chat.utils.thread_pool import run_sync


def _extract_pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = [(page.extract_text() or "") for page in reader.pages]
    return "\n\n".join(pages)


def looks_binary(text: str, min_chars: int = 100, max_ratio: float = 0.5) -> bool:
    """
    Heuristic for undecodable uploads: long text that is mostly non-ASCII is
    treated as garbage rather than indexed.
    """
    if len(text) <= min_chars:
        return False
    non_ascii = sum(1 for ch in text if ord(ch) > 0x7F)
    return non_ascii / len(text) > max_ratio


class DocumentLoader:
    """
    Turns an uploaded file into plain text.

    - `.pdf` files: page text extracted with pypdf, pages joined by a blank line
    - everything else: bytes decoded as UTF-8
    - probable binary content is dropped
    - never raises: a failure becomes empty text with the error recorded
    """

    def __init__(self, binary_check_min_chars: int = 100, max_non_ascii_ratio: float = 0.5):
        self.binary_check_min_chars = binary_check_min_chars
        self.max_non_ascii_ratio = max_non_ascii_ratio

    async def load(self, file: UploadedFile) -> ExtractedText:
        try:
            if file.name.lower().endswith(".pdf"):
                content = await run_sync(_extract_pdf_text, file.content)
            else:
                content = file.content.decode("utf-8", errors="replace")

            if looks_binary(
                content, self.binary_check_min_chars, self.max_non_ascii_ratio
            ):
                log.warning(
                    "Skipping file due to probable binary content | file=%s", file.name
                )
                content = ""

            return ExtractedText(name=file.name, text=content.strip())

        except Exception as e:
            log.warning("Error reading file | file=%s | error=%s", file.name, str(e))
            return ExtractedText(name=file.name, text="", error=str(e))
