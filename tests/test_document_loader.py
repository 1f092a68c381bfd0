"""
Tests for document extraction and the binary-content filter
"""
import asyncio
from unittest.mock import Mock, patch

from persona_chat.src.document_ingestion.document_loader import DocumentLoader, looks_binary
from persona_chat.types import UploadedFile


class TestLooksBinary:
    def test_short_text_is_never_binary(self):
        assert looks_binary("é" * 100) is False

    def test_long_mostly_non_ascii_is_binary(self):
        assert looks_binary("é" * 101) is True

    def test_ratio_at_threshold_is_kept(self):
        # exactly half non-ASCII does not exceed 0.5
        assert looks_binary("a" * 100 + "é" * 100) is False

    def test_plain_prose_is_not_binary(self):
        assert looks_binary("The quick brown fox jumps over the lazy dog. " * 10) is False


class TestDocumentLoader:
    def setup_method(self):
        self.loader = DocumentLoader()

    def test_text_file_decoded_as_utf8(self):
        file = UploadedFile(name="notes.txt", content="  Olá, I like teal.  ".encode("utf-8"))

        result = asyncio.run(self.loader.load(file))

        assert result.text == "Olá, I like teal."
        assert result.error is None

    def test_binary_content_is_dropped(self):
        file = UploadedFile(name="image.txt", content=bytes(range(128, 256)) * 4)

        result = asyncio.run(self.loader.load(file))

        assert result.text == ""
        assert result.error is None

    def test_pdf_pages_joined_with_blank_line(self):
        pages = [Mock(), Mock()]
        pages[0].extract_text.return_value = "Page one"
        pages[1].extract_text.return_value = "Page two"
        reader = Mock(pages=pages)

        with patch(
            "persona_chat.src.document_ingestion.document_loader.PdfReader",
            return_value=reader,
        ):
            result = asyncio.run(
                self.loader.load(UploadedFile(name="Bio.PDF", content=b"%PDF-1.4"))
            )

        assert result.text == "Page one\n\nPage two"

    def test_pdf_page_without_text_counts_as_empty(self):
        page = Mock()
        page.extract_text.return_value = None

        with patch(
            "persona_chat.src.document_ingestion.document_loader.PdfReader",
            return_value=Mock(pages=[page]),
        ):
            result = asyncio.run(self.loader.load(UploadedFile(name="a.pdf", content=b"x")))

        assert result.text == ""
        assert result.error is None

    def test_extraction_failure_is_recorded_not_raised(self):
        with patch(
            "persona_chat.src.document_ingestion.document_loader.PdfReader",
            side_effect=ValueError("corrupt xref table"),
        ):
            result = asyncio.run(
                self.loader.load(UploadedFile(name="broken.pdf", content=b"garbage"))
            )

        assert result.text == ""
        assert "corrupt xref table" in result.error
