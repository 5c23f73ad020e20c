from __future__ import annotations

import asyncio
import base64
import io
import logging
from typing import List, Optional

import fitz  # PyMuPDF
import pdfplumber
from openai import AsyncOpenAI, OpenAIError

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

OCR_PROMPT = (
    "Transcribe all text in this scanned trucking compliance document exactly as printed. "
    "Keep the original line breaks and labels. Return only the transcribed text."
)

IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")

# 200 DPI render: 200 / 72
PDF_RENDER_ZOOM = 2.78


class TextExtractionError(Exception):
    pass


def extract_text(file_bytes: bytes, mime_type: str) -> str:
    """Text layer of an uploaded document.

    Only PDFs carry one; photos and scans go through VisionOCRService, and without
    it they raise here so the caller can mark the document for manual review.
    """
    if mime_type == "application/pdf":
        return _extract_pdf_text(file_bytes)
    raise TextExtractionError(f"No text extraction available for {mime_type}")


def _extract_pdf_text(file_bytes: bytes) -> str:
    text_parts = []
    try:
        with pdfplumber.open(io.BytesIO(file_bytes)) as pdf:
            for page in pdf.pages:
                page_text = page.extract_text()
                if page_text:
                    text_parts.append(page_text)
    except Exception as exc:
        raise TextExtractionError(f"PDF extraction error: {exc}") from exc

    full_text = "\n".join(text_parts)
    if not full_text.strip():
        raise TextExtractionError("No text extracted from PDF")
    return full_text


def render_pdf_pages(file_bytes: bytes, max_pages: int) -> List[bytes]:
    """PNG renders of the first pages of a PDF, for vision OCR."""
    try:
        pdf_document = fitz.open(stream=file_bytes, filetype="pdf")
    except Exception as exc:
        raise TextExtractionError(f"Failed to open PDF: {exc}") from exc
    try:
        if pdf_document.page_count == 0:
            raise TextExtractionError("PDF has no pages")
        matrix = fitz.Matrix(PDF_RENDER_ZOOM, PDF_RENDER_ZOOM)
        return [
            pdf_document[index].get_pixmap(matrix=matrix).tobytes("png")
            for index in range(min(pdf_document.page_count, max_pages))
        ]
    finally:
        pdf_document.close()


class VisionOCRService:
    """OCR for photos and scanned PDFs through an OpenAI vision model."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None) -> None:
        self.settings = settings or get_settings()
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.settings.ocr_enabled and self.settings.openai_api_key)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.settings.openai_api_key)
        return self._client

    async def extract_text(self, file_bytes: bytes, mime_type: str) -> str:
        if mime_type == "application/pdf":
            pages = await asyncio.to_thread(render_pdf_pages, file_bytes, self.settings.ocr_max_pages)
            images = [("image/png", page) for page in pages]
        elif mime_type in IMAGE_TYPES:
            images = [(mime_type, file_bytes)]
        else:
            raise TextExtractionError(f"Unsupported file type for OCR: {mime_type}")

        text_parts = []
        for image_type, image_bytes in images:
            page_text = await self._transcribe(image_type, image_bytes)
            if page_text.strip():
                text_parts.append(page_text.strip())

        full_text = "\n".join(text_parts)
        if not full_text:
            raise TextExtractionError("No text recognized in document")
        return full_text

    async def _transcribe(self, mime_type: str, image_bytes: bytes) -> str:
        encoded = base64.standard_b64encode(image_bytes).decode("ascii")
        try:
            response = await self.client.chat.completions.create(
                model=self.settings.openai_ocr_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": OCR_PROMPT},
                            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                        ],
                    }
                ],
                max_tokens=2000,
            )
        except OpenAIError as exc:
            raise TextExtractionError(f"OCR request failed: {exc}") from exc
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
