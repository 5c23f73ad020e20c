from __future__ import annotations

import base64
import json
import logging
from datetime import date
from typing import Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a document analysis expert specializing in trucking compliance documents.
Analyze the uploaded document and extract:
1. Document type (e.g., "CDL", "Medical Card", "Insurance", "Registration", "IFTA", "Annual Inspection", "IRP Cab Card")
2. Expiration date (if present)

Return a JSON object with:
- docType: the document type (string or null)
- expiresOn: expiration date in YYYY-MM-DD format (string or null)
- confidence: your confidence level 0-1 (number)
- reasoning: brief explanation of your analysis (string)

If you cannot clearly identify the document type or expiration date, set confidence < 0.85."""


class ClassificationSuggestion(BaseModel):
    doc_type: Optional[str] = None
    expires_on: Optional[date] = None
    confidence: float = 0.0
    needs_review: bool = True
    reasoning: Optional[str] = None


class DocumentClassifier:
    """Suggests a document type and expiration date from the file itself (OpenAI vision)."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None) -> None:
        self.settings = settings or get_settings()
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.settings.openai_api_key)

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.settings.openai_api_key)
        return self._client

    async def classify(self, file_bytes: bytes, filename: str, mime_type: str) -> ClassificationSuggestion:
        if not self.configured:
            return ClassificationSuggestion(reasoning="AI extraction not configured (OPENAI_API_KEY missing)")

        encoded = base64.b64encode(file_bytes).decode("ascii")
        try:
            response = await self.client.chat.completions.create(
                model=self.settings.openai_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "text",
                                "text": f"Analyze this document (filename: {filename}) and extract the document type "
                                "and expiration date. Return only valid JSON.",
                            },
                            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                        ],
                    },
                ],
                max_tokens=500,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            logger.exception("OpenAI request failed", extra={"doc_filename": filename})
            return ClassificationSuggestion(reasoning=f"AI extraction failed: {exc}")

        content = response.choices[0].message.content if response.choices else None
        return self._parse_content(content)

    def _parse_content(self, content: Optional[str]) -> ClassificationSuggestion:
        if not content:
            return ClassificationSuggestion(reasoning="No response from AI")
        try:
            extracted = json.loads(content)
        except json.JSONDecodeError:
            return ClassificationSuggestion(reasoning="AI returned invalid JSON")

        expires_on = None
        if extracted.get("expiresOn"):
            try:
                expires_on = date.fromisoformat(str(extracted["expiresOn"])[:10])
            except ValueError:
                expires_on = None

        try:
            confidence = max(0.0, min(1.0, float(extracted.get("confidence") or 0.0)))
        except (TypeError, ValueError):
            confidence = 0.0
        return ClassificationSuggestion(
            doc_type=extracted.get("docType") or None,
            expires_on=expires_on,
            confidence=confidence,
            needs_review=confidence < self.settings.ai_review_confidence_threshold,
            reasoning=extracted.get("reasoning"),
        )
