from __future__ import annotations

from typing import Callable, Dict, Optional

from app.schemas.extraction import ParseResult
from app.services.parsers import irp_cab_card

ParserFn = Callable[[str], ParseResult]

PARSERS: Dict[str, ParserFn] = {
    irp_cab_card.DOC_TYPE: irp_cab_card.parse_irp_cab_card,
}

# Free-text document types users pick that map onto a structured layout
_DOC_TYPE_ALIASES = {
    "irp_cab_card": irp_cab_card.DOC_TYPE,
    "irp cab card": irp_cab_card.DOC_TYPE,
    "cab card": irp_cab_card.DOC_TYPE,
    "irp": irp_cab_card.DOC_TYPE,
}


def resolve_structured_type(doc_type: Optional[str]) -> Optional[str]:
    """Map a document's free-text type onto a known structured layout, if any."""
    if not doc_type:
        return None
    return _DOC_TYPE_ALIASES.get(doc_type.strip().lower())


def parse_structured_document(ocr_text: str, doc_type: str = irp_cab_card.DOC_TYPE) -> ParseResult:
    parser = PARSERS.get(resolve_structured_type(doc_type) or doc_type)
    if parser is None:
        raise ValueError(f"No structured parser for document type '{doc_type}'")
    return parser(ocr_text)


def assess_extraction(result: ParseResult) -> str:
    """Decide whether an extraction can stand on its own or must go to a reviewer."""
    has_critical = any(getattr(result.fields, name) is not None for name in irp_cab_card.CRITICAL_FIELDS)
    if has_critical and len(result.errors) < irp_cab_card.MAX_WARNINGS_FOR_COMPLETE:
        return "complete"
    return "needs_review"
