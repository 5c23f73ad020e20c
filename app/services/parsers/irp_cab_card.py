"""Field extraction for IRP apportioned registration cab cards.

The input is OCR text, which is noisy: ``|`` is read for ``I``, ``0`` and ``O``
swap in both directions, and a lowercase ``l`` shows up for ``1``. The text is
normalized once, then every field is matched independently with an ordered list
of label-anchored patterns. A field that cannot be matched or fails its shape
check is left as ``None`` with confidence 0.0; nothing here raises on bad input.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from app.schemas.extraction import CabCardFields, JurisdictionWeight, ParseResult

DOC_TYPE = "IRP_CAB_CARD"

# Fields whose presence decides whether an extraction can be trusted without review
CRITICAL_FIELDS = ("expiration_date", "vin", "plate_number")
MAX_WARNINGS_FOR_COMPLETE = 5

KNOWN_MAKES = (
    "FREIGHTLINER",
    "KENWORTH",
    "PETERBILT",
    "VOLVO",
    "MACK",
    "INTERNATIONAL",
    "NAVISTAR",
    "WESTERN STAR",
    "STERLING",
    "HINO",
    "ISUZU",
    "FORD",
    "CHEVROLET",
    "GMC",
    "RAM",
    "DODGE",
    "GREAT DANE",
    "WABASH",
    "UTILITY",
    "STOUGHTON",
    "HYUNDAI",
)

KNOWN_FUELS = ("DIESEL", "GASOLINE", "GAS", "PROPANE", "LPG", "CNG", "LNG", "ELECTRIC", "HYBRID", "BIODIESEL")

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}

VIN_LENGTH = 17
VIN_FORBIDDEN = set("IOQ")

_I = re.IGNORECASE
_IM = re.IGNORECASE | re.MULTILINE

# Normalization
_L_AS_ONE = re.compile(r"(?<=\d)l(?![a-z])|(?<![a-z])l(?=\d)")
_O_AS_ZERO = re.compile(r"(?<=\d)[oO](?![A-Za-z])|(?<![A-Za-z])[oO](?=\d)")
_ZERO_AS_O = re.compile(r"(?<=[A-Za-z])0(?!\d)|(?<!\d)0(?=[A-Za-z])")
_TOKEN = re.compile(r"\S+")
_NONZERO_DIGIT = re.compile(r"[1-9]")

# Any "Some Label:" at the start of a line, including two-letter jurisdiction codes
_LABEL_LINE = re.compile(r"^[A-Za-z][A-Za-z /]{0,40}:")
# Known labels that can appear mid-line when OCR merges two lines
_INLINE_LABEL = re.compile(
    r"\s(?:REGISTRANT|PLATE|VEHICLE\s+TYPE|UNIT\s+(?:NUMBER|NO)|UNLADEN|GROSS|AXLES|SEATS|MODEL\s+YEAR|"
    r"MAKE|FUEL|VIN|DOCUMENT\s+(?:NUMBER|NO)|US\s*DOT|CARRIER|OWNER|EXPIRES|EXPIRATION|JURISDICTION)\b[^:\n]{0,30}:",
    _I,
)

# Dates
_EXP_LABEL = r"(?:EXPIRATION|EXPIRES|EXPIRY|EXP)\.?(?:[ \t]+DATE)?"
_SPELLED_DATE = re.compile(_EXP_LABEL + r"[: \t]+([A-Za-z]{3,9})\.?[ \t]+(\d{1,2}),?[ \t]+(\d{4})", _I)
_EXP_PREFIX_SLASH = re.compile(r"\b" + _EXP_LABEL + r"[: \t]+(\d{1,2})/(\d{1,2})/(\d{4})", _I)
_EXP_SUFFIX_SLASH = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})[ \t]+EXP\b", _I)
_EXP_ISO = re.compile(r"\b" + _EXP_LABEL + r"[: \t]+(\d{4})-(\d{1,2})-(\d{1,2})\b", _I)
_BARE_SPELLED_DATE = re.compile(r"\b([A-Za-z]{3,9})\.?[ \t]+(\d{1,2}),[ \t]*(\d{4})\b")

# Jurisdiction weight table
_WEIGHTS_HEADER = re.compile(r"JURISDICTION[ \t]+WEIGHTS?[ \t]*:?", _I)
_QC_AXLES = re.compile(r"^QC:[ \t]*(\d{1,2})[ \t]*AXLES?\b", _IM)
_JURISDICTION_WEIGHT = re.compile(r"^([A-Z]{2}):[ \t]*(\d{1,3}(?:,\d{3})+|\d+)(?:[ \t]*(K)\b)?", re.MULTILINE)

_NUMBER = r"(\d{1,3}(?:,\d{3})+|\d+)"


def normalize_ocr_text(text: str) -> str:
    """Undo the common OCR substitutions without touching real digits.

    ``|`` is always ``I``. ``l`` next to a digit (and not inside a lowercase word)
    is ``1``. ``O`` next to a digit is ``0``. A ``0`` next to a letter becomes ``O``
    only inside tokens with no other digits, so VINs and plate numbers keep theirs.
    Horizontal whitespace is collapsed per line; line breaks are kept.
    """
    text = text.replace("|", "I")
    text = _L_AS_ONE.sub("1", text)
    text = _O_AS_ZERO.sub("0", text)
    text = _TOKEN.sub(_fix_letter_zero, text)

    lines: List[str] = []
    for raw_line in text.splitlines():
        line = " ".join(raw_line.split())
        if not line and (not lines or not lines[-1]):
            continue
        lines.append(line)
    return "\n".join(lines).strip()


def _fix_letter_zero(match: re.Match) -> str:
    token = match.group(0)
    if "0" not in token or _NONZERO_DIGIT.search(token):
        return token
    return _ZERO_AS_O.sub("O", token)


class IRPCabCardParser:
    """Extracts the IRP cab card field set from one OCR capture."""

    def __init__(self, raw_text: str) -> None:
        self.raw_text = raw_text or ""
        self.text = normalize_ocr_text(self.raw_text)
        self.lines = self.text.splitlines()
        self.fields: Dict[str, object] = {}
        self.confidence: Dict[str, float] = {}
        self.errors: List[str] = []

    def parse(self) -> ParseResult:
        self._extract_expiration_date()
        self._extract_text_field(
            "registrant_name",
            [r"REGISTRANT[ \t]+NAME[: \t]+(.+)", r"REGISTRANT(?![ \t]*ADDR)[: \t]+(.+)"],
            0.85,
        )
        self._extract_address("registrant_address", [r"REGISTRANT[ \t]+ADDRESS[: \t]+(.+)"], 0.8)
        self._extract_code(
            "plate_number",
            [r"PLATE[ \t]+(?:NUMBER|NO\.?|#)[: \t]+([A-Z0-9][A-Z0-9-]{1,11})\b", r"\bPLATE[: \t]+([A-Z0-9][A-Z0-9-]{1,11})\b"],
            0.9,
        )
        self._extract_code("vehicle_type", [r"VEHICLE[ \t]+TYPE[: \t]+([A-Z0-9]{1,4})\b", r"\bVEH[ \t]+TYPE[: \t]+([A-Z0-9]{1,4})\b"], 0.85)
        self._extract_code(
            "unit_number",
            [r"\bUNIT[ \t]+(?:NUMBER|NO\.?|#)[: \t]+([A-Z0-9][A-Z0-9-]{0,19})\b", r"\bUNIT[: \t]+([A-Z0-9][A-Z0-9-]{0,19})\b"],
            0.85,
        )
        self._extract_integer("unladen_weight", [r"UNLADEN[ \t]+(?:WEIGHT|WT\.?)[: \t]+" + _NUMBER, r"\bEMPTY[ \t]+(?:WEIGHT|WT\.?)[: \t]+" + _NUMBER], 0.9)
        self._extract_integer(
            "gross_weight",
            [r"GROSS[ \t]+(?:VEHICLE[ \t]+)?(?:WEIGHT|WT\.?)[: \t]+" + _NUMBER, r"\bGVWR?[: \t]+" + _NUMBER],
            0.9,
        )
        self._extract_integer("axles", [r"\bAXLES?[: \t]+(\d{1,2})\b", r"\bNO\.?[ \t]+OF[ \t]+AXLES[: \t]+(\d{1,2})\b"], 0.9)
        self._extract_integer("seats", [r"\bSEATS?[: \t]+(\d{1,3})\b"], 0.85)
        self._extract_integer(
            "model_year",
            [r"MODEL[ \t]+YEAR[: \t]+((?:19|20)\d{2})\b", r"\b(?:YEAR|YR)[: \t]+((?:19|20)\d{2})\b"],
            0.85,
        )
        self._extract_vocabulary("make", [r"\bMAKE[: \t]+([A-Z][A-Z -]{1,30})"], KNOWN_MAKES)
        self._extract_vocabulary("fuel", [r"\bFUEL(?:[ \t]+TYPE)?[: \t]+([A-Z]{2,12})\b"], KNOWN_FUELS)
        self._extract_vin()
        self._extract_code(
            "document_number",
            [r"\bDOC(?:UMENT)?[ \t]+(?:NUMBER|NO\.?|#)[: \t]+([A-Z0-9][A-Z0-9-]{3,30})", r"\b(IRP-[A-Z0-9][A-Z0-9-]{2,30})"],
            0.85,
        )
        self._extract_usdot()
        self._extract_text_field(
            "carrier_responsible_for_safety_name",
            [r"CARRIER[ \t]+RESPONSIBLE[ \t]+FOR[ \t]+SAFETY(?:[ \t]+NAME)?[: \t]+(.+)", r"CARRIER[ \t]+NAME[: \t]+(.+)"],
            0.8,
        )
        self._extract_address("carrier_address", [r"CARRIER[ \t]+ADDRESS[: \t]+(.+)"], 0.75)
        self._extract_text_field(
            "owner_lessor_name",
            [r"OWNER[ \t]*/[ \t]*LESSOR(?:[ \t]+NAME)?[: \t]+(.+)", r"\b(?:OWNER|LESSOR)(?:[ \t]+NAME)?[: \t]+(.+)"],
            0.8,
        )
        self._extract_jurisdiction_weights()

        return ParseResult(
            doc_type=DOC_TYPE,
            fields=CabCardFields(**self.fields),
            confidence=self.confidence,
            raw_text=self.raw_text,
            errors=self.errors,
        )

    # -- bookkeeping -----------------------------------------------------

    def _set(self, field: str, value: object, confidence: float) -> None:
        self.fields[field] = value
        self.confidence[field] = confidence

    def _miss(self, field: str, message: Optional[str] = None) -> None:
        self.fields[field] = None
        self.confidence[field] = 0.0
        self.errors.append(message or f"{field}: not found")

    def _search(
        self,
        field: str,
        patterns: Sequence[str],
        accept: Optional[Callable[[str], Optional[str]]] = None,
    ) -> Optional[Tuple[str, int]]:
        """Return the first accepted capture and the index of the pattern that produced it.

        ``accept`` may reject a capture by returning an error message; the rejection is
        recorded and the next pattern is tried.
        """
        for index, pattern in enumerate(patterns):
            match = re.search(pattern, self.text, _I)
            if not match:
                continue
            value = match.group(1).strip()
            if accept is not None:
                problem = accept(value)
                if problem:
                    self.errors.append(f"{field}: {problem}")
                    continue
            if index > 0:
                self.errors.append(f"{field}: primary pattern failed, used fallback")
            return value, index
        return None

    # -- field kinds -----------------------------------------------------

    def _extract_text_field(self, field: str, patterns: Sequence[str], confidence: float) -> None:
        found = self._search(field, patterns, accept=lambda value: None if _clean_text(value) else "empty value")
        if not found:
            self._miss(field)
            return
        self._set(field, _clean_text(found[0]), confidence)

    def _extract_address(self, field: str, patterns: Sequence[str], confidence: float) -> None:
        for index, pattern in enumerate(patterns):
            match = re.search(pattern, self.text, _I)
            if not match:
                continue
            first = _clean_text(match.group(1))
            if not first:
                continue
            parts = [first]
            line_index = self.text.count("\n", 0, match.start())
            for line in self.lines[line_index + 1:line_index + 3]:
                if not line or _LABEL_LINE.match(line):
                    break
                continuation = _clean_text(line)
                if continuation:
                    parts.append(continuation)
            if index > 0:
                self.errors.append(f"{field}: primary pattern failed, used fallback")
            self._set(field, ", ".join(parts), confidence)
            return
        self._miss(field)

    def _extract_code(self, field: str, patterns: Sequence[str], confidence: float) -> None:
        found = self._search(field, patterns)
        if not found:
            self._miss(field)
            return
        self._set(field, found[0].upper(), confidence)

    def _extract_integer(self, field: str, patterns: Sequence[str], confidence: float) -> None:
        found = self._search(field, patterns)
        if not found:
            self._miss(field)
            return
        self._set(field, int(found[0].replace(",", "")), confidence)

    def _extract_vocabulary(self, field: str, patterns: Sequence[str], vocabulary: Sequence[str]) -> None:
        found = self._search(field, patterns, accept=lambda value: None if _clean_text(value) else "empty value")
        if not found:
            self._miss(field)
            return
        value = _clean_text(found[0]).upper()
        known = any(value == term or value.startswith(term + " ") for term in vocabulary)
        self._set(field, value, 0.9 if known else 0.7)

    def _extract_vin(self) -> None:
        def accept(value: str) -> Optional[str]:
            return _vin_problem(value.upper())

        found = self._search(
            "vin",
            [r"\bVIN(?:[ \t]+(?:NUMBER|NO\.?|#))?[: \t]+([A-Z0-9]{11,20})\b"],
            accept=accept,
        )
        if found:
            self._set("vin", found[0].upper(), 0.95)
            return

        # Unlabelled fallback: any token already in VIN shape, case-sensitive on purpose
        bare = re.search(r"\b([A-HJ-NPR-Z0-9]{17})\b", self.text)
        if bare and re.search(r"\d", bare.group(1)) and re.search(r"[A-Z]", bare.group(1)):
            self.errors.append("vin: primary pattern failed, used fallback")
            self._set("vin", bare.group(1), 0.95)
            return
        self._miss("vin")

    def _extract_usdot(self) -> None:
        def accept(value: str) -> Optional[str]:
            if 6 <= len(value) <= 8:
                return None
            return f"rejected '{value}', USDOT numbers have 6-8 digits"

        found = self._search(
            "usdot_number",
            [
                r"\bUS[ \t]*DOT(?:[ \t]+(?:NUMBER|NO\.?|#))?[: \t]+(\d+)\b",
                r"\bDOT(?:[ \t]+(?:NUMBER|NO\.?|#))?[: \t]+(\d+)\b",
            ],
            accept=accept,
        )
        if not found:
            self._miss("usdot_number")
            return
        self._set("usdot_number", found[0], 0.9)

    def _extract_expiration_date(self) -> None:
        # All four layouts are first-class; none of them counts as a fallback
        candidates = (
            (_SPELLED_DATE, "mdy_spelled"),
            (_EXP_PREFIX_SLASH, "mdy"),
            (_EXP_SUFFIX_SLASH, "mdy"),
            (_EXP_ISO, "ymd"),
        )
        for pattern, layout in candidates:
            for match in pattern.finditer(self.text):
                value = _build_date(match.groups(), layout)
                if value:
                    self._set("expiration_date", value, 0.9)
                    return

        for match in _BARE_SPELLED_DATE.finditer(self.text):
            value = _build_date(match.groups(), "mdy_spelled")
            if value:
                self.errors.append("expiration_date: no expiration label, used first spelled-out date")
                self._set("expiration_date", value, 0.9)
                return
        self._miss("expiration_date")

    def _extract_jurisdiction_weights(self) -> None:
        header = _WEIGHTS_HEADER.search(self.text)
        section = self.text[header.end():] if header else self.text

        weights: Dict[str, JurisdictionWeight] = {}
        for match in _QC_AXLES.finditer(section):
            weights["QC"] = JurisdictionWeight(max_weight=int(match.group(1)), unit="axles")

        for match in _JURISDICTION_WEIGHT.finditer(section):
            code, number, k_suffix = match.group(1), match.group(2), match.group(3)
            if code in weights:
                continue
            value = int(number.replace(",", ""))
            if k_suffix:
                # Heuristic: "80K" means thousands of pounds; larger numbers are already pounds
                if value < 100:
                    value *= 1000
                else:
                    self.errors.append(
                        f"jurisdiction_weights: {code} value {number}K is ambiguous, kept as written"
                    )
            weights[code] = JurisdictionWeight(max_weight=value, unit="lbs")

        if not weights:
            self._miss("jurisdiction_weights")
            return
        if not header:
            self.errors.append("jurisdiction_weights: section header not found, scanned whole text")
        self._set("jurisdiction_weights", weights, 0.8)


def _clean_text(value: str) -> str:
    value = value.strip()
    inline = _INLINE_LABEL.search(" " + value)
    if inline:
        value = value[: max(inline.start() - 1, 0)]
    return value.strip(" ,;:-")


def _vin_problem(candidate: str) -> Optional[str]:
    if len(candidate) != VIN_LENGTH:
        return f"rejected '{candidate}', VINs have exactly {VIN_LENGTH} characters"
    bad = sorted(set(candidate) & VIN_FORBIDDEN)
    if bad:
        return f"rejected '{candidate}', VINs never contain {', '.join(bad)}"
    return None


def _build_date(groups: Tuple[str, ...], layout: str) -> Optional[str]:
    try:
        if layout == "ymd":
            year, month, day = (int(part) for part in groups)
        elif layout == "mdy_spelled":
            month = MONTHS.get(groups[0][:3].upper())
            if month is None:
                return None
            day, year = int(groups[1]), int(groups[2])
        else:
            month, day, year = (int(part) for part in groups)
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_irp_cab_card(ocr_text: str) -> ParseResult:
    return IRPCabCardParser(ocr_text).parse()
