"""
field_extractor.py — Form 16 transcript → ExtractedDocumentFacts.

Pure function module — no I/O, no OCR.
Entry point: extract_form16_fields(text: str) -> ExtractedDocumentFacts

The transcript is processed LINE BY LINE. Two section anchors are located
first:

  Part B          "Part B" / "Salary Statement" / "Schedule 1" heading.
                  Part A carries quarterly TDS tables and employer identifiers;
                  salary figures are only read from Part B onwards.
  Chapter VI-A    deductions table. Ends at the "Total taxable income" /
                  "Tax on total income" row.

Every pattern carries the scope it is allowed to match in. A missing anchor
widens the scope to the enclosing one (DEDUCTIONS → PART_B → DOCUMENT), so a
terse transcript without headings is still searched best-effort.

Field misses are NOT errors: a field that is not found stays None.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from form16_planner.agents.input_agent.schemas import ExtractedDocumentFacts

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scopes and pattern records
# ---------------------------------------------------------------------------

class Scope(str, Enum):
    DOCUMENT = "document"
    PART_B = "part_b"
    DEDUCTIONS = "deductions"


@dataclass(frozen=True)
class FieldPattern:
    """
    One candidate label pattern and the section it may match in.

    With total_row set, pattern is the heading of an itemised block (Part B
    line 1: (a) 17(1) .. (d) Total) and the value is read from the first row
    under it that matches total_row.
    """
    pattern: re.Pattern
    scope: Scope = Scope.PART_B
    total_row: Optional[re.Pattern] = None


@dataclass(frozen=True)
class NumericFieldRule:
    """
    Ordered pattern chain for one monetary field.

    last=True takes the LAST amount on the row (multi-column tables where the
    right-most column is the one that counts). bounds rejects implausible
    magnitudes (OCR misreads) and lets the search continue.
    """
    field: str
    patterns: tuple[FieldPattern, ...]
    last: bool = False
    bounds: Optional[tuple[float, float]] = None


@dataclass(frozen=True)
class DeductionRule:
    """
    Pattern chain for one deduction section.

    code is the section's own code pattern (case-sensitive). A row that names
    several sections ("Total deduction under section 80C, 80CCC and 80CCD(1)")
    belongs to the FIRST section it names only.
    """
    section: str
    patterns: tuple[FieldPattern, ...]
    code: Optional[re.Pattern] = None


def _fp(regex: str, scope: Scope = Scope.PART_B) -> FieldPattern:
    return FieldPattern(re.compile(regex, re.IGNORECASE), scope)


def _code(regex: str) -> re.Pattern:
    return re.compile(regex)


def _block(heading: str, total_row: str, scope: Scope = Scope.PART_B) -> FieldPattern:
    return FieldPattern(
        re.compile(heading, re.IGNORECASE), scope, re.compile(total_row, re.IGNORECASE)
    )


# ---------------------------------------------------------------------------
# Anchors
# ---------------------------------------------------------------------------

_PART_B_RE = re.compile(
    r"(?:Part\s*[-–]?\s*B\b|Salary\s+Statement|Schedule\s+1\b)",
    re.IGNORECASE,
)
_CHAPTER_VIA_RE = re.compile(r"Chapter\s*VI\s*[-–]?\s*A\b", re.IGNORECASE)
_DEDUCTIONS_END_RE = re.compile(
    r"Total\s+taxable\s+income|Tax\s+on\s+total\s+income", re.IGNORECASE
)

# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

# Currency-prefixed number, OR a bare number that looks like money: Indian /
# Western comma grouping, a decimal part, or at least 3 digits. Neighbouring
# word characters, brackets, slashes, dashes and % exclude item numbers
# ("(6+8)", "17(1)"), dates and percentages.
_AMOUNT_RE = re.compile(
    r"(?:(?<![A-Za-z])(?:Rs\.?|INR|₹)\s*(?P<cur>\d[\d,]*(?:\.\d+)?))"
    r"|(?<![\w.,/(+\-])(?P<num>\d{1,3}(?:,\d{2,3})+(?:\.\d+)?|\d+\.\d+|\d{3,})(?![\w(/%)\-])",
    re.IGNORECASE,
)

# Statutory references that contain 3+ digit numbers ("u/s 192", "Act, 1961")
_REFERENCE_RE = re.compile(
    r"(?:u/s\.?|under\s+section|section|sec\.|rule)\s*\d+[A-Z]*(?:\s*\(\s*\w+\s*\))*"
    r"|Act,?\s+\d{4}",
    re.IGNORECASE,
)

_AMOUNT_ONLY_LINE_RE = re.compile(
    r"^\s*(?:(?:Rs\.?|INR|₹)\s*)?\d[\d,]*(?:\.\d+)?"
    r"(?:\s+(?:(?:Rs\.?|INR|₹)\s*)?\d[\d,]*(?:\.\d+)?)*\s*$",
    re.IGNORECASE,
)

_MAX_AMOUNT_LOOKAHEAD = 2

# Itemised blocks end at the next numbered line ("2. Less: Allowances ...")
_MAX_BLOCK_LINES = 8
_NUMBERED_ITEM_RE = re.compile(r"^\s*\d{1,2}\s*\.\s")

# Gross salary outside this band is treated as an OCR misread
GROSS_SALARY_BOUNDS = (10_000.0, 100_000_000.0)


def parse_amount(raw: str) -> float:
    """
    Parse an Indian rupee amount to float.

    Strips currency markers, thousands separators ('1,20,000' and
    '1,200,000' alike) and whitespace. Unparseable input → 0.0.
    """
    cleaned = re.sub(r"(?i)rs\.?|inr|₹|[,\s]", "", raw or "")
    try:
        value = float(cleaned)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def _amounts(segment: str) -> list[float]:
    segment = _REFERENCE_RE.sub(" ", segment)
    return [
        parse_amount(m.group("cur") or m.group("num"))
        for m in _AMOUNT_RE.finditer(segment)
    ]


# ---------------------------------------------------------------------------
# Field pattern chains (first match in scope wins)
# ---------------------------------------------------------------------------

NUMERIC_FIELD_RULES: tuple[NumericFieldRule, ...] = (
    # Part B line 1: sum of all salary components. TRACES prints the heading
    # alone and the sum on the "(d) Total" row; "(e) Reported total amount of
    # salary received from other employer(s)" is not part of it.
    NumericFieldRule(
        "gross_salary",
        (
            _fp(r"Gross\s+Salary"),
            _block(r"Gross\s+Salary", r"\s*\(?\s*d\s*\)\s*Total\b"),
            _fp(
                r"^(?!.*\b(?:Reported|other\s+employer))"
                r".*?\bTotal\s+amount\s+of\s+salary\s+received"
            ),
            _fp(r"Salary\s+as\s+per\s+provisions\s+contained\s+in\s+sec(?:tion)?\.?\s*17\s*\(\s*1\s*\)"),
            _fp(r"Annual\s+Salary", Scope.DOCUMENT),
            _fp(r"(?<!Gross )(?<!on )(?<!taxable )\bTotal\s+Income\b", Scope.DOCUMENT),
        ),
        bounds=GROSS_SALARY_BOUNDS,
    ),
    # Part B line 3: section 10 exemptions
    NumericFieldRule(
        "total_exemption",
        (
            _fp(r"Total\s+amount\s+of\s+exemptions?\s+claimed"),
            _fp(r"Total\s+exemptions?\b"),
            _fp(r"Allowances?\s+to\s+the\s+extent\s+exempt"),
        ),
        last=True,
    ),
    NumericFieldRule(
        "standard_deduction",
        (_fp(r"Standard\s+deduction"),),
    ),
    NumericFieldRule(
        "income_chargeable_salaries",
        (
            _fp(r"Income\s+chargeable\s+under\s+the\s+head\s+\W?Salaries\W?"),
            _fp(r"Income\s+under\s+the\s+head\s+\W?Salaries\W?"),
        ),
    ),
    NumericFieldRule(
        "gross_total_income",
        (_fp(r"Gross\s+total\s+income"),),
    ),
    # Part B line 11 — two columns (gross | deductible): take the last
    NumericFieldRule(
        "total_deductions",
        (
            _fp(r"Aggregate\s+of\s+deductible\s+amounts?\s+under\s+Chapter\s*VI\s*[-–]?\s*A"),
            _fp(r"Total\s+deductions?\s+under\s+Chapter\s*VI\s*[-–]?\s*A"),
            _fp(r"Aggregate\s+of\s+deductible\s+amounts?", Scope.DEDUCTIONS),
        ),
        last=True,
    ),
    NumericFieldRule(
        "net_taxable_income",
        (
            _fp(r"Total\s+taxable\s+income"),
            _fp(r"Net\s+taxable\s+income"),
            _fp(r"\bTaxable\s+Income\b", Scope.DOCUMENT),
        ),
    ),
    NumericFieldRule(
        "net_tax_payable",
        (
            _fp(r"Net\s+tax\s+payable"),
            _fp(r"\bTax\s+payable\b"),
        ),
    ),
    NumericFieldRule(
        "tds_deducted",
        (
            _fp(r"TDS\s+Deducted", Scope.DOCUMENT),
            _fp(r"Tax\s+Deducted\s+at\s+Source", Scope.DOCUMENT),
            _fp(r"Total\s+TDS", Scope.DOCUMENT),
            _fp(r"Total\s+(?:amount\s+of\s+)?tax\s+deducted", Scope.DOCUMENT),
        ),
    ),
)

DEDUCTION_RULES: tuple[DeductionRule, ...] = (
    DeductionRule(
        "80C",
        (
            FieldPattern(_code(r"\b80\s*C\b"), Scope.DEDUCTIONS),
            _fp(r"life\s+insurance\s+premi", Scope.DEDUCTIONS),
        ),
        code=_code(r"\b80\s*C\b"),
    ),
    DeductionRule(
        "80CCC",
        (FieldPattern(_code(r"\b80\s*CCC\b"), Scope.DEDUCTIONS),),
        code=_code(r"\b80\s*CCC\b"),
    ),
    DeductionRule(
        "80CCD",
        (FieldPattern(_code(r"\b80\s*CCD\s*\(\s*1\s*\)"), Scope.DEDUCTIONS),),
        code=_code(r"\b80\s*CCD\s*\(\s*1\s*\)"),
    ),
    DeductionRule(
        "80CCD1B",
        (
            FieldPattern(_code(r"\b80\s*CCD\s*[\(\[]?\s*1\s*B\s*[\)\]]?"), Scope.DEDUCTIONS),
            _fp(r"notified\s+pension\s+scheme", Scope.DEDUCTIONS),
        ),
        code=_code(r"\b80\s*CCD\s*[\(\[]?\s*1\s*B\s*[\)\]]?"),
    ),
    DeductionRule(
        "80CCD2",
        (
            FieldPattern(_code(r"\b80\s*CCD\s*[\(\[]?\s*2\s*[\)\]]?"), Scope.DEDUCTIONS),
            _fp(r"contribution\s+by\s+Employer\s+to\s+pension", Scope.DEDUCTIONS),
        ),
        code=_code(r"\b80\s*CCD\s*[\(\[]?\s*2\s*[\)\]]?"),
    ),
    DeductionRule(
        "80D",
        (
            FieldPattern(_code(r"\b80\s*D\b"), Scope.DEDUCTIONS),
            _fp(r"health\s+insurance\s+premi|Medical\s+Insurance\s+Premi|Mediclaim", Scope.DEDUCTIONS),
        ),
        code=_code(r"\b80\s*D\b"),
    ),
    DeductionRule(
        "80E",
        (
            FieldPattern(_code(r"\b80\s*E\b"), Scope.DEDUCTIONS),
            _fp(r"loan\s+taken\s+for\s+higher\s+education", Scope.DEDUCTIONS),
        ),
        code=_code(r"\b80\s*E\b"),
    ),
    DeductionRule(
        "80EE",
        (FieldPattern(_code(r"\b80\s*EE\b"), Scope.DEDUCTIONS),),
        code=_code(r"\b80\s*EE\b"),
    ),
    DeductionRule(
        "80G",
        (
            FieldPattern(_code(r"\b80\s*G\b"), Scope.DEDUCTIONS),
            _fp(r"donations\s+to\s+certain\s+funds", Scope.DEDUCTIONS),
        ),
        code=_code(r"\b80\s*G\b"),
    ),
    DeductionRule(
        "80TTA",
        (
            FieldPattern(_code(r"\b80\s*TTA\b"), Scope.DEDUCTIONS),
            _fp(r"interest\s+on\s+deposits\s+in\s+savings", Scope.DEDUCTIONS),
        ),
        code=_code(r"\b80\s*TTA\b"),
    ),
    DeductionRule(
        "80TTB",
        (FieldPattern(_code(r"\b80\s*TTB\b"), Scope.DEDUCTIONS),),
        code=_code(r"\b80\s*TTB\b"),
    ),
    # Section 10 exemptions — reported in Part B, outside Chapter VI-A
    DeductionRule(
        "HRA",
        (
            _fp(r"House\s+rent\s+allowance\s+under\s+section\s+10\s*\(\s*13A\s*\)"),
            _fp(r"\b10\s*\(\s*13A\s*\)"),
            _fp(r"HRA\s+Exemption"),
        ),
    ),
    DeductionRule(
        "LTA",
        (
            _fp(r"Travel\s+concession\s+or\s+assistance\s+under\s+section\s+10\s*\(\s*5\s*\)"),
            _fp(r"\b10\s*\(\s*5\s*\)"),
            _fp(r"LTA\s+Exemption"),
        ),
    ),
)

# Any Chapter VI-A section code; used to decide which section owns a row
_ANY_SECTION_RE = re.compile(r"\b80\s*[A-Z]{1,5}\b")


# ---------------------------------------------------------------------------
# Identity patterns
# ---------------------------------------------------------------------------

_PAN_TOKEN_RE = re.compile(r"(?<![A-Z0-9])([A-Z]{5}\d{4}[A-Z])(?![A-Z0-9])")
# PAN (5+4+1) or TAN (4+5+1) shaped identifiers, for column alignment
_ID_TOKEN_RE = re.compile(r"(?<![A-Z0-9])([A-Z]{4,5}\d{4,5}[A-Z])(?![A-Z0-9])")
_ID_LABEL_RE = re.compile(r"\b(?:PAN|TAN)\b", re.IGNORECASE)
_EMPLOYEE_PAN_LABEL_RE = re.compile(
    r"PAN\s+(?:No\.?\s+)?of\s+(?:the\s+)?(?:Employee|Deductee)"
    r"|(?:Employee|Deductee)(?:'s)?\s+PAN",
    re.IGNORECASE,
)
_PAN_LOOKAHEAD_LINES = 3

_EMPLOYER_LABEL_RE = re.compile(
    r"Name\s+and\s+address\s+of\s+the\s+(?:Employer|Deductor)", re.IGNORECASE
)
_EMPLOYEE_LABEL_RE = re.compile(
    r"Name\s+and\s+address\s+of\s+the\s+(?:Employee|Deductee)", re.IGNORECASE
)
_NAME_WINDOW_LINES = 10
_MAX_ADDRESS_LINES = 4
_MIN_NAME_CHARS = 3

# Lines that start another labelled block and end an address
_BLOCK_LABEL_RE = re.compile(
    r"Name\s+and\s+address|\bPAN\b|\bTAN\b|Assessment\s+Year|Period\s+with"
    r"|CIT\s*\(\s*TDS\s*\)|Reference\s+No|Part\s*[-–]?\s*[AB]\b|Summary\s+of|Quarter",
    re.IGNORECASE,
)

_NAME_NOISE_WORDS = frozenset({
    "name", "address", "employer", "employee", "deductor", "deductee",
    "pan", "tan", "certificate", "form", "part", "period", "assessment",
    "year", "specified", "senior", "citizen", "summary", "quarter", "tds",
    "cit", "annexure", "details",
})

_AY_LABEL_RE = re.compile(
    r"Assessment\s+Year|\bA\.?\s?Y\.?(?=\s*[:\-]?\s*\d)", re.IGNORECASE
)
_FY_LABEL_RE = re.compile(
    r"Financial\s+Year|\bF\.?\s?Y\.?(?=\s*[:\-]?\s*\d)", re.IGNORECASE
)
_YEAR_RANGE_RE = re.compile(r"(?<!\d)(\d{4})\s*[-–/]\s*(\d{4}|\d{2})(?!\d)")


# ---------------------------------------------------------------------------
# Section index
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SectionIndex:
    """Line ranges of the anchored sections (end is exclusive)."""
    line_count: int
    part_b_start: Optional[int] = None
    deductions_start: Optional[int] = None
    deductions_end: Optional[int] = None

    def bounds(self, scope: Scope) -> tuple[int, int]:
        if scope is Scope.DEDUCTIONS and self.deductions_start is not None:
            return self.deductions_start, self.deductions_end or self.line_count
        if scope in (Scope.PART_B, Scope.DEDUCTIONS) and self.part_b_start is not None:
            return self.part_b_start, self.line_count
        return 0, self.line_count


def locate_sections(lines: list[str]) -> SectionIndex:
    part_b = next((i for i, line in enumerate(lines) if _PART_B_RE.search(line)), None)
    if part_b is None:
        logger.debug("Part B marker not found — searching full document (best-effort)")

    search_from = part_b or 0
    ded_start = next(
        (i for i in range(search_from, len(lines)) if _CHAPTER_VIA_RE.search(lines[i])),
        None,
    )
    ded_end = None
    if ded_start is not None:
        ded_end = next(
            (
                i for i in range(ded_start + 1, len(lines))
                if _DEDUCTIONS_END_RE.search(lines[i])
            ),
            None,
        )
    return SectionIndex(
        line_count=len(lines),
        part_b_start=part_b,
        deductions_start=ded_start,
        deductions_end=ded_end,
    )


# ---------------------------------------------------------------------------
# Numeric search
# ---------------------------------------------------------------------------

def _row_amounts(lines: list[str], idx: int, match_end: int, end: int) -> list[float]:
    """
    Amounts belonging to a label row: the rest of the label line or, when it
    has none, up to two following lines that contain nothing but amounts.
    """
    found = _amounts(lines[idx][match_end:])
    if found:
        return found
    for j in range(idx + 1, min(idx + 1 + _MAX_AMOUNT_LOOKAHEAD, end)):
        following = lines[j]
        if not following.strip():
            continue
        if _AMOUNT_ONLY_LINE_RE.match(following):
            return _amounts(following)
        break
    return []


def _block_total_amounts(
    lines: list[str], idx: int, end: int, total_row: re.Pattern
) -> list[float]:
    """Amounts on the total row of the itemised block headed at line idx."""
    for j in range(idx + 1, min(idx + 1 + _MAX_BLOCK_LINES, end)):
        if _NUMBERED_ITEM_RE.match(lines[j]):
            break
        m = total_row.match(lines[j])
        if m:
            return _row_amounts(lines, j, m.end(), end)
    return []


def _extract_numeric(
    lines: list[str], sections: SectionIndex, rule: NumericFieldRule
) -> Optional[float]:
    for candidate in rule.patterns:
        start, end = sections.bounds(candidate.scope)
        for idx in range(start, end):
            m = candidate.pattern.search(lines[idx])
            if not m:
                continue
            if candidate.total_row is not None:
                found = _block_total_amounts(lines, idx, end, candidate.total_row)
            else:
                found = _row_amounts(lines, idx, m.end(), end)
            if not found:
                continue
            value = found[-1] if rule.last else found[0]
            if rule.bounds and not (rule.bounds[0] <= value <= rule.bounds[1]):
                logger.debug("Rejected out-of-range value for %s", rule.field)
                continue
            return value
    return None


def _owns_row(rule: DeductionRule, line: str) -> bool:
    if rule.code is None:
        return True
    first = _ANY_SECTION_RE.search(line)
    if first is None:
        return True
    return rule.code.match(line, first.start()) is not None


def _extract_deduction(
    lines: list[str], sections: SectionIndex, rule: DeductionRule
) -> Optional[float]:
    """First row labelled with the section decides; deductible column = last amount."""
    for candidate in rule.patterns:
        start, end = sections.bounds(candidate.scope)
        for idx in range(start, end):
            m = candidate.pattern.search(lines[idx])
            if not m or not _owns_row(rule, lines[idx]):
                continue
            found = _row_amounts(lines, idx, m.end(), end)
            return found[-1] if found else None
    return None


def extract_deductions(lines: list[str], sections: SectionIndex) -> dict[str, float]:
    """Section code → amount, only for sections with a positive amount."""
    deductions: dict[str, float] = {}
    for rule in DEDUCTION_RULES:
        amount = _extract_deduction(lines, sections, rule)
        if amount is not None and amount > 0:
            deductions[rule.section] = amount
    return deductions


# ---------------------------------------------------------------------------
# PAN
# ---------------------------------------------------------------------------

def extract_pan(lines: list[str]) -> Optional[str]:
    """
    Employee PAN.

    Prefers a PAN next to an Employee/Deductee label: on the same line after
    the label, or on the following lines. When the label sits in a header row
    with several PAN/TAN columns, the value row is read by column position.
    Falls back to the first PAN-shaped token in the document.
    """
    for idx, line in enumerate(lines):
        m = _EMPLOYEE_PAN_LABEL_RE.search(line)
        if not m:
            continue
        same_line = _PAN_TOKEN_RE.search(line[m.end():].upper())
        if same_line:
            return same_line.group(1)

        column = sum(1 for lbl in _ID_LABEL_RE.finditer(line) if lbl.start() < m.start())
        for following in lines[idx + 1: idx + 1 + _PAN_LOOKAHEAD_LINES]:
            ids = _ID_TOKEN_RE.findall(following.upper())
            if not ids:
                continue
            if column < len(ids) and _PAN_TOKEN_RE.fullmatch(ids[column]):
                return ids[column]
            pans = [t for t in ids if _PAN_TOKEN_RE.fullmatch(t)]
            if pans:
                return pans[-1]

    for line in lines:
        m = _PAN_TOKEN_RE.search(line.upper())
        if m:
            return m.group(1)
    return None


# ---------------------------------------------------------------------------
# Names and addresses
# ---------------------------------------------------------------------------

def _looks_like_name(value: str) -> bool:
    candidate = value.strip(" :-,.")
    if len(candidate) < _MIN_NAME_CHARS or any(ch.isdigit() for ch in candidate):
        return False
    letters = [ch for ch in candidate if ch.isalpha()]
    compact = candidate.replace(" ", "")
    if len(letters) < _MIN_NAME_CHARS or len(letters) / len(compact) < 0.7:
        return False
    if sum(1 for ch in letters if ch.isupper()) / len(letters) < 0.8:
        return False
    words = set(re.findall(r"[a-z]+", candidate.lower()))
    return not (words & _NAME_NOISE_WORDS)


def _column_value(line: str, column: int, columns: int) -> str:
    if columns == 1:
        return line.strip()
    parts = re.split(r"\s{2,}", line.strip())
    if len(parts) >= columns:
        return parts[column].strip()
    # A single cell on a two-column row belongs to the left column
    return parts[0].strip() if column == 0 else ""


def _is_stop_line(value: str) -> bool:
    return bool(_BLOCK_LABEL_RE.search(value) or _ID_TOKEN_RE.search(value.upper()))


def _extract_party(
    lines: list[str], label_re: re.Pattern, other_re: re.Pattern
) -> tuple[Optional[str], Optional[str]]:
    """(name, address) for the party named by label_re."""
    for idx, line in enumerate(lines):
        m = label_re.search(line)
        if not m:
            continue
        other = other_re.search(line)
        columns = 2 if other else 1
        column = 1 if other and other.start() < m.start() else 0

        if columns == 1:
            inline = line[m.end():].strip(" :-")
            if inline and _looks_like_name(inline):
                return inline, _collect_address(lines, idx + 1, column, columns)

        for j in range(idx + 1, min(idx + 1 + _NAME_WINDOW_LINES, len(lines))):
            value = _column_value(lines[j], column, columns)
            if label_re.search(lines[j]) or other_re.search(lines[j]):
                break
            if _looks_like_name(value):
                return value.strip(" :-,."), _collect_address(lines, j + 1, column, columns)
    return None, None


def _collect_address(lines: list[str], start: int, column: int, columns: int) -> Optional[str]:
    parts: list[str] = []
    for line in lines[start: start + _MAX_ADDRESS_LINES]:
        value = _column_value(line, column, columns)
        if not value or _is_stop_line(value):
            break
        parts.append(value.strip(" ,"))
    return ", ".join(parts) if parts else None


# ---------------------------------------------------------------------------
# Assessment year
# ---------------------------------------------------------------------------

def normalize_year_range(start: str, end: str, shift: int = 0) -> Optional[str]:
    """
    '2024', '25' | '2025' → '2024-25'. shift=1 converts a financial year to
    its assessment year. Ranges that are not consecutive years → None.
    """
    start_year = int(start)
    if len(end) == 4:
        end_year = int(end)
    else:
        century = (start_year // 100) * 100
        end_year = century + int(end)
        if end_year < start_year:
            end_year += 100
    if end_year != start_year + 1:
        return None
    ay_start = start_year + shift
    return f"{ay_start}-{(ay_start + 1) % 100:02d}"


def _year_after_label(lines: list[str], label_re: re.Pattern, shift: int) -> Optional[str]:
    for idx, line in enumerate(lines):
        m = label_re.search(line)
        if not m:
            continue
        for segment in (line[m.end():], lines[idx + 1] if idx + 1 < len(lines) else ""):
            for ym in _YEAR_RANGE_RE.finditer(segment):
                normalized = normalize_year_range(ym.group(1), ym.group(2), shift)
                if normalized:
                    return normalized
    return None


def extract_assessment_year(lines: list[str]) -> Optional[str]:
    """Assessment year as YYYY-YY; a Financial Year value is shifted by one."""
    return _year_after_label(lines, _AY_LABEL_RE, 0) or _year_after_label(
        lines, _FY_LABEL_RE, 1
    )


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def extract_form16_fields(text: str) -> ExtractedDocumentFacts:
    """
    Parse a Form 16 transcript (pdfplumber or OCR output).

    Args:
        text: Plain-text transcript of the whole document.

    Returns:
        ExtractedDocumentFacts with every field that could be located.

    Raises:
        ValueError: text is empty or whitespace only.
    """
    if not text or not text.strip():
        raise ValueError("Cannot extract Form 16 fields from empty text")

    lines = text.splitlines()
    sections = locate_sections(lines)

    numeric = {rule.field: _extract_numeric(lines, sections, rule) for rule in NUMERIC_FIELD_RULES}
    employer_name, employer_address = _extract_party(lines, _EMPLOYER_LABEL_RE, _EMPLOYEE_LABEL_RE)
    employee_name, employee_address = _extract_party(lines, _EMPLOYEE_LABEL_RE, _EMPLOYER_LABEL_RE)

    facts = ExtractedDocumentFacts(
        employer_name=employer_name,
        employer_address=employer_address,
        employee_name=employee_name,
        employee_address=employee_address,
        pan=extract_pan(lines),
        assessment_year=extract_assessment_year(lines),
        deductions=extract_deductions(lines, sections),
        **numeric,
    )

    logger.info(
        "extract_form16_fields: lines=%d part_b=%s chapter_via=%s fields=%d sections=%d",
        len(lines),
        sections.part_b_start is not None,
        sections.deductions_start is not None,
        facts.found_field_count,
        len(facts.deductions),
    )
    return facts


__all__ = [
    "Scope",
    "FieldPattern",
    "NumericFieldRule",
    "DeductionRule",
    "SectionIndex",
    "NUMERIC_FIELD_RULES",
    "DEDUCTION_RULES",
    "GROSS_SALARY_BOUNDS",
    "parse_amount",
    "locate_sections",
    "extract_deductions",
    "extract_pan",
    "extract_assessment_year",
    "normalize_year_range",
    "extract_form16_fields",
]
