"""
Layer 4 — Birth date extraction
Pulls a birth date out of noisy OCR text and keeps it only if the implied
age is plausible for an adult applicant.

Rules, in priority order:
1. MRZ line (YYMMDD + check digit + sex marker + YYMMDD)
2. Date next to a "date of birth" label (same line or the next one)
3. Every date-shaped substring; the earliest valid one wins
"""
import logging
import re
from datetime import date
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

MIN_AGE = 18
MAX_AGE = 90

MRZ_DATE_RE = re.compile(r'(\d{6})\d[MFX<](\d{6})')
DATE_RE = re.compile(r'(\d{2})\s*[/\-. ]\s*(\d{2})\s*[/\-. ]\s*(\d{4})')
NON_DATE_CHARS_RE = re.compile(r'[^0-9/.\-\s]')

BIRTH_LABELS = (
    'DATA DE NASCIMENTO',
    'DATA NASCIMENTO',
    'NASCIMENTO',
    'DATE OF BIRTH',
    'BIRTH DATE',
    'FECHA DE NACIMIENTO',
    'NACIMIENTO',
    'DATE DE NAISSANCE',
    'NAISSANCE',
    'GEBURTSDATUM',
    'DATA DI NASCITA',
    'NASC',
    'DOB',
)


def calculate_age(birth: date, today: Optional[date] = None) -> int:
    """Whole years between ``birth`` and ``today`` (birthday-aware)."""
    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def verify_majority(age: int) -> bool:
    return age >= MIN_AGE


def is_plausible_birth_date(birth: date, today: Optional[date] = None) -> bool:
    """Implied age must fall within [18, 90]."""
    return MIN_AGE <= calculate_age(birth, today) <= MAX_AGE


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_mrz(text: str, today: date) -> Optional[date]:
    match = MRZ_DATE_RE.search(text)
    if not match:
        return None
    raw = match.group(1)
    yy, mm, dd = int(raw[0:2]), int(raw[2:4]), int(raw[4:6])
    century = 1900 if yy > today.year % 100 else 2000
    return _safe_date(century + yy, mm, dd)


def find_dates(text: str) -> List[date]:
    """Every calendar-valid DD/MM/YYYY-shaped date in ``text``, in order."""
    clean = NON_DATE_CHARS_RE.sub(' ', text)
    found = []
    for day, month, year in DATE_RE.findall(clean):
        parsed = _safe_date(int(year), int(month), int(day))
        if parsed is not None:
            found.append(parsed)
    return found


def _first_plausible(candidates: Iterable[date], today: date) -> Optional[date]:
    for candidate in candidates:
        if is_plausible_birth_date(candidate, today):
            return candidate
    return None


def _near_label(lines: List[str], today: date) -> Optional[date]:
    for idx, line in enumerate(lines):
        if not any(label in line for label in BIRTH_LABELS):
            continue
        window = line if idx + 1 >= len(lines) else f"{line}\n{lines[idx + 1]}"
        found = _first_plausible(find_dates(window), today)
        if found is not None:
            return found
    return None


def extract_birth_date(text: str, today: Optional[date] = None) -> Optional[date]:
    """
    Extract a plausible birth date from OCR text.

    Args:
        text: Raw recognized text (any case)
        today: Reference date for the age check (defaults to today)

    Returns:
        date or None if nothing plausible was found
    """
    if not text:
        return None
    today = today or date.today()
    upper = text.upper()

    mrz = _parse_mrz(upper, today)
    if mrz is not None:
        if is_plausible_birth_date(mrz, today):
            return mrz
        logger.debug(f"MRZ birth date {mrz.isoformat()} rejected as implausible")
        return None

    lines = [ln.strip() for ln in upper.splitlines() if ln.strip()]
    labelled = _near_label(lines, today)
    if labelled is not None:
        return labelled

    plausible = [d for d in find_dates(upper) if is_plausible_birth_date(d, today)]
    if not plausible:
        return None
    # Issue/expiry dates are later; the birth date is the oldest
    return min(plausible)
