"""
Layer 4 — Document number and type extraction
Heuristics tuned for Brazilian IDs (RG, CNH, CPF) and passports.
"""
import re
from datetime import date
from enum import Enum
from typing import List, Optional

from .dates import DATE_RE


class DocumentType(str, Enum):
    ID = 'id'
    PASSPORT = 'passport'
    UNKNOWN = 'unknown'


# Taxpayer ID (CPF): 000.000.000-00
TAXPAYER_ID_RE = re.compile(r'\b\d{3}[.\s]?\d{3}[.\s]?\d{3}[-\s]?\d{2}\b')
# National ID (RG): 00.000.000-X
NATIONAL_ID_RE = re.compile(r'\b\d{1,2}[.\s]?\d{3}[.\s]?\d{3}[-\s]?[0-9X]\b')
PASSPORT_NUMBER_RE = re.compile(r'\b[A-Z]{1,2}\d{6,8}\b')
LABELLED_NUMBER_RE = re.compile(r'\d[\d.\-]{4,}[\dX]')
DIGIT_RUN_RE = re.compile(r'\d+')

NATIONAL_ID_LABELS = (
    'REGISTRO GERAL',
    'CARTEIRA DE IDENTIDADE',
    'IDENTIDADE',
    'DOC. IDENTIDADE',
    'DNI',
    'ID NO',
    'RG',
)
DRIVER_LICENSE_LABELS = (
    'CARTEIRA NACIONAL DE HABILITA',
    'HABILITAÇÃO',
    'HABILITACAO',
    'Nº REGISTRO',
    'N° REGISTRO',
    'REGISTRO',
    'CNH',
    'LICENSE NO',
    'DRIVER LICENSE',
    'LICENCIA',
)
PASSPORT_KEYWORDS = (
    'PASSAPORTE',
    'PASSPORT',
    'PASAPORTE',
    'PASSEPORT',
    'REISEPASS',
)
MRZ_PASSPORT_MARKER = 'P<'


def _strip_spaces(value: str) -> str:
    return re.sub(r'\s', '', value)


def _label_pattern(label: str) -> re.Pattern:
    # Short labels like "RG" must not match inside words
    return re.compile(r'(?<![A-Z])' + re.escape(label) + r'(?![A-Z])')


def _number_near_label(lines: List[str], labels) -> Optional[str]:
    patterns = [_label_pattern(label) for label in labels]
    for idx, line in enumerate(lines):
        for pattern in patterns:
            match = pattern.search(line)
            if not match:
                continue
            # Prefer the remainder of the labelled line, then the next line
            candidates = [line[match.end():]]
            if idx + 1 < len(lines):
                candidates.append(lines[idx + 1])
            for candidate in candidates:
                for number in LABELLED_NUMBER_RE.finditer(candidate):
                    value = number.group(0).strip()
                    if DATE_RE.fullmatch(value):
                        continue
                    return _strip_spaces(value).strip('.-/')
    return None


def _longest_digit_run(text: str, birth_date: Optional[date]) -> Optional[str]:
    excluded = set()
    if birth_date is not None:
        excluded.add(birth_date.strftime('%Y%m%d'))
        excluded.add(birth_date.strftime('%d%m%Y'))

    runs = [
        run for run in DIGIT_RUN_RE.findall(text)
        if 7 <= len(run) <= 12 and run not in excluded
    ]
    if not runs:
        return None
    return max(runs, key=len)


def extract_document_number(text: str, birth_date: Optional[date] = None) -> Optional[str]:
    """
    Pick the most likely document number from OCR text.

    Priority: taxpayer ID, number next to a national-ID label, number next
    to a driver's-license label, national-ID shape anywhere, passport
    number shape, then the longest 7-12 digit run that is not the birth
    date itself.
    """
    if not text:
        return None
    upper = text.upper()
    lines = [ln.strip() for ln in upper.splitlines() if ln.strip()]

    match = TAXPAYER_ID_RE.search(upper)
    if match:
        return _strip_spaces(match.group(0))

    number = _number_near_label(lines, NATIONAL_ID_LABELS)
    if number:
        return number

    number = _number_near_label(lines, DRIVER_LICENSE_LABELS)
    if number:
        return number

    match = NATIONAL_ID_RE.search(upper)
    if match:
        return _strip_spaces(match.group(0))

    match = PASSPORT_NUMBER_RE.search(upper)
    if match:
        return match.group(0)

    return _longest_digit_run(upper, birth_date)


def classify_document_type(text: str) -> DocumentType:
    upper = (text or '').upper()
    if MRZ_PASSPORT_MARKER in upper or any(k in upper for k in PASSPORT_KEYWORDS):
        return DocumentType.PASSPORT
    return DocumentType.ID
