"""Respondent detail checks for the intro form.

Each ``validate_*`` helper returns an error message or ``None``;
``validate_demographics`` collects them per configured field.
"""
from __future__ import annotations
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .types import DemographicField, SchemaCheck

_EMAIL_RX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
# South African numbers: +27 or 0 followed by nine digits
_PHONE_RX = re.compile(r"^(\+27|0)[0-9]{9}$")
_PHONE_STRIP_RX = re.compile(r"[\s\-()]")
_NAME_RX = re.compile(r"^[a-zA-Z\s'-]+$")
_SCHOOL_GRADE_RX = re.compile(r"^(K|R|PRE-?K|[1-9]|1[0-2])(TH|ST|ND|RD)?$|^GRADE\s*[1-9]|GRADE\s*1[0-2]$", re.I)
_UNI_YEAR_RX = re.compile(
    r"^([1-4](ST|ND|RD|TH)?\s*YEAR|FINAL\s*YEAR|FIRST\s*YEAR|SECOND\s*YEAR|THIRD\s*YEAR|FOURTH\s*YEAR|YEAR\s*[1-4])$",
    re.I,
)

AGE_MIN, AGE_MAX = 10, 100


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RX.match((email or "").strip()))


def is_valid_phone(phone: str) -> bool:
    return bool(_PHONE_RX.match(_PHONE_STRIP_RX.sub("", phone or "")))


def validate_name(name: str) -> Optional[str]:
    trimmed = (name or "").strip()
    if len(trimmed) < 2:
        return "Name must be at least 2 characters long"
    if not _NAME_RX.match(trimmed):
        return "Name should contain only letters, spaces, hyphens, and apostrophes"
    if not re.search(r"[a-zA-Z]", trimmed):
        return "Name must contain at least one letter"
    return None


def validate_age(age: Any) -> Optional[str]:
    m = re.match(r"^\s*[+-]?\d+", str(age if age is not None else ""))
    if not m:
        return "Age must be a valid number"
    num = int(m.group(0))
    if num < AGE_MIN or num > AGE_MAX:
        return f"Please enter a valid age ({AGE_MIN}-{AGE_MAX})"
    return None


def validate_grade(grade: str) -> Optional[str]:
    trimmed = (grade or "").strip().upper()
    if not trimmed:
        return "Grade/Year is required"
    if not _SCHOOL_GRADE_RX.search(trimmed) and not _UNI_YEAR_RX.search(trimmed):
        return ("Please enter a valid grade (e.g., K, R, 1-12) or year of study "
                "(e.g., 1st Year, Final Year)")
    return None


_BY_KEY = {"studentName": validate_name, "age": validate_age, "grade": validate_grade}


def validate_demographics(values: Mapping[str, Any], fields: Iterable[DemographicField]) -> SchemaCheck:
    errors: List[str] = []
    for f in fields:
        raw = values.get(f.key)
        text = str(raw).strip() if raw is not None else ""
        if not text:
            if f.required:
                errors.append(f"{f.label} is required")
            continue

        check = _BY_KEY.get(f.key)
        if check is not None:
            err = check(text)
            if err:
                errors.append(err)

        if f.validation == "email" and not is_valid_email(text):
            errors.append("Please enter a valid email address (e.g., name@example.com)")
        if f.validation == "phone" and not is_valid_phone(text):
            errors.append("Please enter a valid contact number (e.g., 0812345678 or +27812345678)")
    return SchemaCheck(valid=not errors, errors=errors)


def clean_demographics(values: Mapping[str, Any], fields: Iterable[DemographicField]) -> Dict[str, str]:
    """Trimmed string values for the configured fields only."""
    out: Dict[str, str] = {}
    for f in fields:
        raw = values.get(f.key)
        out[f.key] = str(raw).strip() if raw is not None else ""
    return out
