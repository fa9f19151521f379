from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import HTTPException

from .models import Gender


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    s = value.strip()
    return s if s else None


def _parse_form_date(value: str | None, *, field: str) -> date | None:
    s = _blank_to_none(value)
    if s is None:
        return None
    try:
        # Browsers send YYYY-MM-DD; tolerate a trailing time part.
        return date.fromisoformat(s[:10])
    except ValueError:
        raise HTTPException(status_code=400, detail=f"invalid {field}: {value}")


def _normalize_gender(value: str | None) -> str | None:
    g = (value or "").strip().upper()
    if g in {m.value for m in Gender}:
        return g
    return None


def map_person_form(
    *,
    first_name: str,
    last_name: str | None = None,
    birth_date: str | None = None,
    death_date: str | None = None,
    gender: str | None = None,
    notes: str | None = None,
    photo_path: str | None = None,
) -> dict[str, Any]:
    """Map person form fields to ``person`` column values.

    Blank strings become NULL, unknown genders are dropped, and the free-text
    ``notes`` field is stored as the biography.
    """

    first = _blank_to_none(first_name)
    if first is None:
        raise HTTPException(status_code=400, detail="First name is required")

    birth = _parse_form_date(birth_date, field="birth_date")
    death = _parse_form_date(death_date, field="death_date")
    if birth and death and death < birth:
        raise HTTPException(status_code=400, detail="death_date is before birth_date")

    return {
        "first_name": first,
        "last_name": _blank_to_none(last_name),
        "birth_date": birth,
        "death_date": death,
        "gender": _normalize_gender(gender),
        "biography": _blank_to_none(notes),
        "photo_path": _blank_to_none(photo_path),
    }


def calculate_age(birth_date: date | None, death_date: date | None = None, *, today: date | None = None) -> int | None:
    if birth_date is None:
        return None
    end = death_date or today or date.today()
    age = end.year - birth_date.year
    if (end.month, end.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def format_date_range(birth_date: date | None, death_date: date | None) -> str:
    """``"1940 - 2001"``; a living person with a known birth reads ``"1940 - present"``."""
    birth = str(birth_date.year) if birth_date else "?"
    if death_date:
        death = str(death_date.year)
    elif birth_date:
        death = "present"
    else:
        death = "?"
    return f"{birth} - {death}"
