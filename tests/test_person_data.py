from __future__ import annotations

from datetime import date

import pytest
from fastapi import HTTPException

from familytree.person_data import calculate_age, format_date_range, map_person_form


class TestMapPersonForm:
    def test_full_form(self) -> None:
        out = map_person_form(
            first_name=" John ",
            last_name="Doe",
            birth_date="1940-01-15",
            death_date="2001-06-30",
            gender="male",
            notes="Family patriarch.",
            photo_path="/uploads/1.jpg",
        )
        assert out == {
            "first_name": "John",
            "last_name": "Doe",
            "birth_date": date(1940, 1, 15),
            "death_date": date(2001, 6, 30),
            "gender": "MALE",
            "biography": "Family patriarch.",
            "photo_path": "/uploads/1.jpg",
        }

    def test_blanks_become_none(self) -> None:
        out = map_person_form(first_name="Mary", last_name="", birth_date="", gender="", notes="  ")
        assert out["last_name"] is None
        assert out["birth_date"] is None
        assert out["gender"] is None
        assert out["biography"] is None

    def test_unknown_gender_dropped(self) -> None:
        assert map_person_form(first_name="X", gender="robot")["gender"] is None
        assert map_person_form(first_name="X", gender="Other")["gender"] == "OTHER"

    def test_datetime_strings_accepted(self) -> None:
        out = map_person_form(first_name="X", birth_date="1970-07-10T00:00:00.000Z")
        assert out["birth_date"] == date(1970, 7, 10)

    def test_first_name_required(self) -> None:
        with pytest.raises(HTTPException) as exc:
            map_person_form(first_name="   ")
        assert exc.value.status_code == 400

    def test_invalid_date_rejected(self) -> None:
        with pytest.raises(HTTPException) as exc:
            map_person_form(first_name="X", birth_date="15/01/1940")
        assert exc.value.status_code == 400
        assert "birth_date" in exc.value.detail

    def test_death_before_birth_rejected(self) -> None:
        with pytest.raises(HTTPException):
            map_person_form(first_name="X", birth_date="2000-01-01", death_date="1999-12-31")


class TestCalculateAge:
    def test_no_birth_date(self) -> None:
        assert calculate_age(None) is None

    def test_before_and_after_birthday(self, fixed_today: date) -> None:
        assert calculate_age(date(2000, 1, 20), today=fixed_today) == 26
        assert calculate_age(date(2000, 1, 21), today=fixed_today) == 25

    def test_age_at_death(self, fixed_today: date) -> None:
        assert calculate_age(date(1940, 1, 15), date(2001, 1, 14), today=fixed_today) == 60


def test_format_date_range() -> None:
    assert format_date_range(date(1940, 1, 15), date(2001, 6, 30)) == "1940 - 2001"
    assert format_date_range(date(1940, 1, 15), None) == "1940 - present"
    assert format_date_range(None, None) == "? - ?"
    assert format_date_range(None, date(2001, 6, 30)) == "? - 2001"
