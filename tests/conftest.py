from __future__ import annotations

from datetime import date
from typing import Callable

import pytest

from familytree.models import Person, Relationship

PersonsFactory = Callable[..., list[Person]]


def build_persons(ids: list[str], rels: list[tuple[str, str, str]] = ()) -> list[Person]:
    """Persons in ``ids`` order; ``rels`` are (type, person_one_id, person_two_id).

    Each relationship is attached the way the database query does it: to the
    personOne side's ``relationships_as_one`` and the personTwo side's
    ``relationships_as_two``, for whichever endpoints are present.
    """

    persons = [Person(id=pid, first_name=pid) for pid in ids]
    by_id = {p.id: p for p in persons}
    for n, (rtype, one, two) in enumerate(rels):
        rel = Relationship(id=f"r{n}", type=rtype, person_one_id=one, person_two_id=two)
        if one in by_id:
            by_id[one].relationships_as_one.append(rel)
        if two in by_id:
            by_id[two].relationships_as_two.append(rel)
    return persons


@pytest.fixture()
def persons_factory() -> PersonsFactory:
    return build_persons


@pytest.fixture()
def fixed_today() -> date:
    # Keep tests deterministic.
    return date(2026, 1, 20)
