"""Person / relationship records as loaded from the database."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class RelationshipType(str, Enum):
    PARENT = "PARENT"
    MARRIED = "MARRIED"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


@dataclass
class Relationship:
    id: str
    type: str
    # PARENT: person_one is the parent, person_two the child.
    person_one_id: str
    person_two_id: str
    family_tree_id: Optional[str] = None


@dataclass
class Person:
    id: str
    first_name: str
    last_name: Optional[str] = None
    birth_date: Optional[date] = None
    death_date: Optional[date] = None
    gender: Optional[str] = None
    photo_path: Optional[str] = None
    biography: Optional[str] = None
    created_by_id: Optional[str] = None
    family_tree_id: Optional[str] = None
    relationships_as_one: list[Relationship] = field(default_factory=list)
    relationships_as_two: list[Relationship] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)
