from __future__ import annotations

import csv
import io
from typing import Iterator
import uuid

from subcover.schemas.teacher import Teacher

TEACHER_ID_NAMESPACE = uuid.UUID("6f1c8f5e-2d1b-4d8e-9a57-3c0f1b9e7a42")


def teacher_id_for(name_key: str, generation: str = "") -> str:
    return str(uuid.uuid5(TEACHER_ID_NAMESPACE, f"{name_key}|{generation}"))


class TeacherRegistry:
    """Canonical teachers for one run, kept in first-seen order."""

    def __init__(self) -> None:
        self._teachers: dict[str, Teacher] = {}

    def __len__(self) -> int:
        return len(self._teachers)

    def __iter__(self) -> Iterator[Teacher]:
        return iter(list(self._teachers.values()))

    def __contains__(self, canonical_id: object) -> bool:
        return canonical_id in self._teachers

    def add(self, teacher: Teacher) -> Teacher:
        if teacher.canonical_id in self._teachers:
            raise ValueError(f"Teacher {teacher.canonical_id} is already registered")
        self._teachers[teacher.canonical_id] = teacher
        return teacher

    def get(self, canonical_id: str) -> Teacher | None:
        return self._teachers.get(canonical_id)

    def find_by_key(self, name_key: str, generation: str = "") -> Teacher | None:
        for teacher in self._teachers.values():
            if teacher.name_key == name_key and teacher.generation == generation:
                return teacher
        return None

    def find_by_name(self, canonical_name: str) -> Teacher | None:
        for teacher in self._teachers.values():
            if teacher.canonical_name == canonical_name:
                return teacher
        return None

    def find_by_phone(self, phone: str) -> Teacher | None:
        cleaned = "".join((phone or "").split())
        if not cleaned:
            return None
        for teacher in self._teachers.values():
            if teacher.phone == cleaned:
                return teacher
        return None

    def with_phone(self) -> list[Teacher]:
        return [teacher for teacher in self._teachers.values() if teacher.can_substitute]


def export_registry_csv(registry: TeacherRegistry) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["Canonical Name", "Phone Number", "Variations"])
    for teacher in registry:
        writer.writerow([teacher.canonical_name, teacher.phone, "|".join(sorted(teacher.variations))])
    return buffer.getvalue()
