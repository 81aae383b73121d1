from __future__ import annotations

import logging
from typing import Literal

from rapidfuzz.distance import Levenshtein

from subcover.core.config import NameMatchThresholds
from subcover.schemas.teacher import Teacher
from subcover.services.names import display_name, generation_suffix, normalize_name, phonetic_key
from subcover.services.registry import TeacherRegistry, teacher_id_for

logger = logging.getLogger(__name__)

NameSource = Literal["timetable", "roster"]


class NameResolver:
    """Collapses spelling variants of a teacher name into one canonical Teacher.

    Matching is exact on the normalized name first. Otherwise every registered
    teacher is scored with a phonetic edit-distance ratio, raised for substring
    and token-containment matches, and pinned to a fixed score when two names
    differ only by a junior/senior suffix. A score above the merge threshold
    joins the existing teacher; anything else creates a new one.
    """

    def __init__(
        self,
        registry: TeacherRegistry,
        thresholds: NameMatchThresholds | None = None,
        *,
        default_grade_level: int = 10,
    ) -> None:
        self.registry = registry
        self.thresholds = thresholds or NameMatchThresholds()
        self.default_grade_level = default_grade_level

    def similarity(
        self,
        name_a: str,
        name_b: str,
        *,
        generation_a: str = "",
        generation_b: str = "",
    ) -> float:
        limits = self.thresholds
        if name_a == name_b and generation_a != generation_b:
            return limits.generation_suffix_score

        key_a = phonetic_key(name_a, length=limits.phonetic_key_length)
        key_b = phonetic_key(name_b, length=limits.phonetic_key_length)
        longest = max(len(key_a), len(key_b), 1)
        score = 1 - Levenshtein.distance(key_a, key_b) / longest

        if name_a and name_b and (name_a in name_b or name_b in name_a):
            score = max(score, limits.substring_score)

        tokens_a = set(name_a.split())
        tokens_b = set(name_b.split())
        shared = tokens_a & tokens_b
        smaller = tokens_a if len(tokens_a) <= len(tokens_b) else tokens_b
        if (
            shared
            and shared == smaller
            and abs(len(tokens_a) - len(tokens_b)) <= limits.max_token_count_gap
        ):
            score = max(score, limits.token_overlap_base + limits.token_overlap_step * len(shared))

        return min(score, 1.0)

    def _best_match(self, name_key: str, generation: str) -> tuple[Teacher | None, float]:
        best: Teacher | None = None
        best_score = 0.0
        for teacher in self.registry:
            score = self.similarity(
                name_key,
                teacher.name_key,
                generation_a=generation,
                generation_b=teacher.generation,
            )
            if score > best_score:
                best, best_score = teacher, score
        return best, best_score

    def _match(self, raw_name: str) -> tuple[Teacher | None, str, str]:
        name_key = normalize_name(raw_name)
        generation = generation_suffix(raw_name)
        if not name_key:
            return None, name_key, generation

        exact = self.registry.find_by_key(name_key, generation)
        if exact is not None:
            return exact, name_key, generation

        candidate, score = self._best_match(name_key, generation)
        if candidate is not None and score > self.thresholds.merge_threshold:
            logger.debug("Matched %r to %s (score %.3f)", raw_name, candidate.canonical_name, score)
            return candidate, name_key, generation
        return None, name_key, generation

    def resolve(self, raw_name: str) -> Teacher | None:
        teacher, _, _ = self._match(raw_name)
        return teacher

    def register_or_match(
        self,
        raw_name: str,
        phone: str | None = None,
        *,
        source: NameSource | None = None,
        grade_level: int | None = None,
    ) -> Teacher:
        teacher, name_key, generation = self._match(raw_name)
        if not name_key:
            raise ValueError(f"Name {raw_name!r} has no usable letters")

        if teacher is None:
            teacher = self.registry.add(
                Teacher(
                    canonical_id=teacher_id_for(name_key, generation),
                    canonical_name=display_name(raw_name),
                    phone=phone or "",
                    grade_level=self.default_grade_level,
                    name_key=name_key,
                    generation=generation,
                )
            )
            logger.debug("Registered new teacher %s", teacher.canonical_name)
        else:
            teacher.fill_phone(phone)

        teacher.add_variation(raw_name)
        if source == "roster":
            teacher.is_substitute = True
            if grade_level is not None:
                teacher.grade_level = grade_level
        elif source == "timetable":
            teacher.is_regular = True
        return teacher
