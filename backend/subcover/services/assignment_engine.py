from __future__ import annotations

from datetime import date
import logging
import re

from subcover.core.config import AssignmentPolicy, Settings, get_settings
from subcover.core.exceptions import FatalRunError
from subcover.schemas.assignment import AssignmentRunResult, SubstituteAssignment
from subcover.schemas.teacher import DAY_ORDER, ScheduleSlot, Teacher
from subcover.services.assignment_store import AssignmentStore
from subcover.services.directory import TeacherDirectory, load_teacher_directory
from subcover.services.names import normalize_name
from subcover.services.process_log import ProcessLog
from subcover.services.verification import VerificationService
from subcover.services.workload import WorkloadState

logger = logging.getLogger(__name__)

_GRADE_DIGITS = re.compile(r"\d+")


def class_grade(class_name: str) -> int:
    match = _GRADE_DIGITS.search(class_name or "")
    return int(match.group()) if match else 0


def weekday_name(target_date: date) -> str:
    return DAY_ORDER[target_date.weekday()]


class AssignmentEngine:
    """Assigns substitutes for one date from the configured timetable, roster and store.

    A run never raises for semantic problems: unknown names, teachers with no
    classes, uncovered periods and grade fallbacks all become warnings. Only a
    missing or unrepairable timetable, or an unreadable absentee snapshot,
    abort the run; ``run`` turns those into an empty result with one FATAL
    warning and ``run_strict`` re-raises them.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: AssignmentStore | None = None,
        policy: AssignmentPolicy | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.policy = policy or self.settings.assignment_policy()
        self.store = store or AssignmentStore(
            self.settings.data_dir,
            absentees_filename=self.settings.absentees_filename,
        )
        self.verifier = VerificationService(self.policy)

    def run(self, target_date: date, absent_teacher_names: list[str] | None = None) -> AssignmentRunResult:
        log = ProcessLog()
        with self.store.lock_for(target_date):
            try:
                return self._execute(target_date, absent_teacher_names, log)
            except FatalRunError as exc:
                logger.error("Assignment run for %s aborted: %s", target_date, exc.message)
                log.error("run_aborted", exc.message)
                warning = f"FATAL: {exc.message}"
                self.store.append_history(target_date, [warning], log.entries)
                return AssignmentRunResult(
                    target_date=target_date,
                    day=weekday_name(target_date),
                    warnings=[warning],
                    logs=log.entries,
                    fatal=True,
                )

    def run_strict(self, target_date: date, absent_teacher_names: list[str] | None = None) -> AssignmentRunResult:
        log = ProcessLog()
        with self.store.lock_for(target_date):
            return self._execute(target_date, absent_teacher_names, log)

    def _execute(
        self,
        target_date: date,
        absent_teacher_names: list[str] | None,
        log: ProcessLog,
    ) -> AssignmentRunResult:
        warnings: list[str] = []
        day = weekday_name(target_date)
        logger.info("Starting substitute assignment for %s (%s)", target_date, day)

        with log.step("load_sources") as step:
            directory = load_teacher_directory(self.settings)
            warnings.extend(directory.warnings)
            prior = self.store.load_assignments(target_date, warnings)
            if absent_teacher_names is None:
                absent_teacher_names = [record.name for record in self.store.load_absentees(target_date)]
                if not absent_teacher_names:
                    warnings.append(f"No absent teachers recorded for {target_date.isoformat()}")
            step["details"] = (
                f"{len(directory.registry)} teachers, {len(prior)} prior assignments, "
                f"{len(absent_teacher_names)} absentees"
            )

        state = WorkloadState.seeded_from(prior)
        warnings.extend(self._prior_conflicts(prior, absent_teacher_names, directory))

        with log.step("resolve_absentees") as step:
            absentees = self._resolve_absentees(absent_teacher_names, directory, warnings)
            step["details"] = f"{len(absentees)} of {len(absent_teacher_names)} names resolved"
            if len(absentees) < len(absent_teacher_names):
                step["status"] = "warning"

        covered = {assignment.slot_key() for assignment in prior}
        pairs = self._affected_pairs(absentees, day, directory, covered, warnings)
        pool = self._candidate_pool(absentees, prior, directory)
        log.info("build_candidate_pool", f"{len(pool)} candidates for {len(pairs)} affected periods")

        created: list[SubstituteAssignment] = []
        uncovered = 0
        with log.step("assign_substitutes") as step:
            for absent_teacher, slot in pairs:
                chosen, used_fallback = self._select(pool, slot, day, directory, state)
                if chosen is None:
                    uncovered += 1
                    warnings.append(
                        f"No substitute found for {absent_teacher.canonical_name} "
                        f"period {slot.period} ({slot.class_name})"
                    )
                    continue
                if used_fallback:
                    warnings.append(
                        f"Grade fallback: {chosen.canonical_name} (grade {chosen.grade_level}) "
                        f"assigned to cover {slot.class_name} (grade {class_grade(slot.class_name)})"
                    )
                assignment = SubstituteAssignment(
                    original_teacher=absent_teacher.canonical_name,
                    period=slot.period,
                    class_name=slot.class_name,
                    substitute=chosen.canonical_name,
                    substitute_phone=chosen.phone,
                    day=day,
                )
                state.record(chosen.phone, slot.period)
                created.append(assignment)
                logger.info(
                    "Assigned %s to cover period %d, class %s for %s",
                    chosen.canonical_name,
                    slot.period,
                    slot.class_name,
                    absent_teacher.canonical_name,
                )
            step["details"] = f"{len(created)} assigned, {uncovered} uncovered"
            if uncovered:
                step["status"] = "warning"

        combined = prior + created
        with log.step("verify_assignments") as step:
            reports = self.verifier.verify(combined, grid=directory.grid, registry=directory.registry, day=day)
            failed = [report for report in reports if not report.passed]
            for report in failed:
                warnings.append(f"Verification failed - {report.check}: {report.details}")
            step["details"] = f"{len(reports) - len(failed)} of {len(reports)} checks passed"
            if failed:
                step["status"] = "warning"

        if uncovered:
            warnings.append(f"{uncovered} affected period(s) could not be covered")

        log.info("save_results", f"{len(combined)} assignments, {len(warnings)} warnings")
        self.store.save_assignments(target_date, combined, warnings, log.entries)
        logger.info(
            "Finished substitute assignment for %s: %d new, %d warnings",
            target_date,
            len(created),
            len(warnings),
        )
        return AssignmentRunResult(
            target_date=target_date,
            day=day,
            assignments=created,
            warnings=warnings,
            logs=log.entries,
            verification=reports,
        )

    def _prior_conflicts(
        self,
        prior: list[SubstituteAssignment],
        absent_teacher_names: list[str],
        directory: TeacherDirectory,
    ) -> list[str]:
        absent_ids: set[str] = set()
        absent_keys: set[str] = set()
        for raw_name in absent_teacher_names:
            absent_keys.add(normalize_name(raw_name))
            teacher = directory.resolver.resolve(raw_name)
            if teacher is not None:
                absent_ids.add(teacher.canonical_id)
        absent_keys.discard("")

        conflicts: list[str] = []
        for assignment in prior:
            substitute = directory.registry.find_by_phone(assignment.substitute_phone) or directory.resolver.resolve(
                assignment.substitute
            )
            in_absent_set = substitute is not None and substitute.canonical_id in absent_ids
            if in_absent_set or normalize_name(assignment.substitute) in absent_keys:
                conflicts.append(
                    f"Conflict: {assignment.substitute} is marked absent but already covers "
                    f"period {assignment.period} ({assignment.class_name}) for {assignment.original_teacher}"
                )
        return conflicts

    def _resolve_absentees(
        self,
        absent_teacher_names: list[str],
        directory: TeacherDirectory,
        warnings: list[str],
    ) -> list[Teacher]:
        resolved: list[Teacher] = []
        seen: set[str] = set()
        for raw_name in absent_teacher_names:
            if not raw_name or not raw_name.strip():
                continue
            teacher = directory.resolver.resolve(raw_name)
            if teacher is None:
                warnings.append(f"Absent teacher not found in timetable or roster: {raw_name.strip()}")
                continue
            if teacher.canonical_id in seen:
                logger.debug("Skipping duplicate absentee %r (%s)", raw_name, teacher.canonical_name)
                continue
            seen.add(teacher.canonical_id)
            resolved.append(teacher)
        return resolved

    def _affected_pairs(
        self,
        absentees: list[Teacher],
        day: str,
        directory: TeacherDirectory,
        covered: set[tuple[str, int, str]],
        warnings: list[str],
    ) -> list[tuple[Teacher, ScheduleSlot]]:
        pairs: list[tuple[Teacher, ScheduleSlot]] = []
        for teacher in absentees:
            slots = directory.timetable.slots_for(teacher.canonical_name, day)
            if not slots:
                warnings.append(f"No classes scheduled for {teacher.canonical_name} on {day}")
                continue
            for slot in slots:
                if (teacher.canonical_name, slot.period, slot.class_name) in covered:
                    continue
                pairs.append((teacher, slot))
        return pairs

    def _candidate_pool(
        self,
        absentees: list[Teacher],
        prior: list[SubstituteAssignment],
        directory: TeacherDirectory,
    ) -> list[Teacher]:
        # A substitute already used today is not reused for another absence,
        # even when the per-period checks would allow it.
        excluded = {teacher.canonical_id for teacher in absentees}
        used_phones = {assignment.substitute_phone for assignment in prior if assignment.substitute_phone}
        for assignment in prior:
            used = directory.resolver.resolve(assignment.substitute)
            if used is not None:
                excluded.add(used.canonical_id)
        return [
            teacher
            for teacher in directory.registry.with_phone()
            if teacher.canonical_id not in excluded and teacher.phone not in used_phones
        ]

    def _grade_preferred(self, teacher: Teacher, target_grade: int) -> bool:
        if teacher.grade_level < target_grade:
            return False
        if self.policy.reserve_senior_for_fallback:
            return not self._grade_fallback(teacher, target_grade)
        return True

    def _grade_fallback(self, teacher: Teacher, target_grade: int) -> bool:
        return target_grade <= self.policy.junior_grade_ceiling and teacher.grade_level >= self.policy.senior_grade_floor

    def _select(
        self,
        pool: list[Teacher],
        slot: ScheduleSlot,
        day: str,
        directory: TeacherDirectory,
        state: WorkloadState,
    ) -> tuple[Teacher | None, bool]:
        target_grade = class_grade(slot.class_name)
        busy = directory.timetable.teachers_at(day, slot.period)

        available = [
            teacher
            for teacher in pool
            if teacher.canonical_name not in busy
            and not state.holds_period(teacher.phone, slot.period)
            and state.has_capacity(teacher.phone, self.policy.max_daily_workload)
        ]
        preferred = [teacher for teacher in available if self._grade_preferred(teacher, target_grade)]
        if preferred:
            candidates, used_fallback = preferred, False
        else:
            candidates = [teacher for teacher in available if self._grade_fallback(teacher, target_grade)]
            used_fallback = True
        if not candidates:
            return None, False
        # min() keeps the first of equal workloads, so ties follow pool order.
        return min(candidates, key=lambda teacher: state.workload(teacher.phone)), used_fallback
