import sys
from datetime import date

from subcover.core.config import get_settings
from subcover.services.assignment_store import AssignmentStore
from subcover.services.directory import load_teacher_directory
from subcover.services.verification import VerificationService

settings = get_settings()
target = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else date.today()
store = AssignmentStore(settings.data_dir, absentees_filename=settings.absentees_filename)

warnings = []
assignments = store.load_assignments(target, warnings)
directory = load_teacher_directory(settings)
verifier = VerificationService(settings.assignment_policy())

print(f"Teachers: {len(directory.registry)}")
print(f"  - Substitutes with phone: {len(directory.registry.with_phone())}")
print(f"  - Regular (in timetable): {sum(1 for t in directory.registry if t.is_regular)}")
print(f"Assignments for {target.isoformat()}: {len(assignments)}")
for warning in warnings:
    print(f"  ! {warning}")

stats = verifier.summarize(assignments, registry=directory.registry)
print(f"Substitutes used: {stats.substitutes_used} (regular teachers: {stats.regular_teachers_used})")

for report in verifier.verify(assignments, grid=directory.grid, registry=directory.registry, day=target.strftime("%A").lower()):
    print(f"[{report.status}] {report.check}: {report.details}")

history = store.load_history(target)
print(f"History runs: {len(history)}")
if history:
    print(f"Last run: {history[-1].get('savedAt')} ({history[-1].get('assignmentCount')} assignments)")
