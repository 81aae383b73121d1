from subcover.schemas.assignment import AbsenceRecord, AssignmentRunResult, SubstituteAssignment  # noqa: F401
from subcover.schemas.process_log import ProcessLogEntry  # noqa: F401
from subcover.schemas.teacher import DAY_ORDER, ScheduleSlot, Teacher  # noqa: F401
from subcover.schemas.verification import AssignmentStatistics, VerificationReport  # noqa: F401
