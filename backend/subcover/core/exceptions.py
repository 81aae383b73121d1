class SubCoverError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

class FatalRunError(SubCoverError):
    """Raised when an assignment run cannot continue and must return an empty result."""

class SourceFileMissingError(FatalRunError):
    """Raised when a required input file does not exist."""
    def __init__(self, source: str, path: str):
        super().__init__(f"{source} file not found: {path}", details={"source": source, "path": path})

class TimetableFormatError(FatalRunError):
    """Raised when the timetable text is malformed and the one-shot repair did not fix it."""

class AbsenteeSourceError(FatalRunError):
    """Raised when the absentee list cannot be loaded or parsed at all."""
