from typing import List, Optional


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core"""

    code = "SchedulingError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidRequest(SchedulingError):
    """Malformed input: party size out of range, bad time/date, duration <= 0"""

    code = "InvalidRequest"

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class NoAvailability(SchedulingError):
    """No eligible table and no viable combination for the request"""

    code = "NoAvailability"

    def __init__(self, message: str, alternatives=None, suggested_times=None, combinations=None, waitlist_entry=None):
        super().__init__(message)
        self.waitlist_entry = waitlist_entry
        self.alternatives = alternatives or []
        self.suggested_times = suggested_times or []
        self.combinations = combinations or []


class ConflictDetected(SchedulingError):
    """The commit-time re-check found an overlap the availability snapshot missed"""

    code = "ConflictDetected"

    def __init__(self, message: str, table_id=None):
        super().__init__(message)
        self.table_id = table_id


class InvalidState(SchedulingError):
    """An entry or reservation is not in the status the operation requires"""

    code = "InvalidState"


class NotFound(SchedulingError):
    """A referenced table, area, customer, reservation or waitlist entry does not exist"""

    code = "NotFound"


class DeadlineExceeded(SchedulingError):
    """A caller-supplied deadline aborted a multi-candidate scan"""

    code = "DeadlineExceeded"
