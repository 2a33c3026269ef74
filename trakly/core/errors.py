from typing import Optional


class TraklyError(Exception):
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"message": self.message, "field": self.field, "error": type(self).__name__}


# Task creation
class SlotUnavailable(TraklyError):
    pass


class QuotaExceeded(TraklyError):
    pass


class UnknownSubject(TraklyError):
    pass


class TaskNotFound(TraklyError):
    status_code = 404


class NotTaskOwner(TraklyError):
    status_code = 403


class StoreUnavailable(TraklyError):
    status_code = 503


class ExtractionUnavailable(TraklyError):
    status_code = 503


class InvalidUpload(TraklyError):
    pass
