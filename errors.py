class InterviewError(Exception):
    status_code = 500
    message = "Internal error"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class NotFound(InterviewError):
    status_code = 404
    message = "Not found"


class ValidationError(InterviewError):
    status_code = 400
    message = "Invalid request"


class ExtractionFailure(InterviewError):
    # unreadable resume, the candidate has to upload again
    status_code = 422
    message = "Could not read the resume, please upload it again"


class Conflict(InterviewError):
    status_code = 409
    message = "Interview state changed, refresh and try again"


class CollaboratorFailure(InterviewError):
    status_code = 502
    message = "Upstream AI service failed"


class StorageFailure(InterviewError):
    status_code = 500
    message = "Storage error"
