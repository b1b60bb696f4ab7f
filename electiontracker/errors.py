# electiontracker/errors.py

# Read paths degrade to empty results; write paths raise one of these.


class TallyError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message}


class NotFoundError(TallyError):
    status_code = 404


class UnauthorizedError(TallyError):
    status_code = 403


class SubmissionValidationError(TallyError):
    status_code = 400


class ReferentialIntegrityError(TallyError):
    status_code = 409
