from typing import Optional


class RegistrationError(Exception):
    """Base class for failures that are shown to the applicant as a status banner."""

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class FormValidationError(RegistrationError):
    status_code = 400


class AccessDeniedError(FormValidationError):
    status_code = 403


class DuplicateApplicationError(RegistrationError):
    status_code = 409


class MissingTokenError(RegistrationError):
    status_code = 401


class GitHubAPIError(RegistrationError):
    status_code = 502


class AuthenticationError(GitHubAPIError):
    status_code = 401


class ContentNotFoundError(GitHubAPIError):
    status_code = 404


class BranchNotFoundError(ContentNotFoundError):
    pass
