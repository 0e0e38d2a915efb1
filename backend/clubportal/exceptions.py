"""Portal error taxonomy.

Every invariant violation raised by the service layer is a ``PortalError``.
Each subclass carries the HTTP status, problem type and title used by
``clubportal.api.errors`` to render an RFC 7807 response, so services never
import FastAPI.
"""

from typing import Dict, Optional


class PortalError(Exception):
    """Base class for application-level failures (never retried)"""

    status_code: int = 400
    error_type: str = "bad_request"
    title: str = "Bad Request"
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.detail = detail or self.default_detail
        self.headers = headers
        super().__init__(self.detail)


# 400

class ValidationFailed(PortalError):
    status_code = 400
    error_type = "validation_error"
    title = "Validation Error"
    default_detail = "Validation failed"


class WrongSelectionCount(ValidationFailed):
    error_type = "wrong_selection_count"
    default_detail = "Wrong number of departments selected"


class InvalidUpload(ValidationFailed):
    error_type = "invalid_upload"
    default_detail = "Upload payload is not a valid base64 data URL"


# 401 / 403

class NotAuthenticated(PortalError):
    status_code = 401
    error_type = "unauthorized"
    title = "Unauthorized"
    default_detail = "Authentication required"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(PortalError):
    status_code = 403
    error_type = "forbidden"
    title = "Forbidden"
    default_detail = "Insufficient permissions"


class WrongDomain(Forbidden):
    error_type = "wrong_domain"
    default_detail = "Sign in with your institutional email account"


class ProjectRestricted(Forbidden):
    error_type = "project_restricted"
    default_detail = "Project is outside your departments; send a join request instead"


class NotProjectMember(Forbidden):
    error_type = "not_project_member"
    default_detail = "Join the project first"


# 404

class NotFound(PortalError):
    status_code = 404
    error_type = "not_found"
    title = "Not Found"
    default_detail = "Resource not found"


class UserNotFound(NotFound):
    default_detail = "User not found"


class DepartmentNotFound(NotFound):
    default_detail = "Department not found"


class ProjectNotFound(NotFound):
    default_detail = "Project not found"


class ContributionNotFound(NotFound):
    default_detail = "Contribution not found"


class JoinRequestNotFound(NotFound):
    default_detail = "Join request not found"


class NoPendingRequest(NotFound):
    error_type = "no_pending_request"
    default_detail = "No pending join request for this project"


# 409

class Conflict(PortalError):
    status_code = 409
    error_type = "conflict"
    title = "Conflict"
    default_detail = "Resource conflict"


class CapacityExceeded(Conflict):
    error_type = "capacity_exceeded"
    default_detail = "Capacity exceeded"


class DepartmentFull(CapacityExceeded):
    default_detail = "Department is full"


class ProjectFull(CapacityExceeded):
    default_detail = "Project is full"


class AlreadyProcessed(Conflict):
    error_type = "already_processed"
    default_detail = "Already processed"


class SelectionLocked(Conflict):
    error_type = "selection_locked"
    default_detail = "Departments are already confirmed; ask an admin to change them"


class DuplicateRequest(Conflict):
    error_type = "duplicate_request"
    default_detail = "A pending join request already exists"


class AlreadyMember(Conflict):
    error_type = "already_member"
    default_detail = "Already a member of this project"


class AlreadyInProject(Conflict):
    error_type = "already_in_project"
    default_detail = "Leave your current project first"


class EmailInUse(Conflict):
    error_type = "email_in_use"
    default_detail = "This email already belongs to another account"


# 413

class UploadTooLarge(PortalError):
    status_code = 413
    error_type = "upload_too_large"
    title = "Payload Too Large"
    default_detail = "Upload is too large"


# 429

class TooManyAttempts(PortalError):
    status_code = 429
    error_type = "rate_limit_exceeded"
    title = "Too Many Requests"
    default_detail = "Maximum login attempts exceeded. Please try again in 15 minutes."


# 503

class TransactionAborted(PortalError):
    status_code = 503
    error_type = "transaction_aborted"
    title = "Service Unavailable"
    default_detail = "Too much contention, please retry"
