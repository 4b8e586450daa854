class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class PreconditionError(AppError):
    """Raised when an allocation cannot start: nothing to schedule, no slots, no template."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class SolverError(AppError):
    """Raised when the external solver fails, times out or returns an unusable payload."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=502, details=details)

class CommitError(AppError):
    """Raised when persisting a solution fails. The transaction has been rolled back."""
    def __init__(self, message: str = "Failed to save the timetable solution.", details: dict = None):
        super().__init__(message, status_code=500, details=details)

class InvalidSolutionError(AppError):
    """Raised when a solution references slots or attendees outside the schedule."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class InvalidTransitionError(AppError):
    """Raised when a schedule lifecycle transition is not allowed from the current status."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class InvalidAssignmentError(AppError):
    """Raised when a manual edit references unknown rooms or personnel."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class AssignmentConflictError(AppError):
    """Raised when a manual edit would double-book a room or person."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

class DuplicateResourceError(AppError):
    """Raised when a uniquely named resource already exists."""
    def __init__(self, message: str):
        super().__init__(message, status_code=409)
