class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class PlacementConflictError(SchedulerError):
    """Raised when a placement would double-book a teacher or room."""
    def __init__(self, timeslot: str, resource_type: str, resource_id: str, occupant: str | None = None):
        if occupant is None:
            message = f"Unknown {resource_type} {resource_id} for timeslot {timeslot}"
        else:
            message = f"{resource_type.capitalize()} {resource_id} already holds {occupant} at {timeslot}"
        super().__init__(
            message,
            details={
                "timeslot": timeslot,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "occupant": occupant,
            },
        )
        self.status_code = 409
        self.timeslot = timeslot
        self.occupant = occupant

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)
