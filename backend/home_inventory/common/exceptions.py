import enum
from typing import Any


class NextAction(str, enum.Enum):
    """What the user should do after a failure. Every error maps to one."""
    RETRY = "retry"
    RETAKE = "retake"
    MANUAL_ENTRY = "manual_entry"
    EDIT = "edit"
    REVIEW = "review"
    CONTACT_SUPPORT = "contact_support"
    NONE = "none"


class AppError(Exception):
    """Base class for all application exceptions."""
    next_action: NextAction = NextAction.CONTACT_SUPPORT

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__ or self.__class__.__name__
        super().__init__(self.message)

class ResourceNotFoundError(AppError):
    """Generic error when a requested resource is not found."""
    next_action = NextAction.NONE

    def __init__(self, resource_name: str, identifier: Any):
        self.resource_name = resource_name
        self.identifier = identifier
        super().__init__(f"{resource_name} with identifier {identifier} was not found.")

class ResourceAlreadyExistsError(AppError):
    next_action = NextAction.EDIT

    def __init__(self, resource_name: str, field: str, value: Any):
        super().__init__(f"{resource_name} with {field} '{value}' already exists.")
