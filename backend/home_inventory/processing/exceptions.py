from typing import Optional
from home_inventory.common.exceptions import AppError, NextAction


class ProcessingError(AppError):
    """Receipt photo was read but the draft could not be saved"""
    next_action = NextAction.RETRY

    def __init__(self, message: str, storage_key: Optional[str] = None):
        self.storage_key = storage_key
        super().__init__(message)
