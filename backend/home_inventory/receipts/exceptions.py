from home_inventory.common.exceptions import AppError, NextAction


class ReceiptException(AppError):
    """Base exception for receipt review and confirmation errors"""
    pass


class FileValidationError(ReceiptException):
    """Invalid file format, size or corrupted file"""
    next_action = NextAction.RETAKE


class ReceiptNotEditableError(ReceiptException):
    next_action = NextAction.NONE

    def __init__(self, receipt_id: int, status: str):
        self.receipt_id = receipt_id
        self.status = status
        super().__init__(f"Receipt {receipt_id} is {status} and its items can no longer be changed.")


class AlreadyConfirmedError(ReceiptException):
    next_action = NextAction.NONE

    def __init__(self, receipt_id: int):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt {receipt_id} has already been confirmed.")


class ConfirmationInProgressError(ReceiptException):
    next_action = NextAction.RETRY

    def __init__(self, receipt_id: int):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt {receipt_id} is being confirmed by another request.")


class EmptyConfirmationError(ReceiptException):
    """A receipt cannot be confirmed without at least one item"""
    next_action = NextAction.EDIT


class ConfirmedReceiptDeletionError(ReceiptException):
    next_action = NextAction.EDIT

    def __init__(self, receipt_id: int, linked_items: int):
        self.receipt_id = receipt_id
        self.linked_items = linked_items
        super().__init__(
            f"Receipt {receipt_id} is confirmed and linked to {linked_items} inventory item(s). "
            f"Pass acknowledge_linked_items=true to delete it; the inventory items are kept."
        )


class ConfirmationTransactionError(ReceiptException):
    next_action = NextAction.RETRY

    def __init__(self, receipt_id: int):
        self.receipt_id = receipt_id
        super().__init__(f"Saving receipt {receipt_id} failed. Nothing was saved; the receipt is still a draft.")


class ReviewChangedError(ReceiptException):
    """Submitted items were rejected or confirmed by another request while this one was validating"""
    next_action = NextAction.RETRY

    def __init__(self, receipt_id: int):
        self.receipt_id = receipt_id
        super().__init__(f"Items of receipt {receipt_id} changed during confirmation. Reload the receipt and try again.")
