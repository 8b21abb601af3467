from home_inventory.common.exceptions import AppError, NextAction

class CategoryInUseError(AppError):
    next_action = NextAction.EDIT

    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(f"Category {category_id} is still assigned to inventory items and cannot be deleted.")
