from home_inventory.common.exceptions import AppError, NextAction

class LocationCycleError(AppError):
    next_action = NextAction.EDIT

    def __init__(self):
        super().__init__("Location cannot be its own parent or child of its own child.")

class LocationHasChildrenError(AppError):
    next_action = NextAction.EDIT

    def __init__(self):
        super().__init__("Cannot delete location containing sub-locations.")

class LocationInUseError(AppError):
    next_action = NextAction.EDIT

    def __init__(self, location_id: int):
        self.location_id = location_id
        super().__init__(f"Location {location_id} still holds inventory items and cannot be deleted.")
