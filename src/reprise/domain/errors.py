"""Domain exceptions."""


class RepriseError(Exception):
    """Base class for all Reprise errors."""


class InvalidEmailTimeError(RepriseError, ValueError):
    """A profile's email_time is not a valid local HH:MM."""

    def __init__(self, value: str):
        super().__init__(f"Invalid email_time {value!r}: expected HH:MM")
        self.value = value


class UserNotFoundError(RepriseError, LookupError):
    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class ItemNotFoundError(RepriseError, LookupError):
    def __init__(self, item_id: str):
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id


class AlreadyRevisitedTodayError(RepriseError):
    """A revisit was already recorded for this item on the current local date."""

    def __init__(self, item_id: str):
        super().__init__(f"Item {item_id} has already been revisited today")
        self.item_id = item_id


class StoreUnavailableError(RepriseError):
    """The backing store could not be read or written."""
