"""Error types shared by the scheduler, the card store and the API."""


class StudyCardsError(Exception):
    """Base class for all Study Cards errors."""


class InvalidIntervalError(StudyCardsError, ValueError):
    """A revision interval or unit cannot be used for scheduling."""


class StoreUnavailableError(StudyCardsError):
    """The card store could not be reached or rejected the operation."""


class NotFoundError(StudyCardsError, LookupError):
    """The requested card or quiz session does not exist."""
