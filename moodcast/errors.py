"""
errors.py

Exceptions raised by the persistence collaborators. Insufficient data and a
missing model are reported through return values, not exceptions.
"""


class MoodcastError(Exception):
    """Base class for moodcast errors."""


class PersistenceError(MoodcastError):
    """Reading or writing the local cache or the remote store failed."""


class ModelNotFoundError(PersistenceError):
    """The requested model does not exist in the store."""


class NotAuthenticatedError(MoodcastError):
    """A remote operation was attempted without a credential."""


class ModelFormatError(MoodcastError):
    """A stored topology or weight list cannot be turned into a network."""
