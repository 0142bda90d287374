"""Exceptions raised across the vocabulary trainer."""


class PhraseDrillError(Exception):
    """Base class for application errors."""


class PhraseSourceError(PhraseDrillError):
    """The phrase store or the API in front of it could not be reached."""


class NoPhrasesAvailableError(PhraseSourceError):
    """The phrase store has nothing left to ask."""


class ExplanationError(PhraseDrillError):
    """The explanation could not be generated."""


class AuthenticationError(PhraseDrillError):
    """Missing or invalid credential for an admin operation."""
