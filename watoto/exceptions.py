"""Errors raised while building a survival cohort."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"


class WatotoError(Exception):
    """Base class for all cohort and analysis errors."""


class SchemaMismatchError(WatotoError, KeyError):
    """A required response or time column cannot be resolved in the data."""

    def __init__(self, message, column=None):
        super().__init__(message)
        self.column = column

    def __str__(self):
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class IncompleteRecordError(WatotoError, ValueError):
    """A record reached age derivation without any resolvable age."""

    def __init__(self, message, index=None):
        super().__init__(message)
        self.index = index


class MalformedInputError(WatotoError, ValueError):
    """The input table fails basic shape or type expectations."""

    def __init__(self, message, column=None, index=None):
        super().__init__(message)
        self.column = column
        self.index = index
