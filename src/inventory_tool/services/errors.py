"""Exceptions raised by the CSV import services"""
from typing import List


class ImportServiceError(Exception):
    """Base class for errors the import workflow reports to the caller"""


class FileValidationError(ImportServiceError):
    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class MappingValidationError(ImportServiceError):
    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class InvalidTransitionError(ImportServiceError):
    pass


class SessionNotFoundError(ImportServiceError):
    pass


class UnknownColumnError(ImportServiceError):
    pass


class SinkError(Exception):
    """A single record was rejected; the batch continues"""


class SinkUnavailableError(Exception):
    """The record store cannot be reached; the batch is aborted"""
