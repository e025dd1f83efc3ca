"""
Shared error taxonomy for the ETABS version-control engines.
"""

from .errors import (
    EtabsVcError,
    NotFoundError,
    DuplicateNameError,
    InvalidNameError,
    InvalidParentError,
    ProtectedBranchError,
    HasUncommittedChangesError,
    EmptyMessageError,
    NoWorkingFileError,
    ToolUnavailableError,
    LaunchFailedError,
    NotRunningError,
    AlreadyRunningError,
    OutputExistsError,
    SourceInvalidError,
    CommandFailedError,
    ParseError,
    IOFailureError,
)

__all__ = [
    "EtabsVcError",
    "NotFoundError",
    "DuplicateNameError",
    "InvalidNameError",
    "InvalidParentError",
    "ProtectedBranchError",
    "HasUncommittedChangesError",
    "EmptyMessageError",
    "NoWorkingFileError",
    "ToolUnavailableError",
    "LaunchFailedError",
    "NotRunningError",
    "AlreadyRunningError",
    "OutputExistsError",
    "SourceInvalidError",
    "CommandFailedError",
    "ParseError",
    "IOFailureError",
]
