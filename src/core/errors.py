"""
Error taxonomy shared by every engine.

Each exception class names exactly one error kind. The Command Facade reads
``kind`` to build the response envelope; engines never format envelopes.
"""

from typing import Optional


class EtabsVcError(Exception):
    """Base for all domain errors."""

    kind = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(EtabsVcError):
    """Project, branch, version or snapshot is missing."""

    kind = "NotFound"


class DuplicateNameError(EtabsVcError):
    """Branch (or project) name already in use."""

    kind = "DuplicateName"


class InvalidNameError(EtabsVcError):
    """Name fails validation."""

    kind = "InvalidName"


class InvalidParentError(EtabsVcError):
    """Branch lineage reference does not resolve to an existing version."""

    kind = "InvalidParent"


class ProtectedBranchError(EtabsVcError):
    """Attempt to delete the main branch."""

    kind = "ProtectedBranch"


class HasUncommittedChangesError(EtabsVcError):
    """Unforced delete blocked by unsaved working-file changes."""

    kind = "HasUncommittedChanges"


class EmptyMessageError(EtabsVcError):
    """Commit message is blank after trimming."""

    kind = "EmptyMessage"


class NoWorkingFileError(EtabsVcError):
    """Branch has no working file to save."""

    kind = "NoWorkingFile"


class ToolUnavailableError(EtabsVcError):
    """ETABS or its CLI is not installed."""

    kind = "ToolUnavailable"


class LaunchFailedError(EtabsVcError):
    """External process could not be started."""

    kind = "LaunchFailed"


class NotRunningError(EtabsVcError):
    """No tracked external process instance."""

    kind = "NotRunning"


class AlreadyRunningError(EtabsVcError):
    """A tracked external process is still running."""

    kind = "AlreadyRunning"


class OutputExistsError(EtabsVcError):
    """Export target exists and overwrite was not requested."""

    kind = "OutputExists"


class SourceInvalidError(EtabsVcError):
    """Input is not a recognized file for the external tool."""

    kind = "SourceInvalid"


class CommandFailedError(EtabsVcError):
    """The external CLI ran but reported failure or returned unreadable output."""

    kind = "CommandFailed"


class ParseError(EtabsVcError):
    """Diff input is malformed."""

    kind = "ParseError"

    def __init__(
        self,
        message: str,
        category: Optional[str] = None,
        line_number: Optional[int] = None,
    ):
        location = []
        if category:
            location.append(f"category={category}")
        if line_number is not None:
            location.append(f"line={line_number}")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)
        self.category = category
        self.line_number = line_number


class IOFailureError(EtabsVcError):
    """Storage layer fault."""

    kind = "IOFailure"
