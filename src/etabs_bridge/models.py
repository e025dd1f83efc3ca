"""
Pydantic models for ETABS process control and the ETABS sidecar CLI.

The sidecar prints one JSON ``Result<T>`` document per command. Its field
names are camelCase; models accept both camelCase and snake_case.
"""

from datetime import datetime
from typing import Generic, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class CliModel(BaseModel):
    """Base for models parsed from sidecar output."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class CliResult(CliModel, Generic[T]):
    """Result wrapper printed by every sidecar command."""

    success: bool = Field(description="Whether the operation succeeded")
    error: Optional[str] = Field(default=None, description="Error message on failure")
    timestamp: Optional[datetime] = Field(default=None, description="Completion time")
    data: Optional[T] = Field(default=None, description="Command-specific payload")


class ValidationData(CliModel):
    """Payload of the ``validate`` command."""

    etabs_installed: bool = Field(default=False)
    etabs_version: Optional[str] = Field(default=None)
    file_valid: Optional[bool] = Field(default=None)
    file_path: Optional[str] = Field(default=None)
    file_exists: Optional[bool] = Field(default=None)
    file_extension: Optional[str] = Field(default=None)
    is_analyzed: Optional[bool] = Field(default=None)
    validation_messages: list[str] = Field(default_factory=list)


class GenerateE2KData(CliModel):
    """Payload of the ``generate-e2k`` command."""

    input_file: str
    output_file: Optional[str] = Field(default=None)
    file_exists: bool = Field(default=False)
    file_extension: Optional[str] = Field(default=None)
    output_exists: Optional[bool] = Field(default=None)
    generation_successful: Optional[bool] = Field(default=None)
    file_size_bytes: Optional[int] = Field(default=None)
    generation_time_ms: Optional[int] = Field(default=None)
    messages: list[str] = Field(default_factory=list)


class EtabsStatus(BaseModel):
    """
    Polled status of the tracked ETABS process.

    Only valid at the moment it was produced.
    """

    is_running: bool = Field(description="Whether a tracked ETABS process is alive")
    open_file_path: Optional[str] = Field(default=None, description="File it was launched with")
    process_id: Optional[int] = Field(default=None)
    can_save: bool = Field(default=False, description="Whether a save-before-close is possible")


class OpenResult(BaseModel):
    """Result of launching ETABS on a file."""

    opened: bool
    file_path: str
    process_id: Optional[int] = None


class CloseResult(BaseModel):
    """Result of closing the tracked ETABS process."""

    closed: bool
    changes_saved: bool


class ExportResult(BaseModel):
    """Result of generating an E2K export."""

    output_path: str = Field(description="Path of the generated .e2k file")
    size_bytes: int = Field(ge=0)
    duration_ms: int = Field(ge=0)
    messages: list[str] = Field(
        default_factory=list,
        description="Sequential progress log (informational only)"
    )


class CliInfo(BaseModel):
    """Availability of the sidecar CLI."""

    available: bool
    version: Optional[str] = None
