"""
ETABS endpoints.

Process control for a project's ETABS instance plus project-independent
sidecar commands (E2K generation, file validation, CLI info).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.api.envelope import CommandResult, ok
from app.dependencies import get_registry, get_tool_bridge
from src.core.errors import CommandFailedError
from src.etabs_bridge import CliInfo, CloseResult, EtabsBridge, EtabsStatus, ValidationData
from src.version_control import OpenInEtabsResult, ProjectRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request/Response Models ---

class OpenInEtabsRequest(BaseModel):
    """
    Request body for opening a file in ETABS.

    Without ``version_id`` the branch's working file is opened; with it, a
    read-only copy of that saved version.
    """

    project_path: str = Field(..., min_length=1)
    branch_name: Optional[str] = Field(default=None, description="Defaults to the current branch")
    version_id: Optional[str] = Field(default=None)


class CloseEtabsRequest(BaseModel):
    """Request body for closing ETABS."""

    project_path: str = Field(..., min_length=1)
    save_changes: bool = Field(default=False)


class GenerateE2KRequest(BaseModel):
    """Request body for generating an E2K export."""

    edb_path: str = Field(..., min_length=1, description="Source .edb file")
    output_path: Optional[str] = Field(default=None, description="Defaults to the .e2k sibling")
    overwrite: bool = Field(default=False)


class GenerateE2KResponse(BaseModel):
    """Result of an E2K export."""

    e2k_path: str
    file_size: int = Field(ge=0)
    generation_time_ms: int = Field(ge=0)
    messages: list[str] = Field(default_factory=list)


class ValidateFileRequest(BaseModel):
    """Request body for validating an ETABS file."""

    file_path: str = Field(..., min_length=1)


# --- Project-bound endpoints ---

@router.post("/open", response_model=CommandResult[OpenInEtabsResult])
def open_in_etabs(
    request: OpenInEtabsRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[OpenInEtabsResult]:
    """Launch ETABS on a working file or a saved version."""
    result = registry.get(request.project_path).open_in_etabs(
        branch_name=request.branch_name,
        version_id=request.version_id,
    )
    return ok(result)


@router.post("/close", response_model=CommandResult[CloseResult])
def close_etabs(
    request: CloseEtabsRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[CloseResult]:
    """Close the project's ETABS instance, optionally saving first."""
    result = registry.get(request.project_path).close_etabs(save_changes=request.save_changes)
    return ok(result)


@router.get("/status", response_model=CommandResult[EtabsStatus])
def get_etabs_status(
    project_path: str = Query(..., min_length=1),
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[EtabsStatus]:
    """Polled ETABS status; valid only at the moment of the call."""
    return ok(registry.get(project_path).etabs_status())


# --- Sidecar commands ---

@router.post("/generate-e2k", response_model=CommandResult[GenerateE2KResponse])
def generate_e2k(
    request: GenerateE2KRequest,
    bridge: EtabsBridge = Depends(get_tool_bridge),
) -> CommandResult[GenerateE2KResponse]:
    """Export an ETABS design file to E2K text."""
    logger.info("Generating E2K | input=%s overwrite=%s", request.edb_path, request.overwrite)
    result = bridge.export_e2k(
        request.edb_path,
        output_path=request.output_path,
        overwrite=request.overwrite,
    )
    return ok(
        GenerateE2KResponse(
            e2k_path=result.output_path,
            file_size=result.size_bytes,
            generation_time_ms=result.duration_ms,
            messages=result.messages,
        )
    )


@router.post("/validate", response_model=CommandResult[ValidationData])
def validate_etabs_file(
    request: ValidateFileRequest,
    bridge: EtabsBridge = Depends(get_tool_bridge),
) -> CommandResult[ValidationData]:
    """Check that ETABS is installed and the file is a valid model."""
    result = bridge.validate_file(request.file_path)
    if not result.success or result.data is None:
        raise CommandFailedError(f"Validation failed: {result.error or 'no data returned'}")
    return ok(result.data)


@router.get("/cli-info", response_model=CommandResult[CliInfo])
def get_cli_info(bridge: EtabsBridge = Depends(get_tool_bridge)) -> CommandResult[CliInfo]:
    """Whether the ETABS sidecar CLI is installed, and its version."""
    return ok(bridge.cli_info())
