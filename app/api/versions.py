"""Version endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from app.api.envelope import CommandResult, ok
from app.config import Settings
from app.dependencies import get_registry, get_settings
from src.branch_graph import AnalysisResults, VersionInfo
from src.version_control import (
    CheckoutResult,
    CompareResult,
    DiffType,
    ProjectRegistry,
    SaveVersionResult,
    VersionListResult,
    VersionRef,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request Models ---

class SaveVersionRequest(BaseModel):
    """Request body for saving the working file as a new version."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "project_path": "C:/Projects/Tower-A",
                "branch_name": "main",
                "message": "Initial design",
                "author": "A. Engineer",
                "generate_e2k": True,
            }
        }
    )

    project_path: str = Field(..., min_length=1)
    branch_name: str = Field(..., min_length=1)
    message: str = Field(..., description="Commit message (must not be blank)")
    author: Optional[str] = Field(default=None)
    generate_e2k: bool = Field(default=False, description="Also store an E2K export")


class CheckoutVersionRequest(BaseModel):
    """
    Request body for checking out a version.

    Unsaved working-file changes on the branch are discarded.
    """

    project_path: str = Field(..., min_length=1)
    branch_name: str = Field(..., min_length=1)
    version_id: str = Field(..., min_length=1)
    open_in_etabs: bool = Field(default=False)


class CompareVersionsRequest(BaseModel):
    """Request body for comparing two versions, possibly on different branches."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "project_path": "C:/Projects/Tower-A",
                "version1": {"branch": "main", "version_id": "v1"},
                "version2": {"branch": "steel-columns", "version_id": "v1"},
                "diff_type": "both",
            }
        }
    )

    project_path: str = Field(..., min_length=1)
    version1: VersionRef
    version2: VersionRef
    diff_type: DiffType = Field(default=DiffType.E2K)


class RecordAnalysisRequest(BaseModel):
    """Request body for attaching analysis results to a version."""

    project_path: str = Field(..., min_length=1)
    branch_name: str = Field(..., min_length=1)
    version_id: str = Field(..., min_length=1)
    results: AnalysisResults


# --- Endpoints ---

@router.get("", response_model=CommandResult[VersionListResult])
def list_versions(
    project_path: str = Query(..., min_length=1),
    branch_name: str = Query(..., min_length=1),
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[VersionListResult]:
    """Versions of a branch, newest first, with its working-file state."""
    return ok(registry.get(project_path).list_versions(branch_name))


@router.post("", response_model=CommandResult[SaveVersionResult])
def save_version(
    request: SaveVersionRequest,
    registry: ProjectRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> CommandResult[SaveVersionResult]:
    """Save the branch's working file as a new immutable version."""
    logger.info(
        "Saving version | project=%s branch=%s e2k=%s",
        request.project_path,
        request.branch_name,
        request.generate_e2k,
    )
    result = registry.get(request.project_path).save_version(
        request.branch_name,
        request.message,
        author=request.author or settings.default_author,
        generate_e2k=request.generate_e2k,
    )
    return ok(result)


@router.post("/checkout", response_model=CommandResult[CheckoutResult])
def checkout_version(
    request: CheckoutVersionRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[CheckoutResult]:
    """Overwrite the working file with a saved version."""
    result = registry.get(request.project_path).checkout_version(
        request.branch_name,
        request.version_id,
        open_in_etabs=request.open_in_etabs,
    )
    return ok(result)


@router.post("/compare", response_model=CommandResult[CompareResult])
def compare_versions(
    request: CompareVersionsRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[CompareResult]:
    """Structural E2K diff and/or geometry diff of two versions."""
    result = registry.get(request.project_path).compare_versions(
        request.version1,
        request.version2,
        diff_type=request.diff_type,
    )
    return ok(result)


@router.post("/analysis", response_model=CommandResult[VersionInfo])
def record_analysis(
    request: RecordAnalysisRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[VersionInfo]:
    """Attach analysis results to a saved version."""
    version = registry.get(request.project_path).record_analysis(
        request.branch_name,
        request.version_id,
        request.results,
    )
    return ok(version)
