"""Branch endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from app.api.envelope import CommandResult, ok
from app.dependencies import get_registry
from src.branch_graph import BranchInfo
from src.version_control import (
    BranchListResult,
    DeleteBranchResult,
    ProjectRegistry,
    SwitchBranchResult,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request Models ---

class CreateBranchRequest(BaseModel):
    """
    Request body for creating a branch.

    The new branch starts from a saved version of an existing branch.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "project_path": "C:/Projects/Tower-A",
                "branch_name": "steel-columns",
                "from_branch": "main",
                "from_version": "v1",
                "description": "Steel columns instead of concrete",
            }
        }
    )

    project_path: str = Field(..., min_length=1)
    branch_name: str = Field(..., description="New branch name")
    from_branch: str = Field(..., min_length=1, description="Parent branch")
    from_version: str = Field(..., min_length=1, description="Parent version id")
    description: Optional[str] = Field(default=None)


class SwitchBranchRequest(BaseModel):
    """Request body for switching the current branch."""

    project_path: str = Field(..., min_length=1)
    branch_name: str = Field(..., min_length=1)
    close_current_file: bool = Field(
        default=False,
        description="Close a running ETABS instance (without saving) first"
    )


class DeleteBranchRequest(BaseModel):
    """Request body for deleting a branch."""

    project_path: str = Field(..., min_length=1)
    branch_name: str = Field(..., min_length=1)
    force_delete: bool = Field(
        default=False,
        description="Delete even if the working file has unsaved changes"
    )


# --- Endpoints ---

@router.get("", response_model=CommandResult[BranchListResult])
def list_branches(
    project_path: str = Query(..., min_length=1),
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[BranchListResult]:
    """All branches of a project and the current branch."""
    return ok(registry.get(project_path).list_branches())


@router.post("", response_model=CommandResult[BranchInfo])
def create_branch(
    request: CreateBranchRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[BranchInfo]:
    """Fork a branch from a saved version."""
    logger.info(
        "Creating branch | project=%s branch=%s from=%s/%s",
        request.project_path,
        request.branch_name,
        request.from_branch,
        request.from_version,
    )
    branch = registry.get(request.project_path).create_branch(
        request.branch_name,
        request.from_branch,
        request.from_version,
        description=request.description,
    )
    return ok(branch)


@router.post("/switch", response_model=CommandResult[SwitchBranchResult])
def switch_branch(
    request: SwitchBranchRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[SwitchBranchResult]:
    """Make another branch current."""
    result = registry.get(request.project_path).switch_branch(
        request.branch_name,
        close_current_file=request.close_current_file,
    )
    return ok(result)


@router.post("/delete", response_model=CommandResult[DeleteBranchResult])
def delete_branch(
    request: DeleteBranchRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[DeleteBranchResult]:
    """
    Delete a branch, its versions and its working file.

    The ``main`` branch can never be deleted.
    """
    logger.info(
        "Deleting branch | project=%s branch=%s force=%s",
        request.project_path,
        request.branch_name,
        request.force_delete,
    )
    result = registry.get(request.project_path).delete_branch(
        request.branch_name,
        force=request.force_delete,
    )
    return ok(result)
