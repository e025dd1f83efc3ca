"""Project endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from app.api.envelope import CommandResult, ok
from app.dependencies import get_registry
from src.branch_graph import MAIN_BRANCH, ProjectState
from src.version_control import CreateProjectResult, ProjectRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request Models ---

class CreateProjectRequest(BaseModel):
    """Request body for creating a project."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "project_path": "C:/Projects/Tower-A",
                "project_name": "Tower A",
                "initial_edb_file": "C:/Models/tower-a.edb",
            }
        }
    )

    project_path: str = Field(..., min_length=1, description="Project root directory")
    project_name: str = Field(..., description="Display name")
    initial_edb_file: Optional[str] = Field(
        default=None,
        description="Design file that seeds the main branch's working file"
    )


class OpenProjectRequest(BaseModel):
    """Request body for opening a project."""

    project_path: str = Field(..., min_length=1, description="Project root directory")


# --- Endpoints ---

@router.post("", response_model=CommandResult[CreateProjectResult])
def create_project(
    request: CreateProjectRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[CreateProjectResult]:
    """
    Create a versioned project with a single ``main`` branch.

    When an initial design file is given it becomes main's working file;
    no version exists until the first save.
    """
    logger.info(
        "Creating project | path=%s name=%s",
        request.project_path,
        request.project_name,
    )
    engine = registry.create(
        request.project_path,
        request.project_name,
        initial_file=request.initial_edb_file,
    )
    state = engine.get_state()
    return ok(
        CreateProjectResult(
            project_path=state.project_path,
            project_name=state.project_name,
            created_branches=[MAIN_BRANCH],
            version_control_enabled=state.version_control_enabled,
            state=state,
        )
    )


@router.post("/open", response_model=CommandResult[ProjectState])
def open_project(
    request: OpenProjectRequest,
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[ProjectState]:
    """Open an existing project and return its full state."""
    return ok(registry.get(request.project_path).get_state())


@router.get("/state", response_model=CommandResult[ProjectState])
def get_project_state(
    project_path: str = Query(..., min_length=1, description="Project root directory"),
    registry: ProjectRegistry = Depends(get_registry),
) -> CommandResult[ProjectState]:
    """Project state with working-file flags refreshed from disk."""
    return ok(registry.get(project_path).get_state())
