"""
Project API endpoints.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from architect.database import commit_or_raise, get_db
from architect.dependencies import get_current_user_id
from architect.schemas.schemas import ErrorResponse, ProjectCreate, ProjectResponse
from architect.services.projects import ProjectService

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    project = await ProjectService(db).create_project(user_id, data.title)
    await commit_or_raise(db, "create_project")
    return ProjectResponse.model_validate(project)


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    responses={404: {"model": ErrorResponse, "description": "Project not found"}},
)
async def get_project(
    project_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    project = await ProjectService(db).get_project(user_id, project_id)
    return ProjectResponse.model_validate(project)
