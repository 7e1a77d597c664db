"""
Project service - creation and ownership-checked lookup.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from architect.exceptions import AccountNotFoundError, InvalidInputError, ProjectNotFoundError
from architect.logging_config import get_logger
from architect.models import Account, Project

logger = get_logger(__name__)


class ProjectService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_project(self, user_id: uuid.UUID, title: str) -> Project:
        title = (title or "").strip()
        if not title:
            raise InvalidInputError("Project title is required")
        if await self.db.get(Account, user_id) is None:
            raise AccountNotFoundError(user_id)

        project = Project(user_id=user_id, title=title[:255])
        self.db.add(project)
        await self.db.flush()

        logger.info("project_created", project_id=str(project.project_id), user_id=str(user_id))
        return project

    async def get_project(self, user_id: uuid.UUID, project_id: uuid.UUID) -> Project:
        """Raises ProjectNotFoundError if missing or owned by someone else."""
        result = await self.db.execute(
            select(Project).where(Project.project_id == project_id, Project.user_id == user_id)
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project
