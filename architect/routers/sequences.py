"""
Implementation prompt endpoints: generation, listing, progress, regeneration.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from architect.database import get_db
from architect.dependencies import get_current_user_id, get_sequence_workflow
from architect.schemas.schemas import (
    ErrorResponse,
    GeneratePromptsRequest,
    ProjectPromptsResponse,
    PromptResponse,
    PromptStatusResponse,
    PromptStatusUpdate,
    SequenceProgress,
    SequenceResponse,
)
from architect.services.prompt_progress import PromptProgress
from architect.services.sequence_workflow import SequenceWorkflow

router = APIRouter(prefix="/api/ai", tags=["prompts"])


@router.post(
    "/generate-prompts",
    response_model=SequenceResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Suite not complete or bad skip list"},
        402: {"model": ErrorResponse, "description": "Insufficient credits"},
        404: {"model": ErrorResponse},
    },
)
async def generate_prompts(
    data: GeneratePromptsRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    workflow: SequenceWorkflow = Depends(get_sequence_workflow),
):
    """Generate the prompt sequence, resume an unfinished one, or return a finished one."""
    sequence = await workflow.generate_sequence(user_id, data.suite_id, data.skip_categories)
    return SequenceResponse.model_validate(sequence)


@router.get(
    "/prompts/by-project/{project_id}",
    response_model=ProjectPromptsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_project_prompts(
    project_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    workflow: SequenceWorkflow = Depends(get_sequence_workflow),
):
    sequence, prompts = await workflow.get_project_sequence(user_id, project_id)
    return ProjectPromptsResponse(
        sequence=SequenceResponse.model_validate(sequence) if sequence else None,
        prompts=[PromptResponse.model_validate(p) for p in prompts],
    )


@router.patch(
    "/prompts/{prompt_id}/status",
    response_model=PromptStatusResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_prompt_status(
    prompt_id: uuid.UUID,
    data: PromptStatusUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    prompt, sequence = await PromptProgress(db).set_prompt_status(user_id, prompt_id, data.status)
    return PromptStatusResponse(
        prompt_id=prompt.prompt_id,
        status=prompt.status,
        completed_at=prompt.completed_at,
        sequence_progress=SequenceProgress(
            completed_prompts=sequence.completed_prompts,
            total_prompts=sequence.total_prompts,
        ),
    )


@router.post(
    "/prompts/{prompt_id}/regenerate",
    response_model=PromptResponse,
    responses={
        402: {"model": ErrorResponse, "description": "Insufficient credits"},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse, "description": "Regeneration produced nothing usable"},
    },
)
async def regenerate_prompt(
    prompt_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    workflow: SequenceWorkflow = Depends(get_sequence_workflow),
):
    prompt = await workflow.regenerate_prompt(user_id, prompt_id)
    return PromptResponse.model_validate(prompt)
