"""
Blueprint suite endpoints.

Generation runs inside the request and can take minutes; clients should poll
check-suite rather than rely on one long-held request.
"""

import uuid

from fastapi import APIRouter, Depends, Query

from architect.dependencies import get_current_user_id, get_suite_workflow
from architect.schemas.schemas import (
    BlueprintResponse,
    ErrorResponse,
    GenerateSuiteRequest,
    SuiteDetailResponse,
    SuiteResponse,
    SuiteStatusResponse,
)
from architect.services.suite_workflow import SuiteWorkflow

router = APIRouter(prefix="/api/ai", tags=["blueprints"])


@router.post(
    "/generate-suite",
    response_model=SuiteResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Interview not complete"},
        402: {"model": ErrorResponse, "description": "Insufficient credits"},
        404: {"model": ErrorResponse},
    },
)
async def generate_suite(
    data: GenerateSuiteRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    workflow: SuiteWorkflow = Depends(get_suite_workflow),
):
    """Generate the blueprint suite, or return the project's active one unchanged."""
    suite = await workflow.generate_suite(user_id, data.conversation_id)
    return SuiteResponse.model_validate(suite)


@router.get("/check-suite", response_model=SuiteStatusResponse, responses={404: {"model": ErrorResponse}})
async def check_suite(
    conversation_id: uuid.UUID = Query(..., alias="conversationId"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    workflow: SuiteWorkflow = Depends(get_suite_workflow),
):
    report = await workflow.check_suite_status(user_id, conversation_id)
    return SuiteStatusResponse.model_validate(report)


@router.get("/blueprints/{suite_id}", response_model=SuiteDetailResponse, responses={404: {"model": ErrorResponse}})
async def get_suite(
    suite_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    workflow: SuiteWorkflow = Depends(get_suite_workflow),
):
    suite, blueprints = await workflow.get_suite(user_id, suite_id)
    return SuiteDetailResponse(
        suite=SuiteResponse.model_validate(suite),
        blueprints=[BlueprintResponse.model_validate(b) for b in blueprints],
    )


@router.post(
    "/blueprints/{suite_id}/resume",
    response_model=SuiteDetailResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def resume_suite(
    suite_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    workflow: SuiteWorkflow = Depends(get_suite_workflow),
):
    """Retry the blueprints that did not complete. Free of charge."""
    suite = await workflow.resume_suite(user_id, suite_id)
    blueprints = await workflow.list_blueprints(suite.suite_id)
    return SuiteDetailResponse(
        suite=SuiteResponse.model_validate(suite),
        blueprints=[BlueprintResponse.model_validate(b) for b in blueprints],
    )
