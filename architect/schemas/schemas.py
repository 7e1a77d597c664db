"""
Pydantic schemas for API request/response validation.

The wire format is camelCase (conversationId, skipCategories, ...); Python
code uses the snake_case field names.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from architect.models import PromptStatus


class APIModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# === Account Schemas ===

class AccountCreate(APIModel):
    """Schema for registering an account."""
    user_id: uuid.UUID = Field(..., description="Identity from the auth provider")
    email: str | None = Field(None, max_length=255)


class AccountResponse(APIModel):
    user_id: uuid.UUID
    email: str | None
    credits: Decimal
    created_at: datetime | None = None


class BalanceResponse(APIModel):
    user_id: uuid.UUID
    credits: Decimal


class GrantRequest(APIModel):
    """Schema for an admin top-up."""
    amount: Decimal = Field(..., gt=0, description="Credits to add")
    reason: str = Field("admin_grant", max_length=100)
    bonus: bool = Field(False, description="Journal as a promotional bonus")


class GrantResponse(APIModel):
    user_id: uuid.UUID
    amount: Decimal
    new_balance: Decimal


# === Transaction Schemas ===

class TransactionResponse(APIModel):
    id: int
    amount: Decimal
    transaction_type: str
    reason: str
    reference_id: str | None
    balance_after: Decimal
    description: str | None
    created_at: datetime


class TransactionListResponse(APIModel):
    transactions: list[TransactionResponse]
    total: int


# === Project Schemas ===

class ProjectCreate(APIModel):
    title: str = Field(..., min_length=1, max_length=255)


class ProjectResponse(APIModel):
    project_id: uuid.UUID
    title: str
    project_type: str | None
    detected_features: list[str]


# === Conversation Schemas ===

class InterrogateRequest(APIModel):
    """
    Start an interview (projectId + initialDescription) or continue one
    (conversationId, optionally with userMessage).
    """
    conversation_id: uuid.UUID | None = None
    user_message: str | None = Field(None, max_length=10000)
    initial_description: str | None = Field(None, max_length=10000)
    project_id: uuid.UUID | None = None


class TurnSchema(APIModel):
    role: str
    content: str
    category: str | None = None


class ConversationResponse(APIModel):
    conversation_id: uuid.UUID
    project_id: uuid.UUID
    initial_description: str
    messages: list[TurnSchema]
    questions_asked: int
    status: str
    is_ready_for_blueprints: bool
    completion_reason: str | None
    project_type: str | None
    detected_features: list[str]


# === Suite Schemas ===

class GenerateSuiteRequest(APIModel):
    conversation_id: uuid.UUID


class SuiteResponse(APIModel):
    suite_id: uuid.UUID
    project_id: uuid.UUID
    conversation_id: uuid.UUID
    status: str
    blueprint_types: list[str]
    completed_count: int
    total_count: int


class BlueprintResponse(APIModel):
    blueprint_id: uuid.UUID
    position: int
    type: str
    title: str
    content: str
    status: str
    error: str | None


class SuiteDetailResponse(APIModel):
    suite: SuiteResponse
    blueprints: list[BlueprintResponse]


class SuiteStatusResponse(APIModel):
    has_existing: bool
    suite_id: uuid.UUID | None
    status: str | None
    pending_count: int
    generating_count: int
    completed_count: int
    failed_count: int
    total_count: int


# === Sequence Schemas ===

class GeneratePromptsRequest(APIModel):
    suite_id: uuid.UUID
    skip_categories: list[str] = Field(default_factory=list)


class SequenceResponse(APIModel):
    sequence_id: uuid.UUID
    project_id: uuid.UUID
    suite_id: uuid.UUID
    status: str
    total_prompts: int
    completed_prompts: int
    current_prompt_index: int
    skip_categories: list[str]
    failed_categories: list[str]
    last_error: str | None


class PromptResponse(APIModel):
    prompt_id: uuid.UUID
    sequence_number: int
    category: str
    title: str
    content: str
    prerequisites: list[str]
    user_actions: list[str]
    acceptance_criteria: list[str]
    next_step: str | None
    estimated_time: str | None
    status: str
    completed_at: datetime | None


class ProjectPromptsResponse(APIModel):
    sequence: SequenceResponse | None
    prompts: list[PromptResponse]


class PromptStatusUpdate(APIModel):
    status: PromptStatus


class SequenceProgress(APIModel):
    completed_prompts: int
    total_prompts: int


class PromptStatusResponse(APIModel):
    prompt_id: uuid.UUID
    status: str
    completed_at: datetime | None
    sequence_progress: SequenceProgress


# === Error Schemas ===

class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
    error_type: str
    details: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
