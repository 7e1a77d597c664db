"""
Database models for Architect.
"""

from architect.models.account import Account, CreditTransaction, TransactionType
from architect.models.project import Project
from architect.models.conversation import Conversation, ConversationStatus, TurnRole
from architect.models.status import BatchStatus
from architect.models.suite import BlueprintSuite, Blueprint, BlueprintStatus
from architect.models.sequence import (
    PromptSequence,
    ImplementationPrompt,
    PromptCategory,
    PromptStatus,
)

__all__ = [
    "Account",
    "CreditTransaction",
    "TransactionType",
    "Project",
    "Conversation",
    "ConversationStatus",
    "TurnRole",
    "BatchStatus",
    "BlueprintSuite",
    "Blueprint",
    "BlueprintStatus",
    "PromptSequence",
    "ImplementationPrompt",
    "PromptCategory",
    "PromptStatus",
]
