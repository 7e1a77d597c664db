"""Shared fixtures: in-memory database, scripted completion client, seeded entities."""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")
os.environ.setdefault("DEBUG", "false")

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import architect.models  # noqa: F401
from architect.database import Base, enable_sqlite_foreign_keys
from architect.exceptions import CompletionServiceError
from architect.models import (
    BatchStatus,
    Blueprint,
    BlueprintStatus,
    BlueprintSuite,
    Conversation,
    ConversationStatus,
    Project,
)
from architect.services.credit_ledger import CreditLedger


class FakeCompletionClient:
    """
    Scripted stand-in for CompletionClient.

    `responses` feed complete() in call order; `streams` feed stream(), one
    list of fragments per call. An Exception in either script is raised at
    that point instead of being returned.
    """

    def __init__(self, responses=None, streams=None):
        self.responses = list(responses or [])
        self.streams = list(streams or [])
        self.calls: list[str] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append(user_prompt)
        if not self.responses:
            raise CompletionServiceError("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def stream(self, system_prompt: str, user_prompt: str):
        self.calls.append(user_prompt)
        if not self.streams:
            raise CompletionServiceError("no scripted stream left")
        for fragment in self.streams.pop(0):
            if isinstance(fragment, Exception):
                raise fragment
            yield fragment

    async def aclose(self) -> None:
        pass


def component(title: str, body: str | None = None) -> str:
    """One prompt section in the engineering-manager reply format."""
    return f"""## 🎯 Component: {title}

### Prerequisites
- Node.js 20 installed

### Implementation Prompt
```
{body or f"Implement {title}."}
```

### User Action Required
- [ ] Run npm install

### Acceptance Criteria
- [ ] {title} works end to end

### Next Step
After completing this, proceed to: the next component
"""


def prompt_reply(*titles: str) -> str:
    return "Here are the prompts.\n\n" + "\n".join(component(t) for t in titles)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine.sync_engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def account(db):
    account = await CreditLedger(db).register_account(uuid.uuid4(), initial_credits=Decimal("30"))
    await db.commit()
    return account


@pytest_asyncio.fixture
async def other_account(db):
    account = await CreditLedger(db).register_account(uuid.uuid4(), initial_credits=Decimal("30"))
    await db.commit()
    return account


@pytest_asyncio.fixture
async def project(db, account):
    project = Project(user_id=account.user_id, title="Dog Walker Marketplace")
    db.add(project)
    await db.commit()
    return project


INTERVIEW = [
    {"role": "assistant", "content": "Who are your users?", "category": "users"},
    {"role": "user", "content": "Dog owners in Berlin."},
    {"role": "assistant", "content": "How do they find walkers today?", "category": "problem"},
    {"role": "user", "content": "Facebook groups."},
]


@pytest_asyncio.fixture
async def ready_conversation(db, account, project):
    """A finished interview classified as a saas project without features."""
    conversation = Conversation(
        project_id=project.project_id,
        user_id=account.user_id,
        initial_description="An app that matches dog owners with walkers",
        messages=list(INTERVIEW),
        questions_asked=2,
        status=ConversationStatus.COMPLETE.value,
        is_ready_for_blueprints=True,
        project_type="saas",
        detected_features=[],
    )
    db.add(conversation)
    await db.commit()
    return conversation


@pytest_asyncio.fixture
async def complete_suite(db, project, ready_conversation):
    """A complete two-document suite, as left behind by a successful generation."""
    suite = BlueprintSuite(
        project_id=project.project_id,
        conversation_id=ready_conversation.conversation_id,
        blueprint_types=["backend", "frontend"],
        completed_count=2,
        total_count=2,
    )
    suite.set_status(BatchStatus.COMPLETE)
    db.add(suite)
    await db.flush()
    db.add_all([
        Blueprint(
            suite_id=suite.suite_id, position=1, type="backend", title="Backend Architecture PRD",
            content="REST API on Node.js", status=BlueprintStatus.COMPLETE.value,
        ),
        Blueprint(
            suite_id=suite.suite_id, position=2, type="frontend", title="Frontend Architecture PRD",
            content="Framework: SvelteKit", status=BlueprintStatus.COMPLETE.value,
        ),
    ])
    await db.commit()
    return suite


async def balance_of(db, user_id) -> Decimal:
    return await CreditLedger(db).get_balance(user_id)
