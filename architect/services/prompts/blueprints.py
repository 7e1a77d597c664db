"""Blueprint generation prompts ("The Architect").

Six document types have dedicated instructions; every other selectable type
falls back to a generic PRD template built from its title.
"""

from dataclasses import dataclass
from typing import Sequence

BLUEPRINT_SYSTEM_PROMPT = """You are "The Architect" - a senior technical writer creating production-grade documents.

## Style
- Crystal clear and actionable
- No fluff or placeholder content
- Technical but accessible
- Include code examples where helpful

## Output Format
Write in Markdown directly. Start with a # heading. Do NOT wrap in JSON or code blocks.
No explanations before or after the document - just the document itself."""

# Characters of each earlier blueprint quoted back as context
PRIOR_CONTEXT_CHARS = 1500


@dataclass(frozen=True)
class BlueprintConfig:
    title: str
    instructions: str


BLUEPRINT_CONFIGS: dict[str, BlueprintConfig] = {
    "design-system": BlueprintConfig(
        title="Design System PRD",
        instructions="""Generate a Design System PRD with:
- Color palette (primary, secondary, semantic colors) with hex codes
- Typography scale (headings h1-h6, body text, captions)
- Spacing system (4px/8px grid)
- Component standards (buttons, inputs, cards, modals)
- Accessibility requirements (WCAG 2.1 AA compliance)""",
    ),
    "frontend": BlueprintConfig(
        title="Frontend Architecture PRD",
        instructions="""Generate a Frontend Architecture PRD with:
- Framework choice and component hierarchy with folder structure
- State management approach (local vs global state)
- Routing structure with page components
- Data fetching patterns (client vs server)
- Performance considerations (lazy loading, code splitting)""",
    ),
    "backend": BlueprintConfig(
        title="Backend Architecture PRD",
        instructions="""Generate a Backend Architecture PRD with:
- API endpoints table (method, path, description, auth required)
- Request/response examples for key endpoints
- Authentication and authorization approach
- Error handling strategy with error codes
- Rate limiting and validation rules""",
    ),
    "database": BlueprintConfig(
        title="Database Architecture",
        instructions="""Generate a Database Architecture document with:
- Entity descriptions and relationships
- Schema definitions
- Relationships between entities (one-to-many, many-to-many)
- Index recommendations for common queries
- Data validation rules""",
    ),
    "security": BlueprintConfig(
        title="Security PRD",
        instructions="""Generate a Security PRD with:
- Authentication flow (signup, login, logout, password reset)
- Authorization rules (role-based access control)
- Data protection measures (encryption, PII handling)
- Input validation and sanitization rules
- Security headers and HTTPS requirements""",
    ),
    "mvp-features": BlueprintConfig(
        title="MVP Feature List",
        instructions="""Generate an MVP Feature List with:
- Numbered features (maximum 12 for MVP)
- Each feature with: Title, User Story ("As a... I want... So that..."), Acceptance Criteria
- Priority labels (P0 = must have, P1 = should have, P2 = nice to have)
- Estimated complexity (Small/Medium/Large)
- OUT OF SCOPE section listing features NOT in MVP""",
    ),
}


@dataclass(frozen=True)
class PriorBlueprint:
    """An already generated document of the same suite."""
    title: str
    content: str


def blueprint_instructions(blueprint_type: str, title: str) -> str:
    config = BLUEPRINT_CONFIGS.get(blueprint_type)
    if config is not None:
        return config.instructions
    return f"""Generate a {title} with:
- Goals and scope of this area for the MVP
- Architecture and key components
- Data flows and integration points with the rest of the system
- Edge cases, failure handling and security considerations
- Open decisions and recommended defaults"""


def build_conversation_summary(initial_description: str, messages: Sequence[dict]) -> str:
    """Initial description plus the interview as Q/A pairs.

    A pair is an assistant turn immediately followed by a user turn; a trailing
    unanswered question is left out.
    """
    qa_pairs = []
    for question, answer in zip(messages, messages[1:]):
        if question.get("role") == "assistant" and answer.get("role") == "user":
            qa_pairs.append(f"Q: {question['content']}\nA: {answer['content']}")

    interview = "\n\n".join(qa_pairs)
    return f"""## Initial Description
{initial_description}

## Interview Q&A
{interview}"""


def build_blueprint_prompt(
    blueprint_type: str,
    title: str,
    conversation_summary: str,
    prior_blueprints: Sequence[PriorBlueprint] = (),
) -> str:
    """User prompt for one blueprint, with the suite's earlier documents as context."""
    prompt = f"""{blueprint_instructions(blueprint_type, title)}

## Project Requirements (from interview)
{conversation_summary}"""

    if prior_blueprints:
        context = "\n\n".join(
            f"### {b.title}\n{b.content[:PRIOR_CONTEXT_CHARS]}" for b in prior_blueprints
        )
        prompt += f"""

## Previously Generated Blueprints
Stay consistent with these documents.

{context}"""

    return prompt + f"\n\nGenerate the {title} now. Output markdown directly."
