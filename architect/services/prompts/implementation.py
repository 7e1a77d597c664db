"""Implementation-prompt generation ("The Engineering Manager").

One completion call per category. The reply is markdown with one
"## 🎯 Component: <title>" section per prompt; parse_prompt_response() splits
it into ParsedPrompt records.
"""

import re
from dataclasses import dataclass, field
from typing import Sequence

from architect.models.sequence import PromptCategory

DEFAULT_TECH_STACK = "Next.js 15, TypeScript, Tailwind CSS, MongoDB"
BLUEPRINT_CONTEXT_CHARS = 2000
MAX_PROMPTS_PER_CATEGORY = 3
UNTITLED = "Untitled Prompt"


@dataclass(frozen=True)
class CategoryInfo:
    title: str
    description: str
    estimated_time: str


CATEGORY_INFO: dict[PromptCategory, CategoryInfo] = {
    PromptCategory.SETUP: CategoryInfo(
        "Environment Setup", ".env.example, package.json dependencies, folder structure", "15-30 mins",
    ),
    PromptCategory.DATABASE: CategoryInfo(
        "Database Layer", "Schema definitions, migrations, seed data", "30-45 mins",
    ),
    PromptCategory.AUTH: CategoryInfo(
        "Authentication", "Auth provider config, middleware, protected routes", "30-60 mins",
    ),
    PromptCategory.API: CategoryInfo(
        "Core API Routes", "API endpoint implementation", "45-90 mins",
    ),
    PromptCategory.SHARED_COMPONENTS: CategoryInfo(
        "Shared Components", "Design system components (Button, Input, Card, Modal)", "60-90 mins",
    ),
    PromptCategory.FEATURES: CategoryInfo(
        "Feature Components", "Core feature implementations from MVP list", "60-120 mins",
    ),
    PromptCategory.PAGES: CategoryInfo(
        "Pages/Routes", "Page components with layout integration", "45-90 mins",
    ),
    PromptCategory.TESTING: CategoryInfo(
        "Testing Suite", "Unit tests, integration tests, E2E setup", "60-90 mins",
    ),
}

ENGINEERING_MANAGER_SYSTEM_PROMPT = """You are "The Engineering Manager" - a senior technical lead creating precise implementation prompts for AI coding assistants.

## Your Role
- Generate clear, actionable prompts that a developer can paste into an AI assistant
- Each prompt should result in working, production-ready code
- Reference specific files and patterns from the architecture blueprints
- Include acceptance criteria to verify implementation

## Output Format
Generate prompts in this exact markdown structure:

## 🎯 Component: [Name]

### Prerequisites
- Completed: [List previous prompts that must be done first]
- Required files: [Files that should exist before starting]

### User Action Required
- [ ] [Any manual steps the user needs to take before running this prompt]

### Implementation Prompt
```
[The actual prompt optimized for AI coding assistants - detailed, specific, actionable]
```

### Acceptance Criteria
- [ ] [Specific testable criteria]

### Next Step
After completing this, proceed to: [Next prompt name]

## Guidelines
- Be specific about file paths, function names, and imports
- Reference the project's tech stack and patterns
- Keep prompts focused - one logical unit of work per prompt
- DON'T include placeholder content - make prompts actionable"""

CATEGORY_TEMPLATES: dict[PromptCategory, str] = {
    PromptCategory.SETUP: """Generate an Environment Setup prompt that includes:
- .env.example file with all required environment variables (with placeholder values)
- Dependencies based on the tech stack
- Folder structure creation
- Initial configuration files""",
    PromptCategory.DATABASE: """Generate a Database Layer prompt that includes:
- Schema definitions based on the Database Architecture PRD
- Connection utility
- Type definitions for all entities
- Seed data script for development
- Any required migrations or indexes""",
    PromptCategory.AUTH: """Generate an Authentication prompt that includes:
- Auth configuration based on the Security PRD
- Provider setup (as specified)
- Session management and user schema integration
- Middleware for protected routes
- Auth utility functions (getCurrentUser, requireAuth, etc.)""",
    PromptCategory.API: """Generate API Routes prompts (one per major endpoint group) that include:
- Route handler with proper HTTP methods
- Request validation
- Database operations
- Error handling with appropriate status codes
- Type-safe response format
Reference the Backend Architecture PRD for endpoint specifications.""",
    PromptCategory.SHARED_COMPONENTS: """Generate Shared Components prompts based on the Design System PRD:
- Button component with variants (primary, secondary, ghost, destructive)
- Input component with validation states
- Card component with header/body/footer
- Modal/Dialog component with proper accessibility
- Toast/notification component
Use the color palette and typography from the design system.""",
    PromptCategory.FEATURES: """Generate Feature Component prompts (one per core MVP feature):
- Component structure and state management
- Integration with API routes
- User interactions and feedback
- Loading and error states
- Responsive design considerations
Reference the MVP Feature List for specific requirements.""",
    PromptCategory.PAGES: """Generate Page/Route prompts that include:
- Page component with layouts
- Data fetching
- SEO metadata
- Navigation integration
- Loading and error boundaries
Reference the Frontend Architecture PRD for routing structure.""",
    PromptCategory.TESTING: """Generate Testing Suite prompts that include:
- Test runner configuration
- Unit test examples for utilities
- Component testing
- API route testing
- E2E test setup
- Test utilities and mocks""",
}

# Blueprint types quoted as reference material for each category
RELEVANT_BLUEPRINTS: dict[PromptCategory, tuple[str, ...]] = {
    PromptCategory.SETUP: ("frontend", "backend", "design-system"),
    PromptCategory.DATABASE: ("database", "backend"),
    PromptCategory.AUTH: ("security", "backend"),
    PromptCategory.API: ("backend", "mvp-features"),
    PromptCategory.SHARED_COMPONENTS: ("design-system", "frontend"),
    PromptCategory.FEATURES: ("mvp-features", "frontend", "backend"),
    PromptCategory.PAGES: ("frontend", "design-system", "mvp-features"),
    PromptCategory.TESTING: ("backend", "frontend", "security"),
}

DEFAULT_USER_ACTIONS: dict[PromptCategory, tuple[str, ...]] = {
    PromptCategory.SETUP: (
        "Confirm project directory is initialized",
        "Review tech stack requirements",
    ),
    PromptCategory.DATABASE: (
        "Ensure database connection string is configured in .env",
        "Review database schema from blueprints",
    ),
    PromptCategory.AUTH: (
        "Configure OAuth provider credentials in .env",
        "Review authentication flow from Security PRD",
    ),
    PromptCategory.API: (
        "Review API endpoints from Backend PRD",
        "Confirm database models are in place",
    ),
    PromptCategory.SHARED_COMPONENTS: (
        "Attach inspiration images for UI components (optional)",
        "Review Design System PRD for styling guidelines",
    ),
    PromptCategory.FEATURES: (
        "Attach feature inspiration images (optional)",
        "Review MVP Feature List for acceptance criteria",
    ),
    PromptCategory.PAGES: (
        "Confirm routing structure from Frontend PRD",
        "Ensure shared components are implemented",
    ),
    PromptCategory.TESTING: (
        "Review all implemented features",
        "Ensure test environment is configured",
    ),
}


@dataclass(frozen=True)
class BlueprintContext:
    """The slice of a completed blueprint the prompt builder needs."""
    type: str
    title: str
    content: str


@dataclass
class ParsedPrompt:
    title: str
    content: str
    prerequisites: list[str] = field(default_factory=list)
    user_actions: list[str] = field(default_factory=list)
    acceptance_criteria: list[str] = field(default_factory=list)
    next_step: str = ""


def get_default_user_actions(category: PromptCategory) -> list[str]:
    return list(DEFAULT_USER_ACTIONS.get(category, ()))


def relevant_blueprints(
    category: PromptCategory, blueprints: Sequence[BlueprintContext]
) -> list[BlueprintContext]:
    wanted = RELEVANT_BLUEPRINTS.get(category, ())
    return [b for b in blueprints if b.type in wanted]


_FRAMEWORK_RE = re.compile(r"framework[:\s]*([\w\s.]+)", re.IGNORECASE)


def extract_tech_stack(blueprints: Sequence[BlueprintContext]) -> str:
    """Framework named in the frontend blueprint, else the default stack."""
    frontend = next((b for b in blueprints if b.type == "frontend"), None)
    if frontend and frontend.content:
        match = _FRAMEWORK_RE.search(frontend.content)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return DEFAULT_TECH_STACK


def build_implementation_prompt_request(
    category: PromptCategory,
    blueprints: Sequence[BlueprintContext],
    project_title: str,
    tech_stack: str,
    previous_titles: Sequence[str],
) -> str:
    info = CATEGORY_INFO[category]
    context = "\n\n".join(
        f"### {b.title}\n{b.content[:BLUEPRINT_CONTEXT_CHARS]}..."
        for b in relevant_blueprints(category, blueprints)
    )
    previous = (
        "\n".join(f"- {t}" for t in previous_titles)
        if previous_titles
        else "None (this is the first category)"
    )

    return f"""Generate implementation prompts for: {info.title}

## Project Context
- Project: {project_title}
- Tech Stack: {tech_stack}
- Category: {category.value} ({info.description})
- Estimated Time: {info.estimated_time}

## Previously Generated Prompts
{previous}

## Requirements
{CATEGORY_TEMPLATES[category]}

## Reference Blueprints
{context or "No specific blueprints available - use general best practices."}

Generate 1-{MAX_PROMPTS_PER_CATEGORY} focused prompts for this category. Each prompt should be a single, actionable unit of work.
Output only the prompts in the specified markdown format."""


def build_regeneration_request(base_request: str, title: str) -> str:
    return f"""{base_request}

IMPORTANT: Regenerate specifically the prompt titled "{title}".
Keep the same title but improve the content based on the context."""


_COMPONENT_SPLIT_RE = re.compile(r"##\s*(?:🎯\s*)?Component:\s*", re.IGNORECASE)
_LIST_ITEM_RE = re.compile(r"^\s*[-*]\s*(?:\[.\])?\s*(.+)$", re.MULTILINE)
_NEXT_STEP_PREFIX_RE = re.compile(r"^After completing this, proceed to:\s*", re.IGNORECASE)


def _section(text: str, heading: str) -> str | None:
    match = re.search(rf"###\s*{heading}([\s\S]*?)(?=###|$)", text, re.IGNORECASE)
    return match.group(1) if match else None


def _list_items(text: str | None) -> list[str]:
    if not text:
        return []
    return [item.strip() for item in _LIST_ITEM_RE.findall(text) if item.strip()]


def _strip_code_fence(text: str) -> str:
    t = text.strip()
    if t.startswith("```"):
        t = t.split("\n", 1)[1] if "\n" in t else ""
    if t.endswith("```"):
        t = t[:-3]
    return t.strip()


def parse_prompt_response(response: str) -> list[ParsedPrompt]:
    """
    Split a reply into prompts, one per "Component:" heading.

    Text before the first heading is ignored. A section without an
    "Implementation Prompt" block keeps its whole text as content.
    """
    prompts = []
    for section in _COMPONENT_SPLIT_RE.split(response)[1:]:
        lines = section.strip().split("\n")
        title = lines[0].strip() if lines and lines[0].strip() else UNTITLED

        implementation = _section(section, "Implementation Prompt")
        next_step = _section(section, "Next Step")

        prompts.append(ParsedPrompt(
            title=title[:255],
            content=_strip_code_fence(implementation) if implementation and implementation.strip() else section.strip(),
            prerequisites=_list_items(_section(section, "Prerequisites")),
            user_actions=_list_items(_section(section, "User Action Required")),
            acceptance_criteria=_list_items(_section(section, "Acceptance Criteria")),
            next_step=_NEXT_STEP_PREFIX_RE.sub("", next_step.strip()) if next_step else "",
        ))
    return prompts
