"""Tests for blueprint selection and prompt building."""
from architect.services.blueprint_selector import (
    CORE_BLUEPRINTS,
    get_blueprint_title,
    select_blueprints,
)
from architect.services.prompts.blueprints import (
    PriorBlueprint,
    build_blueprint_prompt,
    build_conversation_summary,
)


class TestSelectBlueprints:
    def test_saas_without_features(self):
        assert select_blueprints("saas", []) == [
            "mvp-features", "backend", "database", "security", "design-system", "frontend",
        ]

    def test_missing_project_type_defaults_to_saas(self):
        assert select_blueprints(None, None) == select_blueprints("saas", [])

    def test_unknown_project_type_gets_core_only(self):
        assert select_blueprints("spaceship", []) == list(CORE_BLUEPRINTS)

    def test_feature_blueprints_are_appended(self):
        selected = select_blueprints("mobile", ["real-time", "notifications"])
        assert selected[-2:] == ["real-time-architecture", "notification-system"]

    def test_duplicates_keep_first_position(self):
        selected = select_blueprints("marketplace", ["payments"])
        assert selected.count("payment-integration") == 1
        assert selected.index("payment-integration") < selected.index("trust-safety")

    def test_features_without_blueprint_are_ignored(self):
        assert select_blueprints("api", ["i18n"]) == [*CORE_BLUEPRINTS, "api-documentation"]


class TestBlueprintTitles:
    def test_known_type(self):
        assert get_blueprint_title("database") == "Database Architecture"

    def test_unknown_type(self):
        assert get_blueprint_title("quantum-layer") == "quantum-layer PRD"


class TestConversationSummary:
    def test_pairs_questions_with_answers(self):
        messages = [
            {"role": "assistant", "content": "Who are the users?"},
            {"role": "user", "content": "Teachers"},
            {"role": "assistant", "content": "What do they struggle with?"},
        ]
        summary = build_conversation_summary("Grading helper", messages)
        assert "Grading helper" in summary
        assert "Q: Who are the users?\nA: Teachers" in summary
        assert "What do they struggle with?" not in summary

    def test_empty_interview(self):
        summary = build_conversation_summary("Grading helper", [])
        assert summary.endswith("## Interview Q&A\n")


class TestBlueprintPrompt:
    def test_first_document_has_no_prior_section(self):
        prompt = build_blueprint_prompt("backend", "Backend Architecture PRD", "summary")
        assert "Previously Generated Blueprints" not in prompt
        assert prompt.endswith("Generate the Backend Architecture PRD now. Output markdown directly.")

    def test_prior_documents_are_truncated_context(self):
        prior = [PriorBlueprint("MVP Feature List", "a" * 5000)]
        prompt = build_blueprint_prompt("backend", "Backend Architecture PRD", "summary", prior)
        assert "## Previously Generated Blueprints" in prompt
        assert "### MVP Feature List\n" + "a" * 1500 + "\n" in prompt
        assert "a" * 1501 not in prompt

    def test_unknown_type_uses_generic_instructions(self):
        prompt = build_blueprint_prompt("quantum-layer", "quantum-layer PRD", "summary")
        assert prompt.startswith("Generate a quantum-layer PRD with:")
