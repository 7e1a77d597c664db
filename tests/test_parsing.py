"""Tests for the interview reply parser and the implementation prompt parser."""
import json

import pytest

from architect.exceptions import ResponseParseError
from architect.services.prompts.implementation import (
    DEFAULT_TECH_STACK,
    UNTITLED,
    BlueprintContext,
    build_implementation_prompt_request,
    build_regeneration_request,
    extract_tech_stack,
    parse_prompt_response,
)
from architect.services.prompts.interrogation import (
    DEFAULT_CATEGORY,
    FALLBACK_QUESTION,
    build_interrogation_user_prompt,
    decode_interview_reply,
    parse_interview_reply,
)
from architect.models import PromptCategory

from conftest import component, prompt_reply


def reply(**fields) -> str:
    data = {"question": "Who pays for the service?", "category": "monetization", "isComplete": False}
    data.update(fields)
    return json.dumps(data)


class TestInterviewReply:
    def test_plain_json(self):
        parsed = parse_interview_reply(reply())
        assert parsed.question == "Who pays for the service?"
        assert parsed.category == "monetization"
        assert parsed.is_complete is False

    def test_fenced_json(self):
        parsed = parse_interview_reply("```json\n" + reply() + "\n```")
        assert parsed.question == "Who pays for the service?"

    def test_completion_and_classification(self):
        parsed = parse_interview_reply(reply(
            isComplete=True,
            completionReason="All areas covered",
            projectType="marketplace",
            detectedFeatures=["payments", "teleportation", "real-time"],
        ))
        assert parsed.is_complete is True
        assert parsed.completion_reason == "All areas covered"
        assert parsed.project_type == "marketplace"
        assert parsed.detected_features == ["payments", "real-time"]

    def test_unknown_category_falls_back(self):
        assert parse_interview_reply(reply(category="astrology")).category == DEFAULT_CATEGORY

    def test_unknown_project_type_is_dropped(self):
        assert parse_interview_reply(reply(projectType="spaceship")).project_type is None

    def test_truthy_strings_do_not_complete(self):
        assert parse_interview_reply(reply(isComplete="true")).is_complete is False

    @pytest.mark.parametrize("raw", [
        "Sure! What is your budget?",
        "[1, 2, 3]",
        json.dumps({"category": "users"}),
        json.dumps({"question": ""}),
        "",
    ])
    def test_malformed_reply_uses_fallback(self, raw):
        parsed = parse_interview_reply(raw)
        assert parsed.question == FALLBACK_QUESTION
        assert parsed.category == DEFAULT_CATEGORY
        assert parsed.is_complete is False

    def test_fallback_is_a_copy(self):
        first = parse_interview_reply("nope")
        first.question = "changed"
        assert parse_interview_reply("nope again").question == FALLBACK_QUESTION

    def test_strict_decode_raises(self):
        with pytest.raises(ResponseParseError):
            decode_interview_reply("not json")


class TestInterrogationPrompt:
    def test_first_turn(self):
        prompt = build_interrogation_user_prompt("A todo app", [], 0)
        assert "A todo app" in prompt
        assert "No conversation yet." in prompt
        assert "Questions asked: 0/15" in prompt

    def test_history_is_included(self):
        messages = [
            {"role": "assistant", "content": "Who uses it?"},
            {"role": "user", "content": "Students"},
        ]
        prompt = build_interrogation_user_prompt("A todo app", messages, 1)
        assert "ASSISTANT: Who uses it?" in prompt
        assert "USER: Students" in prompt


class TestParsePromptResponse:
    def test_single_component(self):
        [parsed] = parse_prompt_response(component("Project Scaffolding"))
        assert parsed.title == "Project Scaffolding"
        assert parsed.content == "Implement Project Scaffolding."
        assert parsed.prerequisites == ["Node.js 20 installed"]
        assert parsed.user_actions == ["Run npm install"]
        assert parsed.acceptance_criteria == ["Project Scaffolding works end to end"]
        assert parsed.next_step == "the next component"

    def test_multiple_components_in_order(self):
        parsed = parse_prompt_response(prompt_reply("Schema", "Migrations", "Seed Data"))
        assert [p.title for p in parsed] == ["Schema", "Migrations", "Seed Data"]

    def test_preamble_is_ignored(self):
        assert parse_prompt_response("I could not produce anything useful.") == []

    def test_heading_without_emoji(self):
        [parsed] = parse_prompt_response("## Component: Login Form\nBuild a login form.")
        assert parsed.title == "Login Form"
        assert parsed.content == "Login Form\nBuild a login form."
        assert parsed.user_actions == []

    def test_empty_title_gets_placeholder(self):
        [parsed] = parse_prompt_response("## Component:")
        assert parsed.title == UNTITLED

    def test_title_is_truncated(self):
        [parsed] = parse_prompt_response("## Component: " + "x" * 300)
        assert len(parsed.title) == 255


class TestImplementationRequest:
    blueprints = [
        BlueprintContext("backend", "Backend Architecture PRD", "Express on Node.js"),
        BlueprintContext("frontend", "Frontend Architecture PRD", "Framework: SvelteKit"),
    ]

    def test_tech_stack_from_frontend(self):
        assert extract_tech_stack(self.blueprints) == "SvelteKit"

    def test_default_tech_stack(self):
        assert extract_tech_stack(self.blueprints[:1]) == DEFAULT_TECH_STACK

    def test_request_lists_previous_titles_and_relevant_blueprints(self):
        request = build_implementation_prompt_request(
            PromptCategory.API, self.blueprints, "Dog Walkers", "SvelteKit", ["Scaffolding", "Schema"],
        )
        assert "- Scaffolding\n- Schema" in request
        assert "Backend Architecture PRD" in request
        assert "Frontend Architecture PRD" not in request

    def test_first_category(self):
        request = build_implementation_prompt_request(
            PromptCategory.SETUP, [], "Dog Walkers", DEFAULT_TECH_STACK, [],
        )
        assert "None (this is the first category)" in request
        assert "No specific blueprints available" in request

    def test_regeneration_names_the_prompt(self):
        assert 'titled "Schema"' in build_regeneration_request("base", "Schema")
