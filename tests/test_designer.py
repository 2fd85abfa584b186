"""Tests for the Screen Synthesizer: prompts, reference fallback, idempotence."""

import asyncio
from unittest.mock import patch

from conftest import fake_llm
from screenflow.agents.designer import (
    build_screen_prompt,
    design_system_instruction,
    designer_node,
    reference_for,
)
from screenflow.state import AUTO_VIBE_ID


class TestDesignSystemInstruction:
    def test_no_selection(self):
        assert design_system_instruction(None) == ""

    def test_font_and_vibe(self, selection):
        text = design_system_instruction(selection)
        assert '"Inter"' in text
        assert '"Calm Focus"' in text
        assert "Keywords: minimal, airy" in text

    def test_auto_vibe_gives_freedom(self, selection):
        selection["vibe"] = {"id": AUTO_VIBE_ID, "name": "Auto", "description": "", "keywords": [], "emoji": ""}
        text = design_system_instruction(selection)
        assert "full creative freedom" in text
        assert '"Auto"' not in text


class TestReferenceFor:
    def test_prefers_reference_html(self, planned_state):
        planned_state["reference_html"] = "<ref>"
        planned_state["generated_screens"] = [{"id": "home", "name": "Home", "html": "<home>"}]
        assert reference_for(planned_state) == "<ref>"

    def test_falls_back_to_stored_first_screen(self, planned_state):
        planned_state["generated_screens"] = [
            {"id": "task_list", "name": "Task List", "html": "<list>"},
            {"id": "home", "name": "Home", "html": "<home>"},
        ]
        assert reference_for(planned_state) == "<home>"

    def test_falls_back_to_any_stored_screen(self, planned_state):
        planned_state["generated_screens"] = [
            {"id": "home", "name": "Home", "html": ""},
            {"id": "task_list", "name": "Task List", "html": "<list>"},
        ]
        assert reference_for(planned_state) == "<list>"

    def test_nothing_stored(self, planned_state):
        assert reference_for(planned_state) == ""


class TestBuildScreenPrompt:
    def test_reference_variant(self, planned_state, selection):
        planned_state["selected_design_system"] = selection
        prompt = build_screen_prompt(planned_state, planned_state["planned_screens"][0])
        assert "MAIN REFERENCE SCREEN" in prompt
        assert "SCREEN: Home" in prompt
        assert '"Inter"' in prompt
        assert prompt.rstrip().endswith("No markdown blocks, just raw HTML.")

    def test_follower_variant_embeds_reference(self, planned_state):
        prompt = build_screen_prompt(planned_state, planned_state["planned_screens"][1], "<html>ref</html>")
        assert "MAIN REFERENCE SCREEN" not in prompt
        assert "<html>ref</html>" in prompt
        assert "COPY THE VISUAL DNA" in prompt
        assert '"Task List"' in prompt


class TestDesignerNode:
    @patch("screenflow.agents.designer.get_llm")
    def test_generates_first_screen(self, mock_get_llm, planned_state, mock_config):
        llm = fake_llm('```html\n<!DOCTYPE html><html><body>Home</body></html>\n```')
        mock_get_llm.return_value = llm

        result = asyncio.run(designer_node(planned_state))

        assert result == {"current_screen_html": "<!DOCTYPE html><html><body>Home</body></html>"}
        prompt = llm.ainvoke.call_args.args[0][0]["content"]
        assert "MAIN REFERENCE SCREEN" in prompt

    @patch("screenflow.agents.designer.get_llm")
    def test_quoted_output_unwrapped(self, mock_get_llm, planned_state, mock_config):
        mock_get_llm.return_value = fake_llm('"<html></html>"')

        result = asyncio.run(designer_node(planned_state))

        assert result["current_screen_html"] == "<html></html>"

    @patch("screenflow.agents.designer.get_llm")
    def test_stored_screen_returned_without_call(self, mock_get_llm, planned_state, mock_config):
        planned_state["generated_screens"] = [{"id": "home", "name": "Home", "html": "<stored>"}]

        result = asyncio.run(designer_node(planned_state))

        mock_get_llm.assert_not_called()
        assert result == {"current_screen_html": "<stored>"}

    @patch("screenflow.agents.designer.get_llm")
    def test_later_screen_uses_reference(self, mock_get_llm, planned_state, mock_config):
        planned_state["current_screen_index"] = 1
        planned_state["reference_html"] = "<html>reference</html>"
        llm = fake_llm("<html>list</html>")
        mock_get_llm.return_value = llm

        asyncio.run(designer_node(planned_state))

        assert "<html>reference</html>" in llm.ainvoke.call_args.args[0][0]["content"]

    @patch("screenflow.agents.designer.get_llm")
    def test_failure_yields_empty_html(self, mock_get_llm, planned_state, mock_config):
        mock_get_llm.return_value = fake_llm(error=TimeoutError())

        result = asyncio.run(designer_node(planned_state))

        assert result == {"current_screen_html": ""}

    @patch("screenflow.agents.designer.get_llm")
    def test_index_past_plan(self, mock_get_llm, planned_state, mock_config):
        planned_state["current_screen_index"] = 5

        assert asyncio.run(designer_node(planned_state)) == {"current_screen_html": ""}
        mock_get_llm.assert_not_called()
