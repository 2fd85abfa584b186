"""Shared fixtures for the screenflow test suite."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from screenflow.state import new_session


def mock_llm_response(content: str):
    """Create a mock chat model response object."""
    response = MagicMock()
    response.content = content
    return response


def fake_llm(content: str = "", error: Exception | None = None):
    """Mock chat model whose ``ainvoke`` returns *content* (or raises *error*)."""
    llm = MagicMock()
    if error is not None:
        llm.ainvoke = AsyncMock(side_effect=error)
    else:
        llm.ainvoke = AsyncMock(return_value=mock_llm_response(content))
    return llm


@pytest.fixture
def base_state():
    """Fresh SessionState for a simple product idea."""
    return new_session("A todo app for small teams")


@pytest.fixture
def planned_state(base_state):
    """State with a three-screen tree plan, not yet approved."""
    base_state.update({
        "clarification_complete": True,
        "design_system_complete": True,
        "enriched_request": "A todo app for small teams",
        "planned_screens": [
            {"id": "home", "name": "Home", "description": "Team task overview"},
            {"id": "task_list", "name": "Task List", "description": "All tasks with filters"},
            {"id": "task_detail", "name": "Task Detail", "description": "One task with comments"},
        ],
        "planned_flows": [
            {"id": "flow_1", "from": "home", "to": "task_list", "label": "Opens tasks"},
            {"id": "flow_2", "from": "task_list", "to": "task_detail", "label": "Opens a task"},
        ],
    })
    return base_state


@pytest.fixture
def selection():
    """A complete design-system selection."""
    return {
        "font": {"id": "inter", "name": "Inter", "description": "Neutral", "category": "sans-serif"},
        "vibe": {
            "id": "calm-focus",
            "name": "Calm Focus",
            "description": "Quiet surfaces",
            "keywords": ["minimal", "airy"],
            "emoji": "🌿",
        },
    }


@pytest.fixture
def valid_plan_reply():
    """Architect reply with thinking and a fenced JSON plan."""
    return (
        "<thinking>\nTodo app with a list and a detail screen.\n</thinking>\n\n"
        "```json\n"
        '{"screens": ['
        '{"id": "home", "name": "Home", "description": "Overview"},'
        '{"id": "task_list", "name": "Task List", "description": "All tasks"},'
        '{"id": "task_detail", "name": "Task Detail", "description": "One task"}],'
        ' "flows": ['
        '{"id": "flow_1", "from": "home", "to": "task_list", "label": "Opens tasks"},'
        '{"id": "flow_2", "from": "task_list", "to": "task_detail", "label": "Opens a task"}]}\n'
        "```"
    )


@pytest.fixture
def mock_config():
    """Patch the config singleton with test-friendly values."""
    test_config = {
        "clarifier_model": "gemini-2.5-flash",
        "clarifier_temperature": 0.7,
        "design_system_model": "gemini-2.5-flash",
        "architect_model": "gemini-2.5-pro",
        "designer_model": "gemini-2.5-pro",
        "utility_model": "gemini-2.0-flash",
        "utility_temperature": 0.1,
        "max_output_tokens": 65536,
        "llm_timeout_seconds": 5,
        "designer_timeout_seconds": 5,
        "max_parallel_screens": 4,
        "log_level": "INFO",
        "output_dir": "./output",
    }
    with patch("screenflow.config._config", test_config):
        yield test_config
