"""
Pytest configuration and fixtures for Tool Sequencer tests.
"""

from unittest.mock import AsyncMock, Mock

import pytest

from tool_sequencer.config_loader import reset_config_cache


@pytest.fixture
def mock_gateway():
    """A model gateway whose ``complete`` returns queued responses.

    Set ``mock_gateway.complete.side_effect`` to a list of responses.
    """
    gateway = Mock()
    gateway.model_id = "gpt-4o-mini"
    gateway.complete = AsyncMock()
    return gateway


@pytest.fixture
def workspace(tmp_path):
    """A small project tree for the file tools."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("import os\n\nprint('hello')\n")
    (tmp_path / "src" / "util.js").write_text("export const x = 1;\n")
    (tmp_path / "README.md").write_text("# Demo\n")
    (tmp_path / "config.json").write_text('{"debug": true}\n')
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("module.exports = {};\n")
    return tmp_path


@pytest.fixture(autouse=True)
def reset_config():
    """Reset the cached YAML config around each test."""
    reset_config_cache()
    yield
    reset_config_cache()
