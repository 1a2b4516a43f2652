"""Tests for the smart entry point's mode selection."""

from __future__ import annotations

import pytest

from chemsearch._entry import MCP_FLAG, wants_mcp


@pytest.mark.parametrize(
    "argv,tty,expected",
    [
        (["chemsearch"], False, True),
        (["chemsearch"], True, False),
        (["chemsearch", MCP_FLAG], True, True),
        (["chemsearch", "search", "water"], False, False),
        (["chemsearch", MCP_FLAG, "search"], False, False),
    ],
)
def test_wants_mcp(argv, tty, expected):
    assert wants_mcp(argv, tty) is expected
