"""Adapters exposing one uniform telemetry surface per coding-assistant tool."""

from .base import AdapterInfo, AdapterStatus, AgentAdapter
from .claude_code import ClaudeCodeAdapter
from .codex import CodexAdapter
from .copilot import CopilotAdapter
from .cursor import CursorAdapter
from .discovery import AdapterPaths, Installation
from .errors import AdapterConnectionError, AdapterError, AdapterNotFoundError
from .goose import GooseAdapter
from .opencode import OpenCodeAdapter
from .registry import AdapterRegistry, build_default_registry

__all__ = [
    "AdapterConnectionError",
    "AdapterError",
    "AdapterInfo",
    "AdapterNotFoundError",
    "AdapterPaths",
    "AdapterRegistry",
    "AdapterStatus",
    "AgentAdapter",
    "ClaudeCodeAdapter",
    "CodexAdapter",
    "CopilotAdapter",
    "CursorAdapter",
    "GooseAdapter",
    "Installation",
    "OpenCodeAdapter",
    "build_default_registry",
]
