"""Tool declarations exposed to worker agents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Declaration of a callable tool exposed to a model."""

    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_openai(self) -> Dict[str, Any]:
        """Render in the OpenAI function-tool format accepted by ``bind_tools``."""

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters or {"type": "object", "properties": {}},
            },
        }


CODE_INTERPRETER = ToolSpec(
    name="code_interpreter",
    description="Execute a self-contained Python snippet and return its stdout and stderr.",
    parameters={
        "type": "object",
        "properties": {
            "code": {"type": "string", "description": "Python source code to run."},
        },
        "required": ["code"],
    },
)

SEARCH_ARCHIVE = ToolSpec(
    name="search_archive",
    description="Search the local document archive for passages relevant to a query.",
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Natural-language search query."},
            "source": {"type": "string", "description": "Optional source tag to restrict the search."},
        },
        "required": ["query"],
    },
)

VEO_TOOL = ToolSpec(
    name="veo_tool",
    description="Request a short generated video from a detailed visual prompt.",
    parameters={
        "type": "object",
        "properties": {"prompt": {"type": "string"}},
        "required": ["prompt"],
    },
)

MUSICFX_TOOL = ToolSpec(
    name="musicfx_tool",
    description="Request a generated music clip from a description of style and mood.",
    parameters={
        "type": "object",
        "properties": {"prompt": {"type": "string"}},
        "required": ["prompt"],
    },
)

# Tools with a local side effect; other declared tools are recorded only.
EXECUTABLE_TOOLS = frozenset({CODE_INTERPRETER.name, SEARCH_ARCHIVE.name})
