"""Tool declarations and local tool runtimes.

Only declarations are re-exported here; import ``agentura.tools.runtime`` and
``agentura.tools.code_executor`` directly.
"""

from .declarations import (
    CODE_INTERPRETER,
    EXECUTABLE_TOOLS,
    MUSICFX_TOOL,
    SEARCH_ARCHIVE,
    VEO_TOOL,
    ToolSpec,
)

__all__ = [
    "CODE_INTERPRETER",
    "EXECUTABLE_TOOLS",
    "MUSICFX_TOOL",
    "SEARCH_ARCHIVE",
    "VEO_TOOL",
    "ToolSpec",
]
