"""
Tools exposing ThreadVault operations to agents and tool-call dispatchers.
"""

from .dialogue_tools import (
    ContinueDialogueTool,
    CreateTurnTool,
    GetRecentTurnsTool,
    GetThreadTool,
    ListThreadsTool,
    ListTurnsTool,
    SearchTurnsTool,
    UpdateTurnTool,
    VaultTool,
    get_dialogue_tools,
)

__all__ = [
    "VaultTool",
    "SearchTurnsTool",
    "ContinueDialogueTool",
    "GetRecentTurnsTool",
    "CreateTurnTool",
    "UpdateTurnTool",
    "ListThreadsTool",
    "GetThreadTool",
    "ListTurnsTool",
    "get_dialogue_tools",
]
