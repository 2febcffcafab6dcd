"""
Workflows for ThreadVault.
"""

from .dialogue import DialogueOrchestrator, build_history, build_system_prompt

__all__ = ["DialogueOrchestrator", "build_history", "build_system_prompt"]
