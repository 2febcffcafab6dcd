"""
Test Fixtures and Utilities for ThreadVault Testing

Modules:
- fakes: Deterministic embedding and LLM providers
"""

from .fakes import FakeEmbeddingProvider, ScriptedLLMProvider, WrongSizeEmbeddingProvider

# Common test data constants
TEST_DATA_CONSTANTS = {
    "thread_title": "Morning practice",
    "thread_description": "Daily reflections before sunrise",
    "sample_turns": [
        ("MESSIAH", "I woke before dawn and sat with the silence."),
        ("REFLECTION", "Silence before dawn can hold what the day will ask of you."),
        ("MESSIAH", "The river was loud today."),
        ("NOTE", "Remember to return to the river passage."),
    ],
}

__all__ = [
    "FakeEmbeddingProvider",
    "ScriptedLLMProvider",
    "WrongSizeEmbeddingProvider",
    "TEST_DATA_CONSTANTS",
]
