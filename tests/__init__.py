"""
ThreadVault Testing

Structure:
- unit/: Unit tests for individual components
- integration/: Integration tests for component interactions
- fixtures/: Shared fake providers and test data

Usage:
    # Run all tests
    pytest

    # Run specific test category
    pytest -m unit
    pytest -m integration
    pytest -m memory
    pytest -m llm
"""

# Test categories and markers
TEST_CATEGORIES = {
    "unit": "Unit tests for individual components",
    "integration": "Integration tests for component interaction",
    "memory": "Embedding, similarity search and retrieval tests",
    "llm": "LLM provider and dialogue tests",
}
