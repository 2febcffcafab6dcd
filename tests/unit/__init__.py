"""
Unit Tests for ThreadVault Components

Modules:
- test_store: SQLite turn store
- test_embeddings: Embedding providers and factory
- test_vectorstore: Vector queries and similarity ranking
- test_retrieval: Retrieval service and context re-ranking
- test_models: LLM providers
- test_dialogue: Dialogue workflow
- test_config: Settings, logging and process context
- test_tools: Dialogue tools
"""
