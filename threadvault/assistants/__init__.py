"""
LLM assistants used by ThreadVault.
"""
