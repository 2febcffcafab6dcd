"""
Integration Tests for ThreadVault Components

Modules:
- test_dialogue_flow: Complete dialogue sessions through a VaultContext
"""
