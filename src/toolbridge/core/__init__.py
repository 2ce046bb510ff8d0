"""Core: completion interface and multi-provider orchestration."""
