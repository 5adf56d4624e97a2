"""Configuration module: exports the pydantic-settings Settings class."""

from knowledge_rag.config.settings import Settings

__all__ = ["Settings"]
