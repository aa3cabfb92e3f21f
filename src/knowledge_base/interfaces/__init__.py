"""
Knowledge Base Interfaces Layer
===============================

Contains:
- Controllers: FastAPI route handlers
"""

from src.knowledge_base.interfaces.controllers import knowledge_base_router

__all__ = ["knowledge_base_router"]
