"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (Knowledge Base and
Ticket Triage).

DO NOT add business logic from the knowledge base or triage contexts here.
"""

__version__ = "1.0.0"
