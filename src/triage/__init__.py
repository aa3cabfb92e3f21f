"""
Triage Module
=============

Bounded Context for the AI-assisted ticket layer.

Responsibilities:
- Analyze customer messages (category, sentiment, urgency, summary)
- Summarize ticket conversations
- Draft agent replies grounded in knowledge base passages
"""

__version__ = "1.0.0"
