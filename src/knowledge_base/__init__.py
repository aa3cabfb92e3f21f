"""
Knowledge Base Module
=====================

Bounded Context for turning uploaded documents into a searchable semantic
index and serving relevant passages to the reply-drafting flow.

Responsibilities:
- Extract, chunk, embed and upsert uploaded documents
- Retrieve ranked passages for a query
- Delete documents from the metadata store and the vector index together
- Reconcile the two stores when they drift apart
"""

__version__ = "1.0.0"
