"""
Shared Infrastructure
=====================

Cross-cutting technical concerns shared by every bounded context:
- Structured JSON logging
- Correlation ID propagation
"""
