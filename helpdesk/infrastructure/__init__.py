"""
Infrastructure Layer
====================

Technical adapters shared across modules:
- database: SQLAlchemy async engine and sessions
- llm: OpenAI-compatible chat completion client
"""
