"""
Triage Module
=============

Bounded Context for automated support-ticket triage.

Responsibilities:
- Classify tickets into billing, tech, shipping or other
- Retrieve published knowledge-base articles for the ticket
- Draft a reply citing those articles
- Auto-resolve confident tickets or hand them to a human
- Record every step in an append-only audit trail

Triage runs in the background; the HTTP routes only enqueue runs and read
their results.
"""

__version__ = "1.0.0"
