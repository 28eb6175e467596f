"""
Helpdesk Triage
===============

Modular monolith for automated support-ticket triage.
"""

__version__ = "1.0.0"
