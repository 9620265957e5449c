"""
newsgate - reference-grounded generation gate for newsroom AI drafts.

Generates short news items and long-form drafts that must:
- Stay grounded in real, fetched reference articles
- Avoid verbatim copying of those references
- Satisfy per-mode structural contracts
- Pass a compliance risk scan before publication
"""

__version__ = "0.1.0"
