"""Bank transaction acquisition and reconciliation.

Scrapes transactions from a bank page (vision first, DOM strategies as
fallback), records and replays the clicks that reach that page, and
classifies imported rows against stored history.
"""

__version__ = "0.1.0"
