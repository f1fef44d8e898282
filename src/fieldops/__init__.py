"""
fieldops - field-operations reporting backend.

Identity, authorization and live-state core: credential store, JWT
sessions, authorization guard, access audit log with block enforcement,
report ledger, and agent presence tracker.
"""

__version__ = "1.0.0"
