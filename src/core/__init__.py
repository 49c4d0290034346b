"""
PPPoE Diag Core Module

This module contains:
- The health ledger and its record types
- Credential resolution and fallback dialing
- The adapter toggle guard
- The quick and full diagnostic workflows
"""

__version__ = '1.0.0'
