"""
Ledger Kernel

Persistence and infrastructure shared by the recurring-transaction engine:
- Declarative base with UUID keys and audit columns
- Engine / session management with atomic session scopes
- Injectable clocks
- Structured JSON logging
- Typed exceptions with machine-readable codes
- The ledger itself (accounts, categories, append-only transactions)
"""

__version__ = "0.1.0"
