"""
PFM Kernel - shared infrastructure for the recurring-transaction engine.

- Integer minor-unit money, UTC instants on every backend
- Typed, coded exceptions
- Structured JSON logging with run-scoped context
- Injectable clock
"""

__version__ = "0.1.0"
