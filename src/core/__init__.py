"""
Core business logic package for Trip Desk.

Inventory, payments, trip lifecycle and webhook reconciliation live here.
Lambda handlers in src/handlers/ are thin wrappers that call into core/.
"""

__all__: list[str] = []
