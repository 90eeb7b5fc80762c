"""
Services module for business logic.

- domain/: Lifecycle controller, order store, coupons, settlement
- events/: Order change feeds (in-process and Redis)
- documents.py: Kitchen tickets and bills
- commands.py: Manual and voice command dispatch
- terminal.py: Per-table controllers held by a running terminal
"""
