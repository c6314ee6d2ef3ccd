"""
Repositories package — data-access layer.

Each repository file handles all DB operations for one domain entity.
Repositories do NOT handle HTTP concerns or workflow logic.

Convention:
    - One file per aggregate root (e.g., workflows.py, execution_logs.py)
    - All functions accept `AsyncSession` as the first argument
    - Use `flush()` internally; the session commit/rollback is handled
      by the caller (`get_db` in the API layer, the log writer elsewhere)
"""
