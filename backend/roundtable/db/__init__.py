"""Local Database: SQLAlchemy Base for device-local state.

Invariants:
    - Single async engine per process (initialized via init_db)
    - Holds only unreplicated state; the remote store is never mirrored here
"""
