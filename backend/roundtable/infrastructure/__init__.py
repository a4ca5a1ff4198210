"""Infrastructure Layer: content API client, ETag cache, local DB, logging.

Invariants:
    - All store calls wrapped with status-code classification into RoundTableError
    - Infrastructure never imports from services/ or api/
"""
