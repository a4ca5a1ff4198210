"""Core Layer: pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Functions are pure; randomness and clocks are passed in by the caller

Design Decisions:
    - Functional core separated from imperative shell (sync engine and write
      coordinator orchestrate the IO around these functions)
"""
