"""Services Layer: sync engine, optimistic write coordinator, board actions.

Invariants:
    - Services orchestrate IO around pure core functions
    - All mutable process state is owned by an explicitly constructed Runtime
"""
