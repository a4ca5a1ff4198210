"""Route Dependencies: access to the application Runtime.

Invariants:
    - The Runtime is attached to app.state by the lifespan; routes never build one
    - Tests attach a Runtime built with a mock transport to app.state directly
"""

from fastapi import Request

from roundtable.services.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime
