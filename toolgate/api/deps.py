"""Request dependencies shared by the API routers."""

from fastapi import Request

from toolgate.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    """The Runtime owned by the running app."""
    return request.app.state.runtime
