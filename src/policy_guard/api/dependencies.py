"""FastAPI dependencies shared by the operator endpoints."""

from typing import Annotated

from beartype import beartype
from fastapi import Depends, HTTPException, Request, status

from ..context import SecurityContext


@beartype
async def get_security_context(request: Request) -> SecurityContext:
    """Return the context attached to the application at startup.

    Raises:
        HTTPException: If the engine has not finished initializing.
    """
    context = getattr(request.app.state, "security_context", None)
    if context is None or not context.initialized:
        # Dependency functions signal failures to FastAPI through HTTPException
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Security engine not initialized",
        )
    return context


ContextDep = Annotated[SecurityContext, Depends(get_security_context)]
