from typing import AsyncIterator, Optional

from fastapi import Header, HTTPException

from services.remote_client import RemoteServiceClient


async def get_remote_client() -> AsyncIterator[RemoteServiceClient]:
    """Unauthenticated client for applicant-facing calls."""
    async with RemoteServiceClient() as client:
        yield client


def bearer_token(authorization: Optional[str]) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail="Admin token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()


async def get_admin_client(authorization: Optional[str] = Header(None)) -> AsyncIterator[RemoteServiceClient]:
    """Client carrying the caller's admin token, forwarded to the remote service."""
    async with RemoteServiceClient(token=bearer_token(authorization)) as client:
        yield client
