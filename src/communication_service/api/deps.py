"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from communication_service.application.dto.principal import Principal
from communication_service.application.ports.auth import TokenVerifier
from communication_service.application.uow import UnitOfWork
from communication_service.config import settings
from communication_service.infrastructure.auth.hs256_verifier import HS256Verifier
from communication_service.infrastructure.auth.jwks_verifier import JWKSVerifier
from communication_service.infrastructure.cache.redis_cache import RedisCache
from communication_service.infrastructure.db.session import AsyncSessionLocal
from communication_service.infrastructure.db.uow import SqlAlchemyUoW

_bearer_scheme = HTTPBearer(auto_error=False)


def get_cache(request: Request) -> RedisCache | None:
    """Shared cache built at startup; absent when the app runs without Redis."""
    return getattr(request.app.state, "cache", None)


CacheDep = Annotated[RedisCache | None, Depends(get_cache)]


async def get_uow(cache: CacheDep) -> AsyncIterator[UnitOfWork]:
    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session, cache)
        try:
            yield uow
        finally:
            await session.close()


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        if not settings.JWKS_URL:
            raise RuntimeError("JWKS_URL must be set when JWT_VERIFY_MODE=jwks")
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> Principal:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
