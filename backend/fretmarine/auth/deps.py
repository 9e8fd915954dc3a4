"""FastAPI dependencies for caller identity and permission checks.

Authentication happens upstream: the gateway asserts the caller with the
``X-Actor-Id`` and ``X-Actor-Role`` headers.
"""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

from fretmarine.auth.permissions import ROLE_PERMISSIONS, has_permission
from fretmarine.middleware.exceptions import PermissionDeniedError


@dataclass(frozen=True)
class Actor:
    id: str
    role: str

    @property
    def permissions(self) -> frozenset[str]:
        return ROLE_PERMISSIONS.get(self.role, frozenset())


async def get_actor(
    x_actor_id: str | None = Header(None),
    x_actor_role: str | None = Header(None),
) -> Actor:
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity headers",
        )
    if x_actor_role not in ROLE_PERMISSIONS:
        raise PermissionDeniedError(f"Unknown role: {x_actor_role}")
    return Actor(id=x_actor_id, role=x_actor_role)


def require_permission(*perms: str):
    """Dependency factory: restrict to callers whose role holds ALL listed permissions.

    Usage:
        @router.post("/{container_id}/close")
        async def close_container(
            actor: Actor = Depends(require_permission("container.close")),
        ):
            ...
    """
    async def _check(actor: Actor = Depends(get_actor)) -> Actor:
        missing = [p for p in perms if not has_permission(actor.role, p)]
        if missing:
            raise PermissionDeniedError(f"Missing permissions: {', '.join(missing)}")
        return actor

    return _check
