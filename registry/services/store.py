"""Commit helpers shared by the services."""
from __future__ import annotations

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncSession

from registry.errors import ConflictError, ValidationError

UNIQUE_VIOLATION = "23505"  # PostgreSQL SQLSTATE


def is_unique_violation(error: sa_exc.IntegrityError) -> bool:
    """Whether the store rejected the write for a duplicate key (not NULL/FK/CHECK)."""
    orig = error.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(orig)


async def commit_or_conflict(session: AsyncSession, message: str) -> None:
    """Commit, turning a unique-constraint violation into ConflictError.

    The pre-write checks are read-then-write; the store's unique indexes catch
    the writer that loses a race. Any other constraint failure is invalid
    input and raises ValidationError.
    """
    try:
        await session.commit()
    except sa_exc.IntegrityError as e:
        await session.rollback()
        if is_unique_violation(e):
            raise ConflictError(message) from e
        raise ValidationError(f"Rejected by the database: {e.orig}") from e
