"""
Single-commit write transactions for engine operations.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.core.exceptions import PersistenceError, TeamAccessError
from app.utils import get_logger


log = get_logger(__name__)

_FLUSHED = "atomic_flushed"


@event.listens_for(Session, "after_flush")
def _mark_flushed(session: Session, _flush_context) -> None:
    session.info[_FLUSHED] = True


def _has_writes(db: AsyncSession) -> bool:
    return bool(db.new or db.dirty or db.deleted) or db.info.get(_FLUSHED, False)


@asynccontextmanager
async def atomic(
    db: AsyncSession,
    on_integrity_error: Optional[Callable[[IntegrityError], Optional[TeamAccessError]]] = None,
) -> AsyncIterator[AsyncSession]:
    """
    Run the checks and writes of one operation in the session's current
    transaction and commit once at the end.

    An engine error raised before anything was written ends the transaction
    without expiring the session, so entities the caller already holds stay
    readable. Once something was written, engine errors roll back and
    propagate unchanged. Store errors roll back and surface as
    PersistenceError, unless ``on_integrity_error`` maps an IntegrityError
    to a more specific engine error.

    Usage:
        async with atomic(db):
            role = await get_role(db, role_id, for_update=True)
            await db.delete(role)
    """
    db.info[_FLUSHED] = False
    try:
        yield db
        await db.commit()
    except TeamAccessError:
        if _has_writes(db):
            await db.rollback()
        else:
            # nothing to undo; releases row locks without expiring loaded state
            await db.commit()
        raise
    except IntegrityError as e:
        await db.rollback()
        mapped = on_integrity_error(e) if on_integrity_error else None
        if mapped is not None:
            raise mapped from e
        log.error("Integrity error in team store: %s", e)
        raise PersistenceError(e) from e
    except SQLAlchemyError as e:
        await db.rollback()
        log.error("Team store failure: %s", e)
        raise PersistenceError(e) from e
    finally:
        db.info.pop(_FLUSHED, None)
