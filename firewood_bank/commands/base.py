"""
Transaction boundary shared by every command.

A command runs its service calls inside `transaction(...)`: success commits,
any failure rolls back so no partial state (status, reservation, audit rows)
survives.
"""
from contextlib import contextmanager

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import FirewoodError, StoreError
from ..services.permissions import ActorContext


logger = structlog.get_logger(__name__)


@contextmanager
def transaction(db: Session, command: str, actor: ActorContext):
    try:
        yield db
        db.commit()
    except FirewoodError as e:
        db.rollback()
        logger.info("command_failed", command=command, actor=actor.username, code=e.code, error=e.message)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("command_failed", command=command, actor=actor.username, code=StoreError.code, error=str(e))
        raise StoreError(f"Database error during {command}") from e
    except Exception:
        db.rollback()
        logger.exception("command_failed", command=command, actor=actor.username)
        raise
