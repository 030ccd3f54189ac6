"""
Transaction boundary for tree mutations.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.orm import Session

from nestify.core.exceptions import NestifyError

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session):
    """
    Commit the session if the block succeeds, roll it back otherwise.

    Nothing written inside the block is visible to other sessions unless the
    whole block completes. Cached rows are expired first so reads inside
    the block see what is committed right now.
    """
    db.expire_all()
    try:
        yield db
        db.commit()
    except NestifyError as e:
        db.rollback()
        logger.warning(f"Rolled back mutation: {e.kind}: {e}")
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Rolling back transaction due to: {type(e).__name__}: {e}")
        raise
