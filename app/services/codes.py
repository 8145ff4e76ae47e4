# app/services/codes.py
"""
Short random codes for tickets (8 chars) and gift codes (12 chars).

The existence check done while drawing a code only makes collisions rare.
Uniqueness itself is guaranteed by the database unique constraint:
``persist_with_unique_codes`` runs a whole batch in one transaction and, when
the commit trips the code constraint, rolls the batch back and rebuilds it
with fresh codes.
"""
import logging
import secrets
import string
from typing import Callable, Iterable, Optional, Set, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import CodeGenerationExhausted

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
TICKET_CODE_LENGTH = 8
GIFT_CODE_LENGTH = 12
MAX_CODE_ATTEMPTS = 10

T = TypeVar("T")


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def generate_code(length: int, charset: str = CODE_ALPHABET) -> str:
    return "".join(secrets.choice(charset) for _ in range(length))


def generate_unique_code(
    length: int,
    exists: Callable[[str], bool],
    charset: str = CODE_ALPHABET,
    max_attempts: int = MAX_CODE_ATTEMPTS,
    issued: Optional[Set[str]] = None,
) -> str:
    """Draw codes until one is neither known to ``exists`` nor already in ``issued``.

    ``issued`` collects codes handed out for the current batch so two rows of
    the same batch never share a code. Raises ``CodeGenerationExhausted``
    after ``max_attempts`` candidates.
    """
    for _ in range(max_attempts):
        candidate = generate_code(length, charset)
        if issued is not None and candidate in issued:
            continue
        if exists(candidate):
            continue
        if issued is not None:
            issued.add(candidate)
        return candidate
    raise CodeGenerationExhausted(max_attempts)


def is_code_collision(exc: IntegrityError, markers: Iterable[str]) -> bool:
    """True when the integrity error was raised by one of the code constraints.

    PostgreSQL reports the constraint name, SQLite reports ``table.column``.
    """
    text = str(getattr(exc, "orig", exc)).lower()
    return any(marker.lower() in text for marker in markers)


def persist_with_unique_codes(
    db: Session,
    build: Callable[[], T],
    collision_markers: Iterable[str],
    max_attempts: int = MAX_CODE_ATTEMPTS,
) -> T:
    """Run ``build`` and commit, retrying the whole batch on a code collision.

    ``build`` adds every row of the batch to the session (and performs any
    other writes that must share the transaction) and returns the result.
    It is called again from scratch after a collision, so it must draw new
    codes on each call. Any other failure rolls back and propagates.
    """
    markers = tuple(collision_markers)
    for attempt in range(1, max_attempts + 1):
        try:
            result = build()
            db.commit()
            return result
        except IntegrityError as e:
            db.rollback()
            if not is_code_collision(e, markers):
                raise
            logger.warning(f"Code collision on commit (attempt {attempt}/{max_attempts}), rebuilding batch")
        except Exception:
            db.rollback()
            raise
    raise CodeGenerationExhausted(max_attempts)
