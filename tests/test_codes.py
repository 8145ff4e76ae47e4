"""
Tests for ticket and gift code generation.

Covers:
- Code shape (length, alphabet) and normalization
- Batch-level uniqueness with the ``issued`` set
- Exhaustion after the attempt limit
- Whole-batch retry when the commit hits the code unique constraint
"""

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import CodeGenerationExhausted
from app.services.codes import (
    CODE_ALPHABET,
    GIFT_CODE_LENGTH,
    TICKET_CODE_LENGTH,
    generate_code,
    generate_unique_code,
    is_code_collision,
    normalize_code,
    persist_with_unique_codes,
)


def _integrity_error(message: str) -> IntegrityError:
    return IntegrityError("INSERT ...", {}, Exception(message))


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class TestGenerateCode:
    def test_ticket_code_shape(self):
        code = generate_code(TICKET_CODE_LENGTH)
        assert len(code) == 8
        assert set(code) <= set(CODE_ALPHABET)

    def test_gift_code_shape(self):
        code = generate_code(GIFT_CODE_LENGTH)
        assert len(code) == 12
        assert code == code.upper()

    def test_normalize_code(self):
        assert normalize_code("  ab12cd34 ") == "AB12CD34"
        assert normalize_code(None) == ""


class TestGenerateUniqueCode:
    def test_ten_thousand_codes_are_distinct(self):
        issued = set()
        codes = [
            generate_unique_code(TICKET_CODE_LENGTH, lambda c: False, issued=issued)
            for _ in range(10_000)
        ]
        assert len(set(codes)) == 10_000

    def test_skips_codes_that_exist(self):
        taken = {"AAAA", "BBBB"}
        seq = iter(["AAAA", "BBBB", "CCCC"])
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("app.services.codes.generate_code", lambda length, charset: next(seq))
            assert generate_unique_code(4, lambda c: c in taken) == "CCCC"

    def test_skips_codes_already_issued_in_batch(self):
        seq = iter(["AAAA", "AAAA", "BBBB"])
        issued = set()
        with pytest.MonkeyPatch.context() as mp:
            mp.setattr("app.services.codes.generate_code", lambda length, charset: next(seq))
            first = generate_unique_code(4, lambda c: False, issued=issued)
            second = generate_unique_code(4, lambda c: False, issued=issued)
        assert (first, second) == ("AAAA", "BBBB")
        assert issued == {"AAAA", "BBBB"}

    def test_raises_after_attempt_limit(self):
        exists = MagicMock(return_value=True)
        with pytest.raises(CodeGenerationExhausted) as exc_info:
            generate_unique_code(TICKET_CODE_LENGTH, exists, max_attempts=10)
        assert exists.call_count == 10
        assert exc_info.value.attempts == 10


# ---------------------------------------------------------------------------
# Persisting with the unique constraint as the final guard
# ---------------------------------------------------------------------------

class TestPersistWithUniqueCodes:
    def test_collision_is_detected_by_constraint_name(self):
        exc = _integrity_error('duplicate key value violates unique constraint "uq_tickets_code"')
        assert is_code_collision(exc, ("uq_tickets_code",))

    def test_collision_is_detected_by_sqlite_column(self):
        exc = _integrity_error("UNIQUE constraint failed: tickets.code")
        assert is_code_collision(exc, ("uq_tickets_code", "tickets.code"))

    def test_other_integrity_errors_are_not_collisions(self):
        exc = _integrity_error("NOT NULL constraint failed: tickets.email")
        assert not is_code_collision(exc, ("uq_tickets_code", "tickets.code"))

    def test_retries_whole_batch_on_collision(self):
        db = MagicMock()
        db.commit.side_effect = [_integrity_error("UNIQUE constraint failed: tickets.code"), None]
        build = MagicMock(side_effect=["first", "second"])

        result = persist_with_unique_codes(db, build, ("tickets.code",))

        assert result == "second"
        assert build.call_count == 2
        db.rollback.assert_called_once()

    def test_non_collision_integrity_error_propagates(self):
        db = MagicMock()
        db.commit.side_effect = _integrity_error("FOREIGN KEY constraint failed")

        with pytest.raises(IntegrityError):
            persist_with_unique_codes(db, MagicMock(), ("tickets.code",))
        db.rollback.assert_called_once()

    def test_build_failure_rolls_back_and_propagates(self):
        db = MagicMock()
        build = MagicMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            persist_with_unique_codes(db, build, ("tickets.code",))
        db.rollback.assert_called_once()
        db.commit.assert_not_called()

    def test_exhausted_after_repeated_collisions(self):
        db = MagicMock()
        db.commit.side_effect = _integrity_error("UNIQUE constraint failed: gift_codes.code")

        with pytest.raises(CodeGenerationExhausted):
            persist_with_unique_codes(db, MagicMock(), ("gift_codes.code",), max_attempts=3)
        assert db.rollback.call_count == 3
