# app/crud/gift_code_crud.py
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, case, func, update
from sqlalchemy.orm import Session

from app.models.gift_code import GiftCode
from app.schemas.gift_code import GiftCodeStatus
from app.utils.clock import utcnow


class CRUDGiftCode:
    """CRUD operations for gift codes."""

    def get(self, db: Session, gift_code_id: str) -> Optional[GiftCode]:
        return db.query(GiftCode).filter(GiftCode.id == gift_code_id).first()

    def get_by_code(self, db: Session, code: str) -> Optional[GiftCode]:
        return db.query(GiftCode).filter(GiftCode.code == code).first()

    def code_exists(self, db: Session, code: str) -> bool:
        return db.query(GiftCode.id).filter(GiftCode.code == code).first() is not None

    def get_by_pack(self, db: Session, pack_id: str) -> List[GiftCode]:
        return db.query(GiftCode).filter(GiftCode.pack_id == pack_id).order_by(GiftCode.code).all()

    def get_multi_filtered(
        self,
        db: Session,
        status: Optional[str] = None,
        pack_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[GiftCode], int]:
        query = db.query(GiftCode)
        if status:
            query = query.filter(GiftCode.status == status)
        if pack_id:
            query = query.filter(GiftCode.pack_id == pack_id)
        if search:
            query = query.filter(GiftCode.code.ilike(f"%{search.upper()}%"))

        total = query.count()
        codes = query.order_by(GiftCode.created_at.desc(), GiftCode.code).limit(limit).offset(offset).all()
        return codes, total

    def pack_summaries(self, db: Session, limit: int = 50, offset: int = 0) -> List[dict]:
        """Per-pack counts by status, newest pack first."""
        rows = (
            db.query(
                GiftCode.pack_id,
                func.count(GiftCode.id).label("total"),
                func.sum(case((GiftCode.status == GiftCodeStatus.unused.value, 1), else_=0)).label("unused"),
                func.sum(case((GiftCode.status == GiftCodeStatus.used.value, 1), else_=0)).label("used"),
                func.sum(case((GiftCode.status == GiftCodeStatus.expired.value, 1), else_=0)).label("expired"),
                func.min(GiftCode.created_at).label("created_at"),
            )
            .filter(GiftCode.pack_id.isnot(None))
            .group_by(GiftCode.pack_id)
            .order_by(func.min(GiftCode.created_at).desc())
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [
            {
                "pack_id": row.pack_id,
                "total": row.total,
                "unused": int(row.unused or 0),
                "used": int(row.used or 0),
                "expired": int(row.expired or 0),
                "created_at": row.created_at,
            }
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Transitions (conditional updates)
    # ------------------------------------------------------------------

    def redeem(
        self,
        db: Session,
        gift_code_id: str,
        ticket_id: Optional[str],
        used_at: datetime,
        commit: bool = True,
    ) -> bool:
        """unused -> used, bound to ``ticket_id``. False if someone else won the race."""
        result = db.execute(
            update(GiftCode)
            .where(
                and_(
                    GiftCode.id == gift_code_id,
                    GiftCode.status == GiftCodeStatus.unused.value,
                )
            )
            .values(
                status=GiftCodeStatus.used.value,
                ticket_id=ticket_id,
                used_at=used_at,
                updated_at=used_at,
            )
            .returning(GiftCode.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.scalar_one_or_none()
        if commit:
            db.commit()
        return updated is not None

    def mark_expired(self, db: Session, gift_code_id: str) -> bool:
        result = db.execute(
            update(GiftCode)
            .where(
                and_(
                    GiftCode.id == gift_code_id,
                    GiftCode.status == GiftCodeStatus.unused.value,
                )
            )
            .values(status=GiftCodeStatus.expired.value, updated_at=utcnow())
            .returning(GiftCode.id)
            .execution_options(synchronize_session=False)
        )
        updated = result.scalar_one_or_none()
        db.commit()
        return updated is not None

    def expire_stale(self, db: Session, now: datetime) -> int:
        """Flip every unused code past its expiry date to expired."""
        result = db.execute(
            update(GiftCode)
            .where(
                and_(
                    GiftCode.status == GiftCodeStatus.unused.value,
                    GiftCode.expires_at.isnot(None),
                    GiftCode.expires_at < now,
                )
            )
            .values(status=GiftCodeStatus.expired.value, updated_at=now)
            .returning(GiftCode.id)
            .execution_options(synchronize_session=False)
        )
        count = len(result.all())
        db.commit()
        return count


gift_code_crud = CRUDGiftCode()
