# app/api/v1/endpoints/gift_codes.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api import deps
from app.core.exceptions import NotFoundError
from app.crud.gift_code_crud import gift_code_crud
from app.schemas.gift_code import (
    GiftCodeListResponse,
    GiftCodePackCreate,
    GiftCodePackResponse,
    GiftCodePackSummary,
    GiftCodeResponse,
    GiftCodeStatus,
)
from app.schemas.token import TokenPayload
from app.services.ticket_management.gift_code_service import gift_code_service

router = APIRouter(prefix="/gift-codes", tags=["Gift Codes"])


@router.post("/packs", response_model=GiftCodePackResponse, status_code=status.HTTP_201_CREATED)
def create_gift_code_pack(
    pack_in: GiftCodePackCreate,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """**[STAFF]** Generate a pack of gift codes (1 to 1000)."""
    pack_id, codes = gift_code_service.create_pack(
        db,
        quantity=pack_in.quantity,
        expires_at=pack_in.expires_at,
        notes=pack_in.notes,
        recipient_email=pack_in.recipient_email,
    )
    return GiftCodePackResponse(
        pack_id=pack_id,
        quantity=len(codes),
        codes=[GiftCodeResponse.model_validate(c) for c in codes],
    )


@router.get("", response_model=GiftCodeListResponse)
def list_gift_codes(
    status_filter: Optional[GiftCodeStatus] = Query(None, alias="status"),
    pack_id: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """**[STAFF]** List gift codes."""
    codes, total = gift_code_service.list_codes(
        db,
        status=status_filter.value if status_filter else None,
        pack_id=pack_id,
        search=search,
        limit=limit,
        offset=offset,
    )
    return GiftCodeListResponse(
        codes=[GiftCodeResponse.model_validate(c) for c in codes],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/packs", response_model=List[GiftCodePackSummary])
def list_gift_code_packs(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """**[STAFF]** Packs with their unused / used / expired counts."""
    return gift_code_service.list_packs(db, limit, offset)


@router.get("/packs/{pack_id}", response_model=List[GiftCodeResponse])
def get_gift_code_pack(
    pack_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    codes = gift_code_crud.get_by_pack(db, pack_id)
    if not codes:
        raise NotFoundError("Gift code pack not found")
    return codes
