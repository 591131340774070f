"""Holdings API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from database import get_db
from schemas import HoldingCreate, HoldingResponse, HoldingUpdate
from services.exceptions import HoldingConflictError, NotFoundError
from services.holding_service import HoldingService
from services.valuation_engine import InvalidHoldingError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users/{user_id}/holdings", tags=["holdings"])


@router.get("", response_model=list[HoldingResponse])
def list_holdings(user_id: str, db: Session = Depends(get_db)):
    """List the user's holdings, newest first."""
    return HoldingService.list_holdings(db, user_id)


@router.post("", response_model=HoldingResponse, status_code=201)
def create_holding(user_id: str, data: HoldingCreate, db: Session = Depends(get_db)):
    """Record a holding.

    Raises:
        HTTPException:
            - 409 Conflict: The user already holds this coin
            - 422 Unprocessable Entity: Negative quantity or buy price
    """
    try:
        return HoldingService.create_holding(db, user_id, data)
    except HoldingConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvalidHoldingError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.patch("/{holding_id}", response_model=HoldingResponse)
def update_holding(
    user_id: str,
    holding_id: str,
    data: HoldingUpdate,
    db: Session = Depends(get_db),
):
    """Update quantity, buy price or notes of a holding."""
    try:
        return HoldingService.update_holding(db, user_id, holding_id, data)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidHoldingError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/{holding_id}", status_code=204)
def delete_holding(user_id: str, holding_id: str, db: Session = Depends(get_db)):
    """Remove a holding."""
    try:
        HoldingService.delete_holding(db, user_id, holding_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)
