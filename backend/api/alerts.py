"""Price alert API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from database import get_db
from schemas import AlertActiveUpdate, AlertCreate, AlertResponse, AlertUpdate
from services.alert_evaluator import InvalidAlertError
from services.alert_service import AlertService
from services.exceptions import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users/{user_id}/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertResponse])
def list_alerts(user_id: str, db: Session = Depends(get_db)):
    """List all of the user's alerts, including triggered and disabled ones."""
    return AlertService.list_alerts(db, user_id)


@router.post("", response_model=AlertResponse, status_code=201)
def create_alert(user_id: str, data: AlertCreate, db: Session = Depends(get_db)):
    """Create an armed alert."""
    try:
        return AlertService.create_alert(db, user_id, data)
    except InvalidAlertError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.patch("/{alert_id}", response_model=AlertResponse)
def update_alert(
    user_id: str,
    alert_id: str,
    data: AlertUpdate,
    db: Session = Depends(get_db),
):
    """Edit an alert's condition, target or active flag."""
    try:
        return AlertService.update_alert(db, user_id, alert_id, data)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidAlertError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.put("/{alert_id}/active", response_model=AlertResponse)
def set_alert_active(
    user_id: str,
    alert_id: str,
    data: AlertActiveUpdate,
    db: Session = Depends(get_db),
):
    """Disable an alert, or re-arm it (clearing any previous trigger)."""
    try:
        return AlertService.set_active(db, user_id, alert_id, data.is_active)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{alert_id}", status_code=204)
def delete_alert(user_id: str, alert_id: str, db: Session = Depends(get_db)):
    """Delete an alert."""
    try:
        AlertService.delete_alert(db, user_id, alert_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)
