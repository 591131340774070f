"""Alert service - CRUD and trigger bookkeeping for price alerts."""

import logging
from datetime import timezone
from typing import Optional

from sqlalchemy.orm import Session

from models import PriceAlert
from schemas import AlertCreate, AlertUpdate
from services.alert_evaluator import AlertTransition, InvalidAlertError, validate_alert
from services.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class AlertService:
    """Service for price alert persistence.

    Re-arming: whenever an alert goes from inactive to active, its trigger
    metadata is cleared and it is evaluable again at its current target.
    """

    @staticmethod
    def list_alerts(db: Session, user_id: str) -> list[PriceAlert]:
        """List all of a user's alerts (armed, triggered and disabled), newest first."""
        return (
            db.query(PriceAlert)
            .filter(PriceAlert.user_id == user_id)
            .order_by(PriceAlert.created_at.desc())
            .all()
        )

    @staticmethod
    def list_armed(db: Session, user_id: Optional[str] = None) -> list[PriceAlert]:
        """List active alerts, for one user or for everyone."""
        query = db.query(PriceAlert).filter(PriceAlert.is_active.is_(True))
        if user_id is not None:
            query = query.filter(PriceAlert.user_id == user_id)
        return query.all()

    @staticmethod
    def get_alert(db: Session, user_id: str, alert_id: str) -> PriceAlert:
        """Fetch one of the user's alerts or raise NotFoundError."""
        alert = (
            db.query(PriceAlert)
            .filter(PriceAlert.id == alert_id, PriceAlert.user_id == user_id)
            .first()
        )
        if alert is None:
            raise NotFoundError("Alert not found")
        return alert

    @staticmethod
    def create_alert(db: Session, user_id: str, data: AlertCreate) -> PriceAlert:
        """Create an armed alert.

        Raises:
            InvalidAlertError: non-positive target price.
        """
        alert = PriceAlert(
            user_id=user_id,
            coin_id=data.coin_id,
            coin_symbol=data.coin_symbol,
            coin_name=data.coin_name,
            condition=data.condition.value,
            target_price=data.target_price,
            is_active=True,
        )
        validate_alert(alert)
        db.add(alert)
        db.commit()
        db.refresh(alert)
        logger.info(
            "Alert created: %s %s %s for user %s (id=%s)",
            data.coin_id, data.condition.value, data.target_price, user_id, alert.id,
        )
        return alert

    @staticmethod
    def _rearm(alert: PriceAlert) -> None:
        alert.is_active = True
        alert.triggered_price = None
        alert.triggered_at = None

    @staticmethod
    def update_alert(
        db: Session, user_id: str, alert_id: str, data: AlertUpdate
    ) -> PriceAlert:
        """Edit condition, target and/or active flag.

        Editing condition or target of a triggered alert does not re-arm it;
        only ``is_active=true`` does.
        """
        alert = AlertService.get_alert(db, user_id, alert_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("condition") is not None:
            alert.condition = changes["condition"].value
        if changes.get("target_price") is not None:
            alert.target_price = changes["target_price"]
        if changes.get("is_active") is True and not alert.is_active:
            AlertService._rearm(alert)
        elif changes.get("is_active") is False:
            alert.is_active = False

        try:
            validate_alert(alert)
        except InvalidAlertError:
            db.rollback()
            raise
        db.commit()
        db.refresh(alert)
        logger.info("Alert updated: %s", alert_id)
        return alert

    @staticmethod
    def set_active(db: Session, user_id: str, alert_id: str, is_active: bool) -> PriceAlert:
        """Toggle an alert on (re-arming it) or off."""
        alert = AlertService.get_alert(db, user_id, alert_id)
        if is_active and not alert.is_active:
            AlertService._rearm(alert)
            logger.info("Alert re-armed: %s", alert_id)
        elif not is_active:
            alert.is_active = False
        db.commit()
        db.refresh(alert)
        return alert

    @staticmethod
    def delete_alert(db: Session, user_id: str, alert_id: str) -> None:
        alert = AlertService.get_alert(db, user_id, alert_id)
        db.delete(alert)
        db.commit()
        logger.info("Alert deleted: %s", alert_id)

    @staticmethod
    def apply_transition(db: Session, transition: AlertTransition) -> bool:
        """Durably mark an alert as triggered.

        The update only matches while the alert is still active, so if the
        user disabled it or another cycle already fired it, nothing changes
        and False is returned; the caller must then skip the notification.
        """
        triggered_at = transition.observed_at
        if triggered_at.tzinfo is not None:
            triggered_at = triggered_at.astimezone(timezone.utc)

        updated = (
            db.query(PriceAlert)
            .filter(
                PriceAlert.id == transition.alert_id,
                PriceAlert.is_active.is_(True),
            )
            .update(
                {
                    PriceAlert.is_active: False,
                    PriceAlert.triggered_price: transition.triggered_price,
                    PriceAlert.triggered_at: triggered_at,
                },
                synchronize_session=False,
            )
        )
        db.commit()
        if updated:
            logger.info("Alert %s marked as triggered", transition.alert_id)
        else:
            logger.info(
                "Alert %s no longer active, trigger not applied", transition.alert_id
            )
        return bool(updated)
