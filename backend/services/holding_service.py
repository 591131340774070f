"""Holding service - CRUD for a user's coin holdings."""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import PortfolioHolding
from schemas import HoldingCreate, HoldingUpdate
from services.exceptions import HoldingConflictError, NotFoundError
from services.valuation_engine import InvalidHoldingError, validate_holding

logger = logging.getLogger(__name__)


class HoldingService:
    """Service for CRUD operations on portfolio holdings."""

    @staticmethod
    def list_holdings(db: Session, user_id: Optional[str] = None) -> list[PortfolioHolding]:
        """List holdings, newest first. All users' holdings when user_id is None."""
        query = db.query(PortfolioHolding)
        if user_id is not None:
            query = query.filter(PortfolioHolding.user_id == user_id)
        return query.order_by(PortfolioHolding.created_at.desc()).all()

    @staticmethod
    def get_holding(db: Session, user_id: str, holding_id: str) -> PortfolioHolding:
        """Fetch one of the user's holdings or raise NotFoundError."""
        holding = (
            db.query(PortfolioHolding)
            .filter(
                PortfolioHolding.id == holding_id,
                PortfolioHolding.user_id == user_id,
            )
            .first()
        )
        if holding is None:
            raise NotFoundError("Holding not found")
        return holding

    @staticmethod
    def create_holding(db: Session, user_id: str, data: HoldingCreate) -> PortfolioHolding:
        """Record a new holding.

        Raises:
            HoldingConflictError: the user already holds this coin.
            InvalidHoldingError: negative quantity or buy price.
        """
        existing = (
            db.query(PortfolioHolding)
            .filter_by(user_id=user_id, coin_id=data.coin_id)
            .first()
        )
        if existing:
            logger.warning(
                "Holding for coin %s already exists for user %s", data.coin_id, user_id
            )
            raise HoldingConflictError(
                "Holding for this coin already exists. Use update instead."
            )

        holding = PortfolioHolding(
            user_id=user_id,
            coin_id=data.coin_id,
            coin_symbol=data.coin_symbol,
            coin_name=data.coin_name,
            quantity=data.quantity,
            average_buy_price=data.average_buy_price,
            notes=data.notes,
        )
        validate_holding(holding)
        db.add(holding)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert for the same coin
            db.rollback()
            raise HoldingConflictError(
                "Holding for this coin already exists. Use update instead."
            ) from None
        db.refresh(holding)
        logger.info("Holding created: %s for user %s (id=%s)", data.coin_id, user_id, holding.id)
        return holding

    @staticmethod
    def update_holding(
        db: Session, user_id: str, holding_id: str, data: HoldingUpdate
    ) -> PortfolioHolding:
        """Apply the fields set on ``data`` to an existing holding."""
        holding = HoldingService.get_holding(db, user_id, holding_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if key == "quantity" and value is None:
                continue
            setattr(holding, key, value)
        try:
            validate_holding(holding)
        except InvalidHoldingError:
            db.rollback()
            raise
        db.commit()
        db.refresh(holding)
        logger.info("Holding updated: %s", holding_id)
        return holding

    @staticmethod
    def delete_holding(db: Session, user_id: str, holding_id: str) -> None:
        """Remove one of the user's holdings."""
        holding = HoldingService.get_holding(db, user_id, holding_id)
        db.delete(holding)
        db.commit()
        logger.info("Holding deleted: %s", holding_id)
