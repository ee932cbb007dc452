"""
Bet slip repository for data access.
"""
from typing import Optional, List, Tuple

from sqlalchemy import desc, func
from sqlalchemy.orm import Session, selectinload

from betfeed.models.models import BetSlip, BetSelection, BetSlipHistory
from betfeed.repositories.base import BaseRepository


class BetSlipRepository(BaseRepository[BetSlip]):
    """Repository for BetSlip, its selections and status history."""

    def __init__(self, db: Session):
        super().__init__(BetSlip, db)

    def exists_slip(self, slip_id: str) -> bool:
        return self.count(BetSlip.slip_id == slip_id) > 0

    def find_by_slip_id(self, slip_id: str, with_selections: bool = False) -> Optional[BetSlip]:
        query = self.query().filter(BetSlip.slip_id == slip_id)
        if with_selections:
            query = query.options(selectinload(BetSlip.selections))
        return query.first()

    def add_selection(self, **kwargs) -> BetSelection:
        selection = BetSelection(**kwargs)
        self.db.add(selection)
        return selection

    def add_history(
        self,
        slip_id: str,
        status_from: Optional[str],
        status_to: str,
        changed_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> BetSlipHistory:
        entry = BetSlipHistory(
            slip_id=slip_id,
            status_from=status_from,
            status_to=status_to,
            changed_by=changed_by,
            reason=reason,
        )
        self.db.add(entry)
        return entry

    def history_for(self, slip_id: str) -> List[BetSlipHistory]:
        return (
            self.db.query(BetSlipHistory)
            .filter(BetSlipHistory.slip_id == slip_id)
            .order_by(BetSlipHistory.id)
            .all()
        )

    def list_with_selection_counts(
        self, status: Optional[str] = None, limit: int = 50
    ) -> List[Tuple[BetSlip, int]]:
        """Slips newest first, each paired with its number of selections."""
        query = (
            self.db.query(BetSlip, func.count(BetSelection.id))
            .outerjoin(BetSelection, BetSelection.slip_id == BetSlip.slip_id)
            .group_by(BetSlip.id)
        )
        if status:
            query = query.filter(BetSlip.status == status)
        return query.order_by(desc(BetSlip.placed_at), desc(BetSlip.id)).limit(limit).all()
