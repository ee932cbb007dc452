"""
Database models for the betfeed sync service.

Events and game results are keyed by the upstream event identifier and are
not linked by a foreign key: either may exist without the other. Bet slips
own their selections and status history through ``slip_id``.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(Base):
    """One round of a game type as seen on the upstream feed."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(100), unique=True, nullable=False, index=True)  # upstream identifier
    game_name = Column(String(100), nullable=True, index=True)  # TypeName, e.g. MotorRacing
    game_number = Column(Integer, nullable=True)  # round number
    start_time = Column(DateTime(timezone=True), nullable=True, index=True)
    finish_time = Column(DateTime(timezone=True), nullable=True)
    is_finished = Column(Boolean, nullable=False, default=False, index=True)
    status_value = Column(Integer, nullable=True)  # 1 upcoming, 2 in progress, 3 finished, 4 cancelled
    raw_payload = Column(JSON, nullable=True)  # last-seen upstream item
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_events_game_finished', 'game_name', 'is_finished'),
    )


class GameResult(Base):
    """Declared outcome of a finished event."""
    __tablename__ = "game_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(100), unique=True, nullable=False, index=True)
    game_name = Column(String(100), nullable=True, index=True)
    result_type = Column(String(20), nullable=False)  # winner, finished, cancelled, suspended, unknown
    winning_values = Column(JSON, nullable=True)  # shape depends on game family
    result_data = Column(JSON, nullable=True)  # raw payload the result was extracted from
    game_number = Column(Integer, nullable=True)
    declared_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class BetSlip(Base):
    """A booked bet slip as submitted by the front end."""
    __tablename__ = "bet_slips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slip_id = Column(String(36), unique=True, nullable=False, index=True)
    session_guid = Column(String(100), nullable=True)
    betslip_type_value = Column(Integer, nullable=False, default=1)

    # Event info taken from the first leg
    event_id = Column(String(100), nullable=True, index=True)
    game_name = Column(String(100), nullable=True)
    game_number = Column(Integer, nullable=True)
    game_type_value = Column(Integer, nullable=True)

    # Totals
    total_stake = Column(Float, nullable=False, default=0)
    total_potential_win = Column(Float, nullable=False, default=0)
    global_single_stake = Column(Float, nullable=True)

    status = Column(String(20), nullable=False, default='pending', index=True)
    customer_id = Column(String(100), nullable=True)
    shop_id = Column(String(100), nullable=True)
    redeem_code = Column(String(16), nullable=False, index=True)
    raw_payload = Column(JSON, nullable=True)  # submitted bet object, verbatim
    placed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    # Multi-leg bet metadata
    from_pending_bet = Column(Boolean, nullable=False, default=False)
    retailer_guid = Column(String(100), nullable=True)
    is_ssbt_retailer = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    selections = relationship("BetSelection", back_populates="bet_slip", order_by="BetSelection.id")
    history = relationship("BetSlipHistory", back_populates="bet_slip", order_by="BetSlipHistory.id")


class BetSelection(Base):
    """One leg of a bet slip."""
    __tablename__ = "bet_selections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slip_id = Column(String(36), ForeignKey("bet_slips.slip_id"), nullable=False, index=True)
    bet_id = Column(String(100), nullable=True)  # leg id from the front end
    selection_id = Column(String(100), nullable=True)
    display_description = Column(Text, nullable=True)
    selection_ids = Column(JSON, nullable=True)  # list of selection ids

    market_class_value = Column(Integer, nullable=True)
    market_class_name = Column(String(100), nullable=True)
    market_class_display = Column(String(100), nullable=True)

    stake = Column(Float, nullable=False, default=0)
    odds = Column(Float, nullable=False, default=0)
    potential_win = Column(Float, nullable=False, default=0)
    bet_type_value = Column(Integer, nullable=True)
    number_of_combinations = Column(Integer, nullable=True)
    min_odds = Column(Float, nullable=True)
    max_odds = Column(Float, nullable=True)
    notation = Column(String(255), nullable=True)
    element_id = Column(String(100), nullable=True)
    extra_description = Column(Text, nullable=True)

    # Combination metadata (multi-leg bet types only)
    combo_selections = Column(JSON, nullable=True)
    bet_combination = Column(JSON, nullable=True)
    min_notation = Column(String(255), nullable=True)
    max_notation = Column(String(255), nullable=True)
    betting_layout_value = Column(String(20), nullable=True)
    draw_count = Column(Integer, nullable=True)
    executing_feed_id = Column(String(100), nullable=True)

    # Timing
    event_start_date_time = Column(DateTime(timezone=True), nullable=True)
    event_start_time = Column(String(50), nullable=True)
    event_type_value = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    bet_slip = relationship("BetSlip", back_populates="selections")


class BetSlipHistory(Base):
    """Append-only audit trail of bet slip status transitions."""
    __tablename__ = "bet_slip_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slip_id = Column(String(36), ForeignKey("bet_slips.slip_id"), nullable=False, index=True)
    status_from = Column(String(20), nullable=True)
    status_to = Column(String(20), nullable=False)
    changed_by = Column(String(100), nullable=True)
    reason = Column(Text, nullable=True)
    changed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    bet_slip = relationship("BetSlip", back_populates="history")
