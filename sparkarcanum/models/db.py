"""
SQLAlchemy ORM models for persistent storage.

The card table mirrors the MTGJSON card schema field-for-field so a bulk
import can replace whole rows. List-valued fields use the portable JSON
type so the same models run against PostgreSQL and SQLite.
"""

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _new_uuid() -> str:
    return str(uuid.uuid4())


class CardDB(Base):
    """
    A single card printing.

    Keyed by the MTGJSON uuid, which is supplied upstream and never
    generated locally. Rows are only ever replaced wholesale by the importer
    (plus the rarity backfill, which fills in a missing rarity).
    """

    __tablename__ = "cards"

    # Identifiers
    uuid: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    scryfall_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scryfall_oracle_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scryfall_illustration_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    multiverse_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mtgo_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mtgo_foil_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mtg_arena_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tcgplayer_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    card_kingdom_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cardmarket_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Basic card info
    name: Mapped[str] = mapped_column(String(255), index=True)
    face_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    flavor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    face_flavor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    set_code: Mapped[str] = mapped_column(String(16), index=True)
    number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    artist: Mapped[str | None] = mapped_column(String(255), nullable=True)
    layout: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Mana and casting
    mana_cost: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mana_value: Mapped[float | None] = mapped_column(nullable=True)
    cmc: Mapped[float | None] = mapped_column(nullable=True)
    face_mana_cost: Mapped[str | None] = mapped_column(String(255), nullable=True)
    face_mana_value: Mapped[float | None] = mapped_column(nullable=True)
    colors: Mapped[list[str]] = mapped_column(JSON, default=list)
    color_identity: Mapped[list[str]] = mapped_column(JSON, default=list)
    color_indicator: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Types
    type: Mapped[str | None] = mapped_column(Text, nullable=True)
    face_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    types: Mapped[list[str]] = mapped_column(JSON, default=list)
    supertypes: Mapped[list[str]] = mapped_column(JSON, default=list)
    subtypes: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Stats
    power: Mapped[str | None] = mapped_column(String(16), nullable=True)
    toughness: Mapped[str | None] = mapped_column(String(16), nullable=True)
    loyalty: Mapped[str | None] = mapped_column(String(16), nullable=True)
    defense: Mapped[str | None] = mapped_column(String(16), nullable=True)

    # Text content
    text: Mapped[str | None] = mapped_column(Text, nullable=True)
    face_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    flavor_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_type: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Set and printing info
    set_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rarity: Mapped[str | None] = mapped_column(String(32), index=True, nullable=True)
    frame_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    frame_effects: Mapped[list[str]] = mapped_column(JSON, default=list)
    border_color: Mapped[str | None] = mapped_column(String(32), nullable=True)
    security_stamp: Mapped[str | None] = mapped_column(String(32), nullable=True)
    finishes: Mapped[list[str]] = mapped_column(JSON, default=list)
    duel_deck: Mapped[str | None] = mapped_column(String(8), nullable=True)

    # Flags
    is_alternative: Mapped[bool] = mapped_column(Boolean, default=False)
    is_full_art: Mapped[bool] = mapped_column(Boolean, default=False)
    is_funny: Mapped[bool] = mapped_column(Boolean, default=False)
    is_online_only: Mapped[bool] = mapped_column(Boolean, default=False)
    is_oversized: Mapped[bool] = mapped_column(Boolean, default=False)
    is_promo: Mapped[bool] = mapped_column(Boolean, default=False)
    is_rebalanced: Mapped[bool] = mapped_column(Boolean, default=False)
    is_reprint: Mapped[bool] = mapped_column(Boolean, default=False)
    is_reserved: Mapped[bool] = mapped_column(Boolean, default=False)
    is_story_spotlight: Mapped[bool] = mapped_column(Boolean, default=False)
    is_textless: Mapped[bool] = mapped_column(Boolean, default=False)
    has_content_warning: Mapped[bool] = mapped_column(Boolean, default=False)
    has_alternative_deck_limit: Mapped[bool] = mapped_column(Boolean, default=False)

    # Rankings
    edhrec_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    edhrec_saltiness: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Structured sub-documents
    identifiers: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    legalities: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list)
    foreign_data: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    related_cards: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    other_face_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    variations: Mapped[list[str]] = mapped_column(JSON, default=list)
    original_printings: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Legacy fields still returned by older API consumers
    printings: Mapped[list[str]] = mapped_column(JSON, default=list)
    rulings: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    foreign_names: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    multiverseid: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<CardDB(name={self.name}, set={self.set_code}, uuid={self.uuid})>"


class CardSetDB(Base):
    """A card set. Reference data written by the importer."""

    __tablename__ = "card_sets"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    release_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    set_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    total_cards: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<CardSetDB(code={self.code}, name={self.name})>"


class RuleDB(Base):
    """A numbered comprehensive rules entry, e.g. 100.1a."""

    __tablename__ = "rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    chapter: Mapped[str | None] = mapped_column(String(255), nullable=True)
    section: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subsection: Mapped[str | None] = mapped_column(String(32), nullable=True)
    text: Mapped[str] = mapped_column(Text)
    examples: Mapped[list[str]] = mapped_column(JSON, default=list)
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list)
    related_rules: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<RuleDB(rule_number={self.rule_number})>"


class DbMetadataDB(Base):
    """
    Bookkeeping rows for bulk imports.

    The importer writes a single row with id "card_database".
    """

    __tablename__ = "db_metadata"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    total_cards: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<DbMetadataDB(id={self.id}, total_cards={self.total_cards})>"


class UserDB(Base):
    """A registered user. Owns decks and sessions."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)
    username: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    decks: Mapped[list["SavedDeckDB"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    sessions: Mapped[list["UserSessionDB"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<UserDB(id={self.id}, username={self.username})>"


class SavedDeckDB(Base):
    """
    A deck saved by a user.

    Card lists are stored as JSON: [{"uuid": ..., "name": ..., "quantity": n}].
    """

    __tablename__ = "saved_decks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    format: Mapped[str] = mapped_column(String(50), index=True)
    commander: Mapped[str | None] = mapped_column(String(255), nullable=True)
    deck_data: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    sideboard_data: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    thumbnail_card_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped["UserDB"] = relationship(back_populates="decks")

    def __repr__(self) -> str:
        return f"<SavedDeckDB(name={self.name}, format={self.format})>"


class UserSessionDB(Base):
    """A login session token. Issued by the auth layer, which lives elsewhere."""

    __tablename__ = "user_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    session_token: Mapped[str] = mapped_column(String(255), unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    user: Mapped["UserDB"] = relationship(back_populates="sessions")

    def __repr__(self) -> str:
        return f"<UserSessionDB(user_id={self.user_id})>"
