"""
Saved deck endpoints.

Users save, share, and edit decks. There is no login flow here: the
acting user is identified by the user_id passed with each request, and
ownership is checked against it.
"""

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from sparkarcanum.db import (
    create_deck,
    delete_deck,
    get_deck,
    get_decks_by_user,
    get_public_decks,
    get_user,
    update_deck,
)
from sparkarcanum.db.database import get_session
from sparkarcanum.errors import DeckPermissionError
from sparkarcanum.models.db import SavedDeckDB

router = APIRouter(prefix="/decks", tags=["decks"])

_CLEARABLE_FIELDS = frozenset({"description", "commander", "thumbnail_card_id"})


class DeckCard(BaseModel):
    """One entry of a deck list."""

    uuid: str | None = None
    name: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1, le=250)


class DeckFields(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    format: str = Field(..., min_length=1, max_length=50)
    commander: str | None = None
    cards: list[DeckCard] = Field(default_factory=list)
    sideboard: list[DeckCard] = Field(default_factory=list)
    thumbnail_card_id: str | None = None
    is_public: bool = False
    tags: list[str] = Field(default_factory=list)


class DeckCreateRequest(DeckFields):
    user_id: str


class DeckUpdateRequest(BaseModel):
    """Partial update. Omitted fields keep their current value."""

    user_id: str
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    format: str | None = Field(default=None, min_length=1, max_length=50)
    commander: str | None = None
    cards: list[DeckCard] | None = None
    sideboard: list[DeckCard] | None = None
    thumbnail_card_id: str | None = None
    is_public: bool | None = None
    tags: list[str] | None = None


class DeckResponse(DeckFields):
    id: str
    user_id: str
    card_count: int
    created_at: datetime
    updated_at: datetime


class DeckListResponse(BaseModel):
    decks: list[DeckResponse]
    count: int


def _card_entries(cards: list[DeckCard]) -> list[dict[str, Any]]:
    return [card.model_dump() for card in cards]


def deck_to_response(deck: SavedDeckDB) -> DeckResponse:
    """Convert a database deck to its response model."""
    cards = [DeckCard(**entry) for entry in deck.deck_data or []]
    return DeckResponse(
        id=deck.id,
        user_id=deck.user_id,
        name=deck.name,
        description=deck.description,
        format=deck.format,
        commander=deck.commander,
        cards=cards,
        sideboard=[DeckCard(**entry) for entry in deck.sideboard_data or []],
        thumbnail_card_id=deck.thumbnail_card_id,
        is_public=deck.is_public,
        tags=deck.tags or [],
        card_count=sum(card.quantity for card in cards),
        created_at=deck.created_at,
        updated_at=deck.updated_at,
    )


def _forbidden(e: DeckPermissionError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


def _not_found(deck_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Deck '{deck_id}' not found",
    )


@router.post("", response_model=DeckResponse, status_code=status.HTTP_201_CREATED)
async def save_deck(
    request: DeckCreateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckResponse:
    """
    Save a new deck.

    Returns 404 if the user does not exist.
    """
    if await get_user(session, request.user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User '{request.user_id}' not found",
        )

    deck = await create_deck(
        session,
        request.user_id,
        name=request.name,
        description=request.description,
        format=request.format,
        commander=request.commander,
        deck_data=_card_entries(request.cards),
        sideboard_data=_card_entries(request.sideboard),
        thumbnail_card_id=request.thumbnail_card_id,
        is_public=request.is_public,
        tags=request.tags,
    )
    return deck_to_response(deck)


@router.get("/public", response_model=DeckListResponse)
async def list_public_decks(
    session: Annotated[AsyncSession, Depends(get_session)],
    format: Annotated[str | None, Query(max_length=50)] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> DeckListResponse:
    """Public decks, newest first, optionally for a single format."""
    db_decks = await get_public_decks(session, format_name=format, limit=limit)
    decks = [deck_to_response(d) for d in db_decks]
    return DeckListResponse(decks=decks, count=len(decks))


@router.get("/user/{user_id}", response_model=DeckListResponse)
async def list_user_decks(
    user_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    viewer_id: Annotated[str | None, Query()] = None,
) -> DeckListResponse:
    """
    A user's decks.

    The owner (viewer_id == user_id) sees every deck; anyone else sees
    only the public ones.
    """
    db_decks = await get_decks_by_user(session, user_id)
    if viewer_id != user_id:
        db_decks = [d for d in db_decks if d.is_public]
    decks = [deck_to_response(d) for d in db_decks]
    return DeckListResponse(decks=decks, count=len(decks))


@router.get("/{deck_id}", response_model=DeckResponse)
async def get_deck_by_id(
    deck_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
    user_id: Annotated[str | None, Query()] = None,
) -> DeckResponse:
    """
    Get a deck.

    Returns 404 if it does not exist and 403 if it is private and user_id
    is not the owner.
    """
    try:
        deck = await get_deck(session, deck_id, user_id)
    except DeckPermissionError as e:
        raise _forbidden(e) from e

    if deck is None:
        raise _not_found(deck_id)
    return deck_to_response(deck)


@router.put("/{deck_id}", response_model=DeckResponse)
async def edit_deck(
    deck_id: str,
    request: DeckUpdateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckResponse:
    """
    Update a deck owned by request.user_id.

    Returns 404 if it does not exist and 403 if the user is not the owner.
    """
    changes = request.model_dump(exclude_unset=True, exclude={"user_id", "cards", "sideboard"})
    # Only the optional columns can be cleared
    changes = {k: v for k, v in changes.items() if v is not None or k in _CLEARABLE_FIELDS}
    if request.cards is not None:
        changes["deck_data"] = _card_entries(request.cards)
    if request.sideboard is not None:
        changes["sideboard_data"] = _card_entries(request.sideboard)

    try:
        deck = await update_deck(session, deck_id, request.user_id, changes)
    except DeckPermissionError as e:
        raise _forbidden(e) from e

    if deck is None:
        raise _not_found(deck_id)
    return deck_to_response(deck)


@router.delete("/{deck_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_deck(
    deck_id: str,
    user_id: Annotated[str, Query()],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> None:
    """
    Delete a deck owned by user_id.

    Returns 404 if it does not exist and 403 if the user is not the owner.
    """
    try:
        deleted = await delete_deck(session, deck_id, user_id)
    except DeckPermissionError as e:
        raise _forbidden(e) from e

    if not deleted:
        raise _not_found(deck_id)
