"""
Card catalog endpoints.

Card search, single printings, sets, and import metadata.
"""

from datetime import date, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from sparkarcanum.db import get_card, get_metadata, list_sets, search_card_candidates
from sparkarcanum.db.database import get_session
from sparkarcanum.models.db import CardDB
from sparkarcanum.search import consolidate_printings, score_items

router = APIRouter(tags=["cards"])


class CardResponse(BaseModel):
    """A card printing as shown in search results."""

    uuid: str
    name: str
    set_code: str
    set_name: str | None = None
    number: str | None = None
    mana_cost: str | None = None
    mana_value: float | None = None
    type: str | None = None
    text: str | None = None
    rarity: str | None = None
    colors: list[str] = Field(default_factory=list)
    power: str | None = None
    toughness: str | None = None
    loyalty: str | None = None
    image_url: str | None = None


class CardDetailResponse(CardResponse):
    """A card printing with every rules-relevant field."""

    artist: str | None = None
    flavor_text: str | None = None
    layout: str | None = None
    color_identity: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    printings: list[str] = Field(default_factory=list)
    legalities: dict[str, str] = Field(default_factory=dict)
    rulings: list[dict[str, Any]] = Field(default_factory=list)
    identifiers: dict[str, Any] = Field(default_factory=dict)
    edhrec_rank: int | None = None


class ScoredCardResponse(CardResponse):
    score: int


class CardSearchResponse(BaseModel):
    """Ranked search results."""

    query: str
    cards: list[ScoredCardResponse]
    count: int


class CardSetResponse(BaseModel):
    code: str
    name: str
    release_date: date | None = None
    set_type: str | None = None
    total_cards: int = 0


class SetListResponse(BaseModel):
    sets: list[CardSetResponse]
    count: int


class MetadataResponse(BaseModel):
    """When the card database was last imported."""

    last_updated: datetime
    total_cards: int
    description: str | None = None


def _card_fields(card: CardDB) -> dict[str, Any]:
    return {
        "uuid": card.uuid,
        "name": card.name,
        "set_code": card.set_code,
        "set_name": card.set_name,
        "number": card.number,
        "mana_cost": card.mana_cost,
        "mana_value": card.mana_value,
        "type": card.type,
        "text": card.text,
        "rarity": card.rarity,
        "colors": card.colors or [],
        "power": card.power,
        "toughness": card.toughness,
        "loyalty": card.loyalty,
        "image_url": card.image_url,
    }


def card_to_detail(card: CardDB) -> CardDetailResponse:
    """Convert a database card to the detail response."""
    return CardDetailResponse(
        **_card_fields(card),
        artist=card.artist,
        flavor_text=card.flavor_text,
        layout=card.layout,
        color_identity=card.color_identity or [],
        keywords=card.keywords or [],
        printings=card.printings or [],
        legalities=card.legalities or {},
        rulings=card.rulings or [],
        identifiers=card.identifiers or {},
        edhrec_rank=card.edhrec_rank,
    )


@router.get("/cards/search", response_model=CardSearchResponse)
async def search_cards(
    q: Annotated[str, Query(min_length=1, max_length=200)],
    session: Annotated[AsyncSession, Depends(get_session)],
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> CardSearchResponse:
    """
    Search cards by name.

    Every word of the query must appear in the card name. One printing is
    returned per card name, best match first.
    """
    candidates = await search_card_candidates(session, q)
    ranked = score_items(consolidate_printings(candidates), q)[:limit]

    cards = [ScoredCardResponse(**_card_fields(s.item), score=s.score) for s in ranked]
    return CardSearchResponse(query=q, cards=cards, count=len(cards))


@router.get("/cards/{card_uuid}", response_model=CardDetailResponse)
async def get_card_by_uuid(
    card_uuid: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardDetailResponse:
    """
    Get a single card printing.

    Returns 404 if no card has this uuid.
    """
    card = await get_card(session, card_uuid)
    if card is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card '{card_uuid}' not found",
        )
    return card_to_detail(card)


@router.get("/sets", response_model=SetListResponse)
async def get_sets(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> SetListResponse:
    """All imported sets, newest first."""
    db_sets = await list_sets(session)
    sets = [
        CardSetResponse(
            code=s.code,
            name=s.name,
            release_date=s.release_date,
            set_type=s.set_type,
            total_cards=s.total_cards,
        )
        for s in db_sets
    ]
    return SetListResponse(sets=sets, count=len(sets))


@router.get("/metadata", response_model=MetadataResponse)
async def get_import_metadata(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> MetadataResponse:
    """
    Card database import status.

    Returns 404 if no import has run yet.
    """
    metadata = await get_metadata(session)
    if metadata is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Card database has not been imported",
        )
    return MetadataResponse(
        last_updated=metadata.last_updated,
        total_cards=metadata.total_cards,
        description=metadata.description,
    )
