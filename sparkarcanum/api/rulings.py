"""
AI ruling endpoint.

Answers rules questions about specific cards with Claude.
"""

import logging
from typing import Annotated, Literal

import anthropic
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from sparkarcanum.db import get_cards
from sparkarcanum.db.database import get_session
from sparkarcanum.errors import RulingUnavailableError
from sparkarcanum.services.rulings import ask_ruling

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rulings", tags=["rulings"])


class ConversationMessage(BaseModel):
    """An earlier turn of the conversation."""

    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class RulingRequest(BaseModel):
    """A rules question, optionally about specific cards."""

    question: str = Field(..., min_length=1, max_length=4000)
    card_ids: list[str] = Field(
        default_factory=list,
        description="uuids of the cards involved, primary card first",
        max_length=10,
    )
    history: list[ConversationMessage] = Field(default_factory=list)


class RulingResponse(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str
    cited_rules: list[str] = Field(default_factory=list)
    card_names: list[str] = Field(default_factory=list)


@router.post("/ask", response_model=RulingResponse)
async def ask(
    request: RulingRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> RulingResponse:
    """
    Ask for a ruling.

    Returns 503 if the AI assistant is not configured and 502 if the
    upstream API call fails.
    """
    cards = await get_cards(session, request.card_ids)
    history = [{"role": m.role, "content": m.content} for m in request.history]

    try:
        answer, rules = await ask_ruling(session, request.question, cards, history)
    except RulingUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    except anthropic.APIError as e:
        logger.exception("Ruling request failed")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="AI ruling service error",
        ) from e

    return RulingResponse(
        content=answer,
        cited_rules=[r.rule_number for r in rules],
        card_names=[c.name for c in cards],
    )
