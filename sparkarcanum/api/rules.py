"""
Comprehensive rules endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from sparkarcanum.db import get_rule, search_rules
from sparkarcanum.db.database import get_session
from sparkarcanum.models.db import RuleDB

router = APIRouter(prefix="/rules", tags=["rules"])


class RuleResponse(BaseModel):
    """A single comprehensive rule."""

    rule_number: str
    text: str
    chapter: str | None = None
    section: str | None = None
    subsection: str | None = None
    examples: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    related_rules: list[str] = Field(default_factory=list)


class RuleListResponse(BaseModel):
    query: str
    rules: list[RuleResponse]
    count: int


def rule_to_response(rule: RuleDB) -> RuleResponse:
    """Convert a database rule to its response model."""
    return RuleResponse(
        rule_number=rule.rule_number,
        text=rule.text,
        chapter=rule.chapter,
        section=rule.section,
        subsection=rule.subsection,
        examples=rule.examples or [],
        keywords=rule.keywords or [],
        related_rules=rule.related_rules or [],
    )


@router.get("", response_model=RuleListResponse)
async def find_rules(
    q: Annotated[str, Query(min_length=1, max_length=200)],
    session: Annotated[AsyncSession, Depends(get_session)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> RuleListResponse:
    """
    Search rules.

    A rule number ("702.19") returns that rule and its subrules; any other
    query matches rules whose text contains every word.
    """
    db_rules = await search_rules(session, q, limit=limit)
    rules = [rule_to_response(r) for r in db_rules]
    return RuleListResponse(query=q, rules=rules, count=len(rules))


@router.get("/{rule_number}", response_model=RuleResponse)
async def get_rule_by_number(
    rule_number: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> RuleResponse:
    """
    Get a rule by number.

    Returns 404 if the rule does not exist.
    """
    rule = await get_rule(session, rule_number)
    if rule is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Rule {rule_number} not found",
        )
    return rule_to_response(rule)
