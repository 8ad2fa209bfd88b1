"""
AI rules assistant.

Answers rules questions with Claude, grounding the prompt in the text of
the cards involved and in comprehensive rules pulled from the database.
"""

import logging
import re
from collections.abc import Sequence

import anthropic
from anthropic.types import MessageParam, TextBlock
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sparkarcanum.config import MAX_RULES_IN_PROMPT, settings
from sparkarcanum.errors import RulingUnavailableError
from sparkarcanum.models.db import CardDB, RuleDB

logger = logging.getLogger(__name__)

# Earlier turns passed back to the model
MAX_HISTORY_MESSAGES = 8

SYSTEM_PROMPT = """You are an expert on Magic: The Gathering rules and card interactions.
Give accurate rulings based on the Comprehensive Rules and the exact card text provided.

For newer mechanics that may not appear in the rules excerpts, base your explanation on
the card text provided and how it interacts with existing game rules.

Structure every answer as:
1. SUMMARY: your understanding of the scenario
2. CARD MECHANICS: quote and explain the relevant card text
3. RULES APPLICATION: how the rules apply, citing rule numbers (e.g. "rule 702.19b")
4. INTERACTION ANALYSIS: phases, the stack, priority, and state-based actions involved
5. OUTCOME: the final ruling

Only use card text that is provided. Never invent card abilities or rules."""

_MECHANIC_RE = re.compile(
    r"\b(trample|flying|lifelink|deathtouch|banding|vigilance|cumulative upkeep|flash|"
    r"first strike|double strike|protection|equip|cascade)\b",
    re.IGNORECASE,
)
_STOP_WORDS = frozenset(
    {"what", "when", "does", "will", "with", "have", "this", "that", "card", "there", "their"}
)


def extract_search_terms(question: str, cards: Sequence[CardDB] = ()) -> list[str]:
    """
    Pick words to search the rules for.

    Takes longer words from the question, words from each card's type
    line, and any evergreen mechanics named in card text.
    """
    terms: list[str] = []

    for word in re.sub(r"[^\w\s]", "", question.lower()).split():
        if len(word) > 3 and word not in _STOP_WORDS:
            terms.append(word)

    for card in cards:
        if card.type:
            terms.extend(w for w in re.split(r"\W+", card.type.lower()) if len(w) > 2)
        if card.text:
            terms.extend(m.lower() for m in _MECHANIC_RE.findall(card.text))

    return list(dict.fromkeys(terms))


async def find_relevant_rules(
    session: AsyncSession,
    terms: Sequence[str],
    limit: int = MAX_RULES_IN_PROMPT,
) -> list[RuleDB]:
    """Rules whose text mentions any of the terms, in rule number order."""
    if not terms:
        return []

    result = await session.execute(
        select(RuleDB)
        .where(or_(*(RuleDB.text.ilike(f"%{term}%") for term in terms)))
        .order_by(RuleDB.rule_number)
        .limit(limit)
    )
    rules = list(result.scalars().all())
    logger.debug("Found %d rules for terms %s", len(rules), terms)
    return rules


def _describe_card(card: CardDB) -> str:
    lines = [
        f"Name: {card.name}",
        f"Mana Cost: {card.mana_cost or 'N/A'}",
        f"Type: {card.type or 'N/A'}",
        f"Card Text: {card.text or 'N/A'}",
    ]
    if card.power is not None:
        lines.append(f"Power/Toughness: {card.power}/{card.toughness}")
    if card.loyalty is not None:
        lines.append(f"Loyalty: {card.loyalty}")
    if card.rulings:
        lines.append("Official Rulings:")
        lines.extend(f"- {r.get('date', '')}: {r.get('text', '')}" for r in card.rulings)
    return "\n".join(lines)


def build_system_prompt(cards: Sequence[CardDB], rules: Sequence[RuleDB]) -> str:
    """Assemble the system prompt from card details and rules excerpts."""
    parts = [SYSTEM_PROMPT]

    if cards:
        parts.append("=== CARDS IN QUESTION ===")
        parts.extend(_describe_card(card) for card in cards)

    if rules:
        parts.append("=== RELEVANT COMPREHENSIVE RULES ===")
        parts.extend(f"RULE {rule.rule_number}: {rule.text}" for rule in rules)

    return "\n\n".join(parts)


async def ask_ruling(
    session: AsyncSession,
    question: str,
    cards: Sequence[CardDB] = (),
    history: Sequence[MessageParam] = (),
    client: anthropic.AsyncAnthropic | None = None,
) -> tuple[str, list[RuleDB]]:
    """
    Ask Claude for a ruling.

    Args:
        session: Database session for the rules lookup
        question: The user's question
        cards: Cards the question is about, primary card first
        history: Earlier user/assistant turns, oldest first
        client: Anthropic client. Built from settings when omitted.

    Returns:
        Tuple of (answer text, rules included in the prompt)

    Raises:
        RulingUnavailableError: If no API key is configured
        anthropic.APIError: If the API call fails
    """
    if client is None:
        if not settings.anthropic_api_key:
            raise RulingUnavailableError("Anthropic API key not configured")
        client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)

    rules = await find_relevant_rules(session, extract_search_terms(question, cards))

    messages: list[MessageParam] = list(history)[-MAX_HISTORY_MESSAGES:]
    messages.append({"role": "user", "content": question})

    response = await client.messages.create(
        model=settings.anthropic_model,
        max_tokens=settings.ruling_max_tokens,
        system=build_system_prompt(cards, rules),
        messages=messages,
    )

    if response.usage:
        logger.info(
            "Ruling answered: %d input tokens, %d output tokens",
            response.usage.input_tokens,
            response.usage.output_tokens,
        )

    answer = "".join(block.text for block in response.content if isinstance(block, TextBlock))
    return answer, rules
