"""
Comprehensive rules importer.

Parses the plain-text Magic: The Gathering Comprehensive Rules published
by Wizards of the Coast and syncs them into the rules table. The sync is
differential: rules are keyed by rule number and only rewritten when their
text, examples, or keywords changed.

Text layout:
    1. Game Concepts                <- chapter heading
    100. General                    <- section heading
    100.1. These Magic rules ...    <- rule
    100.1a A two-player game ...    <- subrule (period after the letter optional)
    Example: ...                    <- example attached to the previous rule
"""

import logging
import re
from pathlib import Path

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sparkarcanum.models.db import RuleDB
from sparkarcanum.models.rule import ParsedRule
from sparkarcanum.models.summary import RulesSyncSummary

logger = logging.getLogger(__name__)

USER_AGENT = "SparkArcanum/1.0 MTG Rules Importer"

_CHAPTER_RE = re.compile(r"^(\d)\.\s+(\S.*)$")
_SECTION_RE = re.compile(r"^(\d{3})\.\s+(\S.*)$")
_RULE_RE = re.compile(r"^(\d{3}\.\d+[a-z]?)\.?\s+(\S.*)$")
_INLINE_EXAMPLE_RE = re.compile(r"Example:\s*(.+?)(?=\s*Example:|$)", re.DOTALL)
_RULE_REFERENCE_RE = re.compile(r"\brules?\s+(\d{3}(?:\.\d+[a-z]?)?)")

# Searchable MTG terms, matched as substrings of the lowercased rule text
KEY_TERMS = (
    # Zones
    "library", "graveyard", "exile", "battlefield", "hand", "stack", "command",
    # Card types
    "creature", "artifact", "enchantment", "land", "instant", "sorcery",
    "planeswalker", "battle", "tribal", "saga", "dungeon", "plane",
    # Game concepts
    "mana", "spell", "card", "player", "turn", "phase", "step",
    "counter", "token", "ability", "combat", "damage", "life", "draw",
    "discard", "sacrifice", "destroy", "attach", "equip", "cast", "play",
    "reveal", "search", "shuffle", "tap", "untap", "enchant",
    "trigger", "target", "activated", "triggered", "priority",
    "permanent", "effect", "controller", "owner",
    # Evergreen keywords
    "banding", "trample", "first strike", "double strike", "deathtouch", "lifelink",
    "vigilance", "reach", "flying", "haste", "hexproof", "indestructible", "flash",
    "menace", "protection", "shroud", "ward", "defender", "prowess",
    # Mechanics
    "copy", "morph", "transform", "flip", "split", "fuse",
    "kicker", "entwine", "splice", "ninjutsu", "convoke", "delve", "emerge",
    "cascade", "mutate", "companion", "foretell", "disturb", "background",
    # Turn structure
    "beginning phase", "untap step", "upkeep step", "draw step",
    "main phase", "precombat main phase", "postcombat main phase",
    "combat phase", "beginning of combat step", "declare attackers step",
    "declare blockers step", "combat damage step", "end of combat step",
    "ending phase", "end step", "cleanup step",
    # Colors
    "white", "blue", "black", "red", "green", "colorless", "multicolored",
)  # fmt: skip

_ABILITY_WORD_RE = re.compile(
    r"\b(battalion|bloodrush|channel|chroma|cohort|constellation|converge|delirium|domain|"
    r"fateful hour|ferocious|formidable|grandeur|hellbent|heroic|imprint|inspired|"
    r"join forces|kinship|landfall|lieutenant|metalcraft|morbid|parley|radiance|raid|"
    r"rally|revolt|spell mastery|strive|sweep|threshold|undergrowth|will of the council)\b",
    re.IGNORECASE,
)


def extract_keywords(text: str) -> list[str]:
    """Return the MTG terms mentioned in a rule, in vocabulary order."""
    lowered = text.lower()
    keywords = [term for term in KEY_TERMS if term in lowered]
    for match in _ABILITY_WORD_RE.finditer(text):
        word = match.group(1).lower()
        if word not in keywords:
            keywords.append(word)
    return keywords


def _split_examples(text: str) -> tuple[str, list[str]]:
    """Separate inline "Example:" passages from the rule text."""
    examples = [m.group(1).strip() for m in _INLINE_EXAMPLE_RE.finditer(text)]
    cleaned = _INLINE_EXAMPLE_RE.sub("", text).strip()
    return cleaned, examples


def _parent_rule(rule_number: str) -> str | None:
    if rule_number[-1].isalpha():
        return rule_number[:-1]
    return None


def parse_rules(text: str) -> list[ParsedRule]:
    """
    Parse comprehensive rules text into structured rules.

    Chapter and section names come from the heading lines. Lines following
    a rule that are not themselves rules or headings are continuation text
    or examples. Parsing stops at the glossary. When a rule number appears
    more than once, the entry with the longest text wins.

    Args:
        text: Full rules text

    Returns:
        Parsed rules in document order
    """
    chapters: dict[str, str] = {}
    sections: dict[str, str] = {}
    parsed: dict[str, ParsedRule] = {}
    current: ParsedRule | None = None
    seen_rules = False

    for raw_line in text.lstrip("\ufeff").splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if seen_rules and line == "Glossary":
            break

        rule_match = _RULE_RE.match(line)
        if rule_match:
            seen_rules = True
            rule_number, body = rule_match.groups()
            current = ParsedRule(rule_number=rule_number, text=body)
            existing = parsed.get(rule_number)
            if existing is None or len(body) > len(existing.text):
                parsed[rule_number] = current
            continue

        section_match = _SECTION_RE.match(line)
        if section_match:
            sections[section_match.group(1)] = section_match.group(2).strip()
            current = None
            continue

        chapter_match = _CHAPTER_RE.match(line)
        if chapter_match:
            chapters[chapter_match.group(1)] = chapter_match.group(2).strip()
            current = None
            continue

        if current is None:
            continue

        if line.startswith("Example:"):
            current.examples.append(line[len("Example:") :].strip())
        else:
            current.text = f"{current.text} {line}"

    rules: list[ParsedRule] = []
    for rule in parsed.values():
        body, inline_examples = _split_examples(rule.text)
        rule.text = re.sub(r"\s+", " ", body)
        rule.examples = inline_examples + rule.examples
        prefix = rule.rule_number.split(".", 1)[0]
        rule.chapter = chapters.get(prefix[0])
        rule.section = sections.get(prefix)
        rule.subsection = _parent_rule(rule.rule_number)
        rule.keywords = extract_keywords(rule.text)
        rule.related_rules = sorted(
            {ref for ref in _RULE_REFERENCE_RE.findall(rule.text) if ref != rule.rule_number}
        )
        rules.append(rule)

    logger.info("Parsed %d rules (%d sections)", len(rules), len(sections))
    return rules


def read_rules_file(path: Path) -> str:
    """Read a locally stored rules text file."""
    return path.read_text(encoding="utf-8-sig")


async def fetch_rules_text(client: httpx.AsyncClient, url: str) -> str:
    """
    Download the comprehensive rules text.

    Raises:
        httpx.HTTPError: If the request fails
    """
    response = await client.get(url, headers={"User-Agent": USER_AGENT, "Accept": "text/plain"})
    response.raise_for_status()
    logger.info("Downloaded rules text (%d bytes)", len(response.content))
    return response.text


def _has_changed(existing: RuleDB, rule: ParsedRule) -> bool:
    return (
        existing.text != rule.text
        or list(existing.examples or []) != rule.examples
        or list(existing.keywords or []) != rule.keywords
    )


async def sync_rules(session: AsyncSession, rules: list[ParsedRule]) -> RulesSyncSummary:
    """
    Differentially upsert parsed rules keyed by rule number.

    New rules are inserted, rules whose text, examples, or keywords differ
    are updated, and identical rules are left alone. A rule that fails to
    write is logged and counted without stopping the sync.
    """
    result = await session.execute(select(RuleDB))
    existing_rules = {rule.rule_number: rule for rule in result.scalars().all()}

    summary = RulesSyncSummary()

    for rule in rules:
        existing = existing_rules.get(rule.rule_number)
        if existing is not None and not _has_changed(existing, rule):
            summary.unchanged += 1
            continue

        try:
            async with session.begin_nested():
                if existing is None:
                    db_rule = RuleDB(rule_number=rule.rule_number)
                    session.add(db_rule)
                else:
                    db_rule = existing
                db_rule.text = rule.text
                db_rule.examples = rule.examples
                db_rule.keywords = rule.keywords
                db_rule.chapter = rule.chapter
                db_rule.section = rule.section
                db_rule.subsection = rule.subsection
                db_rule.related_rules = rule.related_rules
                await session.flush()
        except SQLAlchemyError as e:
            logger.warning("Failed to write rule %s: %s", rule.rule_number, e)
            summary.errors += 1
            continue

        if existing is None:
            existing_rules[rule.rule_number] = db_rule
            summary.inserted += 1
        else:
            summary.updated += 1

    logger.info(
        "Rules sync: %d new, %d updated, %d unchanged, %d errors",
        summary.inserted,
        summary.updated,
        summary.unchanged,
        summary.errors,
    )
    return summary
