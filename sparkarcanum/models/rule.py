from dataclasses import dataclass, field


@dataclass
class ParsedRule:
    """
    A comprehensive rules entry parsed from the rules text.

    Attributes:
        rule_number: Full rule number (e.g., "100.1", "702.19a")
        text: Rule text with examples removed
        chapter: Chapter heading (e.g., "Game Concepts")
        section: Section heading (e.g., "General")
        subsection: Parent rule number for lettered subrules ("702.19" for "702.19a")
        examples: "Example:" passages attached to the rule
        keywords: Searchable MTG terms found in the text
    """

    rule_number: str
    text: str
    chapter: str | None = None
    section: str | None = None
    subsection: str | None = None
    examples: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    related_rules: list[str] = field(default_factory=list)
