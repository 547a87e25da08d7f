"""Content safety: ban rules, classifier and rule loading."""

from curator.moderation.classifier import ContentClassifier
from curator.moderation.schemas import (
    BUILTIN_KEYWORDS,
    BanRule,
    MatchStrategy,
    RuleKind,
    RuleScope,
    Verdict,
    builtin_rules,
)
from curator.moderation.service import RuleService, RuleSet

__all__ = [
    "BUILTIN_KEYWORDS",
    "BanRule",
    "ContentClassifier",
    "MatchStrategy",
    "RuleKind",
    "RuleScope",
    "RuleService",
    "RuleSet",
    "Verdict",
    "builtin_rules",
]
