"""Content safety classification against ban rules."""

from collections.abc import Iterable

from curator.ingestion.schemas import CandidateItem
from curator.moderation.schemas import BanRule, MatchStrategy, RuleKind, RuleScope, Verdict


def scoped_text(item: CandidateItem, scope: RuleScope) -> str:
    """Lower-cased text a keyword rule with this scope inspects."""
    if scope is RuleScope.TITLE:
        text = item.title
    elif scope is RuleScope.DESCRIPTION:
        text = item.body
    else:
        text = f"{item.title} {item.body}"
    return text.lower()


def matches(text: str, pattern: str, strategy: MatchStrategy) -> bool:
    """Apply a match strategy to already lower-cased text."""
    pattern = pattern.lower()
    if strategy is MatchStrategy.EXACT:
        return text == pattern
    if strategy is MatchStrategy.STARTS_WITH:
        return text.startswith(pattern)
    if strategy is MatchStrategy.ENDS_WITH:
        return text.endswith(pattern)
    return pattern in text


class ContentClassifier:
    """
    Decide whether an item may be published.

    Any matching active rule blocks; evaluation stops at the first match.
    Inactive rules and empty rule sets allow everything.

    Usage:
        classifier = ContentClassifier()
        verdict = classifier.classify(item, rules)
        if verdict.blocked:
            logger.info("Blocked: %s", verdict.reason)
    """

    def classify(self, item: CandidateItem, rules: Iterable[BanRule]) -> Verdict:
        for rule in rules:
            if not rule.blocks:
                continue

            if rule.kind is RuleKind.CHANNEL:
                if item.channel_id and item.channel_id == rule.pattern:
                    return Verdict.block(rule, f"channel {rule.pattern} is banned")
                continue

            if matches(scoped_text(item, rule.scope), rule.pattern, rule.strategy):
                return Verdict.block(
                    rule,
                    f"{rule.scope.value} {rule.strategy.value} '{rule.pattern.lower()}'",
                )

        return Verdict.allow()
