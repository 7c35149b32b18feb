"""
Similar-name suggestions for unresolved variable groups.

Resolution itself is exact-then-substring (see
`ado_dashboard.dashboard.variable_groups`); this module only ranks live
group names by Levenshtein distance and shared tokens so the dashboard can
say which group a misspelled binding probably meant.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from Levenshtein import distance as levenshtein_distance

logger = logging.getLogger(__name__)

CHARACTER_DISTANCE_WEIGHT = 0.7
COMMON_WORD_WEIGHT = 0.8
DEFAULT_SIMILARITY_THRESHOLD = 0.5

_TOKEN_SEPARATORS = re.compile(r"[\s\-_./\\()\[\]]+")


@dataclass
class MatchResult:
    """
    A candidate with its similarity score.

    Attributes:
        item: The original candidate
        name: The name used for scoring
        similarity: Score between 0.0 and 1.0
    """

    item: Any
    name: str
    similarity: float = 0.0


class FuzzyMatcher:
    """
    Scores names by the better of normalized edit distance and token overlap.
    """

    def __init__(
        self,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        max_suggestions: int = 3,
        character_distance_weight: float = CHARACTER_DISTANCE_WEIGHT,
        common_word_weight: float = COMMON_WORD_WEIGHT,
    ):
        self.similarity_threshold = similarity_threshold
        self.max_suggestions = max_suggestions
        self.character_distance_weight = character_distance_weight
        self.common_word_weight = common_word_weight

    def find_matches(
        self,
        query: str,
        candidates: list,
        name_extractor: Callable[[Any], str] = lambda x: getattr(x, "name", str(x)),
    ) -> list[MatchResult]:
        """
        Rank candidates by similarity to the query.

        Args:
            query: The name to look for
            candidates: Items to score
            name_extractor: Returns the name of a candidate

        Returns:
            Matches at or above the threshold, best first, at most max_suggestions.
        """
        query = (query or "").strip()
        if not query or not candidates:
            return []

        results = []
        for candidate in candidates:
            candidate_name = name_extractor(candidate)
            if not candidate_name:
                continue
            similarity = self.similarity(query, candidate_name)
            if similarity >= self.similarity_threshold:
                results.append(
                    MatchResult(item=candidate, name=candidate_name, similarity=similarity)
                )

        results.sort(key=lambda match: match.similarity, reverse=True)
        return results[: self.max_suggestions]

    def similarity(self, query: str, candidate: str) -> float:
        query_lower = query.lower()
        candidate_lower = candidate.lower()

        max_length = max(len(query_lower), len(candidate_lower))
        if max_length == 0:
            return 1.0

        distance = levenshtein_distance(query_lower, candidate_lower)
        char_score = (max_length - distance) / max_length * self.character_distance_weight

        return max(char_score, self._word_similarity(query_lower, candidate_lower))

    def _word_similarity(self, query: str, candidate: str) -> float:
        query_words = {token for token in _TOKEN_SEPARATORS.split(query) if token}
        candidate_words = {token for token in _TOKEN_SEPARATORS.split(candidate) if token}
        if not query_words or not candidate_words:
            return 0.0

        jaccard = len(query_words & candidate_words) / len(query_words | candidate_words)
        return jaccard * self.common_word_weight


def create_suggestion_message(query: str, resource_type: str, matches: list[MatchResult]) -> str:
    """
    Format a "not found, did you mean" message.

    Args:
        query: The name that failed to resolve
        resource_type: Display name of the resource, e.g. "Variable group"
        matches: Ranked suggestions

    Returns:
        str: The message
    """
    base_message = f"{resource_type} '{query}' not found."
    if not matches:
        return base_message

    names = [f"'{match.name}'" for match in matches]
    if len(names) == 1:
        suggestion_text = names[0]
    else:
        suggestion_text = f"{', '.join(names[:-1])} or {names[-1]}"
    return f"{base_message} Did you mean: {suggestion_text}?"
