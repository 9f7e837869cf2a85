"""
relaybot Similarity - normalized, synonym-aware fuzzy matching

Scores two strings in [0, 100]:
1. Both sides are normalized (NFD, combining marks stripped, lowercased)
2. If a synonym group contains both normalized strings, the score is 100
3. Otherwise each token found in a synonym group is replaced by that
   group's canonical key, and the Levenshtein similarity of the results
   is returned

Synonym groups come from a ``{key: [synonyms]}`` JSON document and are
passed to the matcher explicitly; they are read-only once loaded.
"""

import logging
import unicodedata
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from errors import ErrorCode, ValidationError
from .models import SynonymGroups

logger = logging.getLogger(__name__)

_SYNONYMS_SCHEMA = TypeAdapter(Dict[str, List[str]])


def normalize(text: str) -> str:
    """Decompose, drop combining marks, lowercase. Total for any string."""
    decomposed = unicodedata.normalize("NFD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower()


def levenshtein_distance(a: str, b: str) -> int:
    """Classic DP edit distance (insert, delete, substitute each cost 1)."""
    rows, cols = len(a) + 1, len(b) + 1
    grid = [[0] * cols for _ in range(rows)]
    for i in range(rows):
        grid[i][0] = i
    for j in range(cols):
        grid[0][j] = j

    for i in range(1, rows):
        for j in range(1, cols):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            grid[i][j] = min(
                grid[i - 1][j] + 1,
                grid[i][j - 1] + 1,
                grid[i - 1][j - 1] + cost,
            )
    return grid[-1][-1]


def build_synonym_groups(raw: Mapping[str, List[str]]) -> SynonymGroups:
    """Normalize a ``{key: [synonyms]}`` mapping into immutable groups.

    The key is a member of its own group. Keys that normalize to the same
    value are merged into the first one.
    """
    groups: Dict[str, set] = {}
    for key, synonyms in raw.items():
        canonical = normalize(key).strip()
        if not canonical:
            continue
        members = groups.setdefault(canonical, {canonical})
        for synonym in synonyms:
            form = normalize(synonym).strip()
            if form:
                members.add(form)
    return MappingProxyType({key: frozenset(members) for key, members in groups.items()})


def load_synonyms(path: Union[str, Path, None]) -> SynonymGroups:
    """Load synonym groups from JSON. A missing file yields no groups.

    Raises:
        ValidationError: The document is not a ``{str: [str]}`` object
    """
    if not path:
        return build_synonym_groups({})

    file_path = Path(path)
    if not file_path.exists():
        logger.warning(f"Synonyms file not found: {file_path} (matching without synonyms)")
        return build_synonym_groups({})

    try:
        raw = _SYNONYMS_SCHEMA.validate_json(file_path.read_bytes())
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid synonyms file",
            details=str(e),
            parameter="synonyms_file_path",
            expected="{key: [synonyms]}",
            received=str(file_path),
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
        ) from e

    groups = build_synonym_groups(raw)
    logger.info(f"Loaded {len(groups)} synonym groups from {file_path}")
    return groups


class SimilarityMatcher:
    """Synonym-aware string similarity. Stateless apart from its groups."""

    def __init__(self, synonyms: Optional[SynonymGroups] = None):
        self.synonyms: SynonymGroups = synonyms if synonyms is not None else build_synonym_groups({})
        # token -> canonical key of the first group containing it
        index: Dict[str, str] = {}
        for canonical, members in self.synonyms.items():
            for form in members:
                index.setdefault(form, canonical)
        self._canonical = index

    @staticmethod
    def normalize(text: str) -> str:
        return normalize(text)

    def are_synonyms(self, a: str, b: str) -> bool:
        """True iff one group directly contains both normalized strings."""
        na, nb = normalize(a), normalize(b)
        return any(na in members and nb in members for members in self.synonyms.values())

    def replace_with_synonyms(self, text: str) -> str:
        """Replace each whitespace token found in a group with the group's key."""
        return " ".join(self._canonical.get(token, token) for token in text.split())

    def similarity(self, a: str, b: str) -> float:
        """Score in [0, 100]; 100 for declared synonyms or identical strings."""
        na, nb = normalize(a), normalize(b)
        if self.are_synonyms(na, nb):
            return 100.0

        ra, rb = self.replace_with_synonyms(na), self.replace_with_synonyms(nb)
        longest = max(len(ra), len(rb))
        if longest == 0:
            return 100.0
        distance = levenshtein_distance(ra, rb)
        return (1 - distance / longest) * 100

