import json
import logging
import re
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from api.models import StopAlias

logger = logging.getLogger(__name__)

# Canonical stop -> name fragments that identify it. A fragment matches when it
# occurs in a normalized stop name as a whole word or phrase. The canonical
# name is always one of its own fragments.
DEFAULT_STOP_ALIASES: Dict[str, List[str]] = {
    "main": ["main"],
    "center": ["center", "centre"],
    "office": ["office", "secondary"],
    "pirivu": ["pirivu", "third"],
    "bus stand": ["bus stand", "bypass"],
    "railway": ["railway"],
    "college": ["college"],
    "erode": ["erode"],
    "gobi": ["gobi"],
    "kolathur": ["kolathur"],
    "salem": ["salem"],
}

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_stop_name(name: Optional[str]) -> str:
    if not name:
        return ""
    cleaned = _PUNCTUATION.sub(" ", name.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


class StopMatcher:
    """Decides whether two free-text stop labels denote the same place.

    Names are equivalent when they are equal after normalization, or when
    both contain a fragment of the same alias group.
    """

    def __init__(self, aliases: Optional[Mapping[str, Iterable[str]]] = None):
        self.aliases: Dict[str, List[str]] = {}
        self._patterns: Dict[str, List[re.Pattern]] = {}
        for canonical, fragments in (
            aliases if aliases is not None else DEFAULT_STOP_ALIASES
        ).items():
            self.add_alias_group(canonical, fragments)

    def add_alias_group(self, canonical: str, fragments: Iterable[str]) -> None:
        key = normalize_stop_name(canonical)
        if not key:
            return
        existing = self.aliases.setdefault(key, [key])
        for fragment in fragments:
            normalized = normalize_stop_name(fragment)
            if normalized and normalized not in existing:
                existing.append(normalized)
        self._patterns[key] = [
            re.compile(r"\b" + re.escape(fragment) + r"\b") for fragment in existing
        ]

    def alias_groups(self, stop_name: Optional[str]) -> set:
        normalized = normalize_stop_name(stop_name)
        if not normalized:
            return set()
        return {
            canonical
            for canonical, patterns in self._patterns.items()
            if any(p.search(normalized) for p in patterns)
        }

    def equivalent(self, first: Optional[str], second: Optional[str]) -> bool:
        a = normalize_stop_name(first)
        b = normalize_stop_name(second)
        if not a or not b:
            return False
        if a == b:
            return True
        return bool(self.alias_groups(a) & self.alias_groups(b))

    def find_match(
        self, passenger_stop: Optional[str], candidate_stop_names: Sequence[str]
    ) -> Optional[str]:
        """Return the first candidate stop equivalent to the passenger's stop.

        Exact matches win over alias matches regardless of position.
        """
        target = normalize_stop_name(passenger_stop)
        if not target:
            return None

        for candidate in candidate_stop_names:
            if normalize_stop_name(candidate) == target:
                return candidate

        groups = self.alias_groups(target)
        if not groups:
            return None
        for candidate in candidate_stop_names:
            if groups & self.alias_groups(candidate):
                return candidate
        return None

    def matches(
        self, passenger_stop: Optional[str], candidate_stop_names: Sequence[str]
    ) -> bool:
        return self.find_match(passenger_stop, candidate_stop_names) is not None


def load_alias_file(path: str) -> Dict[str, List[str]]:
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError(f"Stop alias file {path} must contain a JSON object")
    aliases = {}
    for canonical, fragments in data.items():
        if isinstance(fragments, str):
            fragments = [fragments]
        aliases[str(canonical)] = [str(f) for f in fragments]
    return aliases


def build_stop_matcher(db: Optional[Session] = None, aliases_file: Optional[str] = None) -> StopMatcher:
    """Defaults (or the JSON file, when given) extended with stop_alias rows."""
    if aliases_file:
        logger.info(f"Loading stop aliases from {aliases_file}")
        matcher = StopMatcher(load_alias_file(aliases_file))
    else:
        matcher = StopMatcher()

    if db is not None:
        rows = db.query(StopAlias).order_by(StopAlias.alias_id).all()
        for row in rows:
            matcher.add_alias_group(row.canonical_name, [row.pattern])
        if rows:
            logger.debug(f"Added {len(rows)} stop alias rows from the database")
    return matcher
