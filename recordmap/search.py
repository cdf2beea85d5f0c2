"""Search-index terms built from entity fields."""

import json
import re
from typing import Any, Iterable, Optional


_SEPARATORS = re.compile(r"\W|_")


def tokenize(text: Any) -> list[str]:
    """Lower-cased words of `text`; non-word characters and underscores separate."""
    return [term for term in _SEPARATORS.sub(" ", str(text).lower()).split(" ") if term]


def _add_terms(terms: list[str], new_terms: Iterable[str]) -> None:
    for term in new_terms:
        if term not in terms:
            terms.append(term)


def build_search_terms(search_index: dict[str, Optional[tuple[str, ...]]],
                       data: dict[str, Any]) -> str:
    """Return the value stored in the search column: space-padded, de-duplicated terms."""
    terms: list[str] = []
    for name, keys in search_index.items():
        value = data.get(name)
        if not value:
            continue
        if keys is None:
            _add_terms(terms, tokenize(value))
            continue
        if isinstance(value, (str, bytes)):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                continue
        if not isinstance(value, dict):
            continue
        for key in keys:
            if value.get(key):
                _add_terms(terms, tokenize(value[key]))
    return " " + " ".join(terms) + " "
