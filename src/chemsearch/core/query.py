"""Query parser: raw query string to ParsedQuery.

Grammar, applied left to right:

- ``"two words"``: exact phrase. An unmatched quote is a literal character.
- ``NOT term`` / ``NOT "a phrase"``: exclusion (keyword is case-insensitive).
- ``a OR b OR c``: one OR-group. Only plain terms chain; anything else breaks the chain.
- ``field:value`` / ``field:min-max`` / ``field:min-``: field filter or numeric range,
  for fields known to the registry. Anything else stays a plain term.
- everything else: a must-include term.

Parsing never raises; fragments it cannot interpret become plain terms.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from chemsearch.core.fields import (
    TYPE_FIELD,
    EntityType,
    is_enum_field,
    is_numeric_field,
    resolve_field,
)
from chemsearch.core.schema import Difficulty, FieldFilter, ParsedQuery, RangeFilter

MAX_QUERY_LENGTH = 500

_FIELD_TOKEN_RE = re.compile(r"^([A-Za-z][\w]*):(.+)$")
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_RANGE_RE = re.compile(r"^(-?\d+(?:\.\d+)?)?-(-?\d+(?:\.\d+)?)?$")

_KNOWN_ENUM_VALUES: dict[str, set[str]] = {
    "difficulty": {d.value for d in Difficulty},
    "block": {"s", "p", "d", "f"},
}


@dataclass
class _Token:
    kind: str  # "word" or "phrase"
    text: str


def _lex(raw: str) -> list[_Token]:
    tokens: list[_Token] = []
    i = 0
    n = len(raw)
    while i < n:
        if raw[i].isspace():
            i += 1
            continue
        if raw[i] == '"':
            close = raw.find('"', i + 1)
            if close != -1:
                phrase = " ".join(raw[i + 1 : close].split())
                if phrase:
                    tokens.append(_Token("phrase", phrase))
                i = close + 1
                continue
        start = i
        i += 1
        while i < n and not raw[i].isspace():
            if raw[i] == '"' and raw.find('"', i + 1) != -1:
                break
            i += 1
        tokens.append(_Token("word", raw[start:i]))
    return tokens


def _strip_parens(term: str) -> str:
    return term.strip("()")


def _is_keyword(token: _Token, keyword: str) -> bool:
    return token.kind == "word" and token.text.upper() == keyword


def _parse_type_value(value: str) -> str | None:
    value = value.lower()
    for candidate in (value, value.rstrip("s")):
        try:
            return EntityType(candidate).value
        except ValueError:
            continue
    return None


def parse_field_token(token: str) -> FieldFilter | RangeFilter | None:
    """Interpret ``field:value`` / ``field:min-max``. Returns None when not a known filter."""
    match = _FIELD_TOKEN_RE.match(token)
    if not match:
        return None
    field_name = resolve_field(match.group(1))
    value = _strip_parens(match.group(2)).strip()
    if field_name is None or not value:
        return None

    if field_name == TYPE_FIELD:
        entity = _parse_type_value(value)
        return FieldFilter(field=TYPE_FIELD, value=entity) if entity else None

    if is_numeric_field(field_name):
        if _NUMBER_RE.match(value):
            return FieldFilter(field=field_name, value=value)
        range_match = _RANGE_RE.match(value)
        if range_match and (range_match.group(1) or range_match.group(2)):
            low = float(range_match.group(1)) if range_match.group(1) else None
            high = float(range_match.group(2)) if range_match.group(2) else None
            if low is not None and high is not None and low > high:
                low, high = high, low
            return RangeFilter(field=field_name, min=low, max=high)
        return None

    if is_enum_field(field_name):
        value = value.lower()
        known = _KNOWN_ENUM_VALUES.get(field_name)
        if known is not None and value not in known:
            return None
        return FieldFilter(field=field_name, value=value)

    return None


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        folded = item.casefold()
        if folded not in seen:
            seen.add(folded)
            result.append(item)
    return result


def parse_query(raw: str) -> ParsedQuery:
    """Parse a raw query string. Never raises; an empty string yields an empty query."""
    tokens = _lex((raw or "")[:MAX_QUERY_LENGTH])

    parsed = ParsedQuery()
    # Plain terms and OR keywords in order; None marks a chain break.
    stream: list[str | None] = []

    i = 0
    while i < len(tokens):
        tok = tokens[i]

        if _is_keyword(tok, "NOT") and i + 1 < len(tokens):
            target = tokens[i + 1]
            text = target.text if target.kind == "phrase" else _strip_parens(target.text)
            if text:
                parsed.must_exclude.append(text)
            stream.append(None)
            i += 2
            continue

        if tok.kind == "phrase":
            parsed.exact_phrases.append(tok.text)
            stream.append(None)
            i += 1
            continue

        if _is_keyword(tok, "OR"):
            stream.append("OR")
            i += 1
            continue

        token_filter = parse_field_token(tok.text)
        if isinstance(token_filter, RangeFilter):
            parsed.ranges.append(token_filter)
            stream.append(None)
        elif isinstance(token_filter, FieldFilter):
            parsed.field_filters.append(token_filter)
            stream.append(None)
        else:
            term = _strip_parens(tok.text)
            stream.append(term if term else None)
        i += 1

    _collect_terms(stream, parsed)

    parsed.must_include = _dedupe(parsed.must_include)
    parsed.must_exclude = _dedupe(parsed.must_exclude)
    parsed.exact_phrases = _dedupe(parsed.exact_phrases)
    parsed.field_filters = list(
        {(f.field, f.value.casefold()): f for f in parsed.field_filters}.values()
    )
    return parsed


def _collect_terms(stream: list[str | None], parsed: ParsedQuery) -> None:
    """Split the plain-term stream into OR-groups and must-include terms."""
    groups_seen: set[tuple[str, ...]] = set()
    i = 0
    while i < len(stream):
        item = stream[i]
        if item is None or item == "OR":
            i += 1
            continue

        chain = [item]
        j = i + 1
        while (
            j + 1 < len(stream)
            and stream[j] == "OR"
            and stream[j + 1] not in (None, "OR")
        ):
            chain.append(stream[j + 1])
            j += 2

        members = _dedupe(chain)
        if len(members) > 1:
            key = tuple(sorted(m.casefold() for m in members))
            if key not in groups_seen:
                groups_seen.add(key)
                parsed.or_groups.append(members)
        else:
            parsed.must_include.append(members[0])
        i = j
