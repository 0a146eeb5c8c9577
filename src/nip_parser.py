"""
NIP Editor - Rule Line Parser
Splits a NIP pickit line into its clauses and scans the bracket conditions.

A NIP line looks like:

    [type] == ring && [quality] == unique # [dexterity] >= 1 && [tohit] >= 1 // note

The part before the first '#' is the primary clause (identity, quality, type),
the part after it is the secondary clause (stat requirements) and anything
after '//' is a display comment.

Grammar used by the scanner:

    condition := '[' property ']' operator value
    operator  := '==' | '!=' | '<=' | '>=' | '<' | '>'
    value     := word+  (until '&&', '||', '(', ')', '#', '//' or end)
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

COMMENT_MARKER = "//"
CLAUSE_SEPARATOR = "#"

OPERATORS = ("==", "!=", "<=", ">=", "<", ">")

_TOKEN_RE = re.compile(r"""
    (?P<comment>//.*)
  | (?P<property>\[[^\]]*\])
  | (?P<op>==|!=|<=|>=|<|>)
  | (?P<or>\|\|)
  | (?P<and>&&?)
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<hash>\#)
  | (?P<ws>\s+)
  | (?P<word>[^\s\[\]=!<>&|()\#/]+|.)
""", re.VERBOSE | re.DOTALL)

# Token kinds that end a condition value
_VALUE_STOP = frozenset({"comment", "property", "op", "or", "and", "lparen", "rparen", "hash"})


class Token(NamedTuple):
    kind: str
    text: str
    pos: int


@dataclass(frozen=True)
class Condition:
    property: str      # "type" (lower-cased)
    operator: str      # "=="
    value: str         # "ring" (original case, quotes stripped)


@dataclass(frozen=True)
class StatRequirement:
    property: str              # "fireresist"
    operator: str              # ">=" or "" when only referenced
    value: Optional[float]     # 40.0, or None when absent/non-numeric


# ─── Line splitting ─────────────────────────────

def strip_leading_comment(line: str) -> str:
    """Return the active form of a line, without a leading '//' disable marker."""
    trimmed = (line or "").strip()
    if trimmed.startswith(COMMENT_MARKER):
        return re.sub(r"^//\s*", "", trimmed).strip()
    return trimmed


def split_clauses(line: str) -> Tuple[str, str]:
    """Split on the first '#' into (primary, secondary)."""
    primary, sep, secondary = (line or "").partition(CLAUSE_SEPARATOR)
    return primary, secondary if sep else ""


def split_line_comment(line: str) -> Tuple[str, str]:
    """Split a line at the first '//' into (base, comment)."""
    base, sep, comment = (line or "").partition(COMMENT_MARKER)
    if not sep:
        return base.rstrip(), ""
    return base.rstrip(), comment.strip()


def strip_inline_comment(line: str) -> str:
    return split_line_comment(line)[0]


# ─── Tokenizer + scanner ────────────────────────

def tokenize(text: str) -> Iterator[Token]:
    """Yield non-whitespace tokens of a NIP fragment."""
    for m in _TOKEN_RE.finditer(text or ""):
        kind = m.lastgroup
        if kind == "ws":
            continue
        yield Token(kind, m.group(kind), m.start())


def _strip_quotes(value: str) -> str:
    return value.strip().strip("'\"").strip()


def _scan_conditions(tokens: List[Token]) -> List[Condition]:
    conditions = []
    i = 0
    n = len(tokens)
    while i < n:
        tok = tokens[i]
        if tok.kind in ("hash", "comment"):
            break
        if tok.kind != "property" or i + 1 >= n or tokens[i + 1].kind != "op":
            i += 1
            continue

        prop = tok.text[1:-1].strip().lower()
        operator = tokens[i + 1].text
        j = i + 2
        words = []
        while j < n and tokens[j].kind not in _VALUE_STOP:
            words.append(tokens[j].text)
            j += 1

        value = _strip_quotes(" ".join(words))
        if prop and value:
            conditions.append(Condition(property=prop, operator=operator, value=value))
        i = j
    return conditions


def parse_conditions(line: str) -> List[Condition]:
    """Parse every bracket condition of the primary clause.

    Fragments that don't fit the grammar are skipped, never raised.
    """
    primary, _ = split_clauses(line)
    return _scan_conditions(list(tokenize(primary)))


def condition_values(conditions: List[Condition], prop: str, operator: str = "==") -> List[str]:
    """Values of all conditions on `prop` using `operator`, in line order."""
    prop = prop.lower()
    return [c.value for c in conditions if c.property == prop and c.operator == operator]


# ─── Stat signature ─────────────────────────────

def _parse_number(text: str) -> Optional[float]:
    try:
        return float(text)
    except (TypeError, ValueError):
        return None


def parse_stat_signature(secondary: str) -> List[StatRequirement]:
    """Extract stat requirements from the secondary clause.

    Pass 1 records '[property] OP number' pairs, pass 2 adds every other
    referenced property with value None. Malformed numbers are dropped.
    """
    if not secondary:
        return []

    cleaned = strip_inline_comment(secondary).replace("\r", " ").replace("\n", " ")
    tokens = [t for t in tokenize(cleaned) if t.kind != "hash"]

    stats = []
    seen = set()
    for i, tok in enumerate(tokens):
        if tok.kind != "property" or i + 2 >= len(tokens):
            continue
        if tokens[i + 1].kind != "op" or tokens[i + 2].kind != "word":
            continue
        value = _parse_number(tokens[i + 2].text)
        if value is None:
            continue
        prop = tok.text[1:-1].strip().lower()
        seen.add(prop)
        stats.append(StatRequirement(property=prop, operator=tokens[i + 1].text, value=value))

    for tok in tokens:
        if tok.kind != "property":
            continue
        prop = tok.text[1:-1].strip().lower()
        if prop and prop not in seen:
            seen.add(prop)
            stats.append(StatRequirement(property=prop, operator="", value=None))

    if stats:
        logger.debug(f"Stat signature: {[s.property for s in stats]}")
    return stats


def stat_signature_of(line: str) -> List[StatRequirement]:
    return parse_stat_signature(split_clauses(line)[1])


def has_stat(stats: List[StatRequirement], prop: str) -> bool:
    target = prop.lower()
    return any(s.property == target for s in stats)


def has_all_stats(stats: List[StatRequirement], props) -> bool:
    return all(has_stat(stats, p) for p in props)
