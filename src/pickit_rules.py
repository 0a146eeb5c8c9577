"""
NIP Editor - Pickit Rules
The in-memory rule model and the text transforms the editor applies to lines.

A rule is held in its active form: a disabled rule is stored on disk as
"// <line>" but `nip_line` never carries that marker. A trailing
"// text" display comment stays part of the line.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from nip_parser import (
    COMMENT_MARKER,
    parse_conditions,
    split_clauses,
    split_line_comment,
    strip_inline_comment,
    strip_leading_comment,
)
from rule_classifier import RuleClassifier, RuleMeta

logger = logging.getLogger(__name__)

ETHEREAL_ON = "ethereal"
ETHEREAL_OFF = "nonethereal"
ETHEREAL_UNKNOWN = "unknown"

_ETH_REQUIRED_RE = re.compile(r"\[flag\]\s*==\s*ethereal", re.IGNORECASE)
_ETH_EXCLUDED_RE = re.compile(r"\[flag\]\s*!=\s*ethereal", re.IGNORECASE)
_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


@dataclass
class Rule:
    id: str
    nip_line: str
    enabled: bool = True
    file_name: str = ""
    comment: str = ""
    meta: RuleMeta = field(default_factory=RuleMeta)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "enabled": self.enabled,
            "nipLine": self.nip_line,
            "comment": self.comment,
            "meta": self.meta.to_dict(),
        }


@dataclass
class NumberToken:
    text: str
    is_number: bool
    start: int = -1
    end: int = -1


def _first(raw: dict, *keys, default=None):
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def normalize_rule(raw: dict, classifier: RuleClassifier, default_file: str = "") -> Rule:
    """Build a Rule from a backend record (camelCase or Go-style keys)."""
    generated = _first(raw, "generatedLine", "generatedNip", "GeneratedNIP", "nipSyntax", default="") or ""
    enabled = _first(raw, "enabled", "Enabled")
    if not isinstance(enabled, bool):
        enabled = not generated.strip().startswith(COMMENT_MARKER)

    nip_line = strip_leading_comment(generated)
    return Rule(
        id=str(_first(raw, "id", "ID", default="")),
        file_name=_first(raw, "fileName", "FileName", default="") or default_file,
        enabled=enabled,
        nip_line=nip_line,
        comment=(_first(raw, "comments", "Comments", default="") or "").strip(),
        meta=classifier.classify(nip_line),
    )


def encode_line(rule: Rule) -> str:
    """The form written back to the file: disabled rules get a leading '//'."""
    return rule.nip_line if rule.enabled else f"// {rule.nip_line}"


def display_line(rule: Rule) -> str:
    return strip_inline_comment(rule.nip_line)


def rule_comment(rule: Rule) -> str:
    """Explicit comment, else the trailing '//' segment of the line."""
    if rule.comment:
        return rule.comment
    return split_line_comment(rule.nip_line)[1]


# ─── Ethereal / unidentified checks ─────────────

def ethereal_state(line: str) -> str:
    """ETHEREAL_ON / ETHEREAL_OFF / ETHEREAL_UNKNOWN from the primary clause flags."""
    flags = [c for c in parse_conditions(line)
             if c.property == "flag" and c.value.lower() == "ethereal"]
    if any(c.operator == "==" for c in flags):
        return ETHEREAL_ON
    if any(c.operator == "!=" for c in flags):
        return ETHEREAL_OFF
    return ETHEREAL_UNKNOWN


def is_unidentified(line: str) -> bool:
    """True when the line has no stat requirements (empty secondary clause)."""
    if not line:
        return False
    _, secondary = split_clauses(line)
    return not strip_inline_comment(secondary).strip()


# ─── Line transforms ────────────────────────────

def toggle_ethereal_in_line(line: str) -> str:
    """Cycle the ethereal flag: none → '==' → '!=' → '==' …

    Once a rule carries an explicit ethereal preference it is never dropped.
    """
    base, comment = split_line_comment(line)
    left, sep, rest = base.partition("#")
    left = left.strip()
    rest = rest.strip() if sep else ""

    if _ETH_REQUIRED_RE.search(left):
        next_left = _ETH_REQUIRED_RE.sub("[flag] != ethereal", left)
    elif _ETH_EXCLUDED_RE.search(left):
        next_left = _ETH_EXCLUDED_RE.sub("[flag] == ethereal", left)
    elif left:
        next_left = f"{left} && [flag] == ethereal"
    else:
        next_left = "[flag] == ethereal"

    rebuilt = next_left
    if rest:
        rebuilt = f"{rebuilt} # {rest}"
    if comment:
        rebuilt = f"{rebuilt} // {comment}"
    return rebuilt.strip()


def clean_comment(text: str) -> str:
    trimmed = (text or "").strip()
    if trimmed.startswith(COMMENT_MARKER):
        trimmed = re.sub(r"^//\s*", "", trimmed)
    return trimmed


def with_comment(line: str, comment: str) -> str:
    """Replace the trailing display comment; an empty comment removes it."""
    base = strip_inline_comment(line)
    comment = clean_comment(comment)
    return f"{base} // {comment}" if comment else base


def tokenize_numbers(line: str) -> List[NumberToken]:
    """Split a line into text and editable number tokens (with offsets)."""
    tokens = []
    last = 0
    for m in _NUMBER_RE.finditer(line or ""):
        if m.start() > last:
            tokens.append(NumberToken(line[last:m.start()], False))
        tokens.append(NumberToken(m.group(0), True, m.start(), m.end()))
        last = m.end()
    if last < len(line or ""):
        tokens.append(NumberToken(line[last:], False))
    return tokens


def replace_value(line: str, start: int, end: int, value: str) -> Optional[str]:
    """Replace the number spanning [start, end) with `value`.

    Returns None when the span does not cover a number token of the line
    or the new value is not a number.
    """
    value = (value or "").strip()
    try:
        float(value)
    except ValueError:
        return None
    spans = {(t.start, t.end) for t in tokenize_numbers(line) if t.is_number}
    if (start, end) not in spans:
        return None
    return line[:start] + value + line[end:]
