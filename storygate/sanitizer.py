"""
Sanitizer — Clean Raw Generations Before Anyone Reads Them

Order matters. Directive leakage is stripped before anything else
looks at the text, otherwise leaked instruction lines ("estimate its
probability p", "never mention this process") would be scored as
narrative and trip the drift detector.

Steps:
  1. Markup fragments the generator echoes back
  2. The full directive block (bracketed, or with its bracket lost)
  3. Individual directive lines, each on its own
  4. The trailing "stop" artifact
  5. Newline runs collapsed, ends trimmed
  6. Prefix duplicated from the end of the previous turn
  7. Exactly one leading space
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

import diff_match_patch as dmp_module

from storygate.directive import DIRECTIVE_CLOSING_PHRASE, DIRECTIVE_MARKER

_dmp = dmp_module.diff_match_patch()

PLACEHOLDER = " "

# Duplicate suppression window
PRIOR_TAIL_CHARS = 100
MAX_DUPLICATE_LEN = 50
MIN_DUPLICATE_LEN = 10

_MARKUP = re.compile(
    r"</?(?:response|probability|text|selected)>|</?candidate[^>]*>"
)

# Bounded by the closing phrase, not by the next "]" in the text
_DIRECTIVE_BLOCK = re.compile(
    re.escape(DIRECTIVE_MARKER)
    + r"[\s\S]*?"
    + re.escape(DIRECTIVE_CLOSING_PHRASE)
    + r"[^\n\]]*\]?"
)
# Header line left behind when the closing phrase never arrived
_DIRECTIVE_HEADER = re.compile(re.escape(DIRECTIVE_MARKER) + r"[^\n\]]*\]?")
_DIRECTIVE_UNBRACKETED = re.compile(
    re.escape(DIRECTIVE_MARKER[1:])
    + r"[\s\S]*?"
    + re.escape(DIRECTIVE_CLOSING_PHRASE)
    + r"[^\n]*"
)

_DIRECTIVE_FRAGMENTS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        # candidate generation
        r"-\s*(?:mentally\s+)?generate\s+\d+\s+distinct[^\n]*?candidate(?:s|\s+continuations)",
        # probability estimation
        r"-\s*for each[^\n]*?probability p(?:\s*\([^)\n]*\))?",
        # threshold filtering
        r"-\s*only consider candidates where p\s*<[^\n]*?\)",
        # selection
        r"-\s*randomly select one[^\n]*?candidates",
        r"-\s*output ONLY[^\n]*?response",
        # suppression
        r"-\s*never mention[^\n]*?output\]?",
        r"from the unlikely tails[^\n]*?distribution\)?",
    )
]

# One or more, so a second pass has nothing left to strip
_TRAILING_STOP = re.compile(r"(?:stop\s*)+\Z", re.IGNORECASE)
_NEWLINE_RUN = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class SanitizeReport:
    """What sanitize() did, for diagnostics."""
    text: str
    duplicate: str = ""
    removed_spans: list[dict] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.text.strip() == ""

    @property
    def removed_chars(self) -> int:
        return sum(len(s["text"]) for s in self.removed_spans)


def strip_leakage(text: str) -> str:
    """Steps 1-5: everything that does not need the previous turn."""
    text = _MARKUP.sub("", text)

    text = _DIRECTIVE_BLOCK.sub("", text)
    text = _DIRECTIVE_HEADER.sub("", text)
    text = _DIRECTIVE_UNBRACKETED.sub("", text)

    for pattern in _DIRECTIVE_FRAGMENTS:
        text = pattern.sub("", text)

    text = _TRAILING_STOP.sub("", text)

    text = _NEWLINE_RUN.sub("\n\n", text)
    return text.strip()


def remove_duplicate_prefix(text: str, prior_turn_text: Optional[str]) -> tuple[str, str]:
    """
    Drop the start of `text` if it repeats the end of the previous turn.

    Candidate suffixes come from the last 100 characters of the prior
    turn, tried from 50 characters down to 10. The first (longest)
    match wins. Nothing shorter than 10 characters counts as a
    duplicate, even when the prior turn is that short. Returns
    (text, removed_prefix).
    """
    current = text.strip()
    if not prior_turn_text:
        return current, ""

    tail = prior_turn_text[-PRIOR_TAIL_CHARS:]
    for length in range(MAX_DUPLICATE_LEN, MIN_DUPLICATE_LEN - 1, -1):
        if len(tail) < length:
            continue
        suffix = tail[-length:].strip()
        if len(suffix) >= MIN_DUPLICATE_LEN and current.startswith(suffix):
            return current[len(suffix):].strip(), suffix

    return current, ""


def _with_leading_space(text: str) -> str:
    if not text.strip():
        return PLACEHOLDER
    return text if text.startswith(" ") else " " + text


def sanitize(raw_text: str, prior_turn_text: Optional[str] = None) -> str:
    """Clean one raw generation. Never fails; worst case is a single space."""
    text = strip_leakage(raw_text or "")
    text, _ = remove_duplicate_prefix(text, prior_turn_text)
    return _with_leading_space(text)


def _removed_spans(original: str, cleaned: str) -> list[dict]:
    """Character spans of `original` that did not survive, via diff-match-patch."""
    diffs = _dmp.diff_main(original, cleaned)
    _dmp.diff_cleanupSemantic(diffs)

    spans = []
    pos = 0
    for op, chunk in diffs:
        if op == -1:  # DELETE
            spans.append({"text": chunk, "start": pos, "end": pos + len(chunk)})
        if op != 1:   # EQUAL and DELETE advance through the original
            pos += len(chunk)
    return spans


def sanitize_report(raw_text: str, prior_turn_text: Optional[str] = None) -> SanitizeReport:
    """sanitize(), plus what was removed and why the result may be empty."""
    raw_text = raw_text or ""
    text = strip_leakage(raw_text)
    text, duplicate = remove_duplicate_prefix(text, prior_turn_text)
    text = _with_leading_space(text)

    return SanitizeReport(
        text=text,
        duplicate=duplicate,
        removed_spans=_removed_spans(raw_text, text),
    )
