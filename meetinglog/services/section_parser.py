"""Split a generated meeting narrative into its numbered sections.

The summarize prompt asks for five markdown headings numbered 1-5, in this
order: overview, discussion, decisions, action items, next steps. Only the
number identifies a heading, so the heading text may be in any language.

Section headings all sit at one depth: the shallowest depth at which a
numbered heading appears. Deeper numbered headings ("### 1. Budget" under
"## 2. Discussion") belong to the body of the section they appear in.
"""
from __future__ import annotations

import logging
import re
from typing import NamedTuple, Optional

SECTION_ORDER = ("overview", "discussion", "decisions", "action_items", "next_steps")

# Fields persisted on a meeting. The action-items section is parsed but not
# stored; action items come from the structured extraction call.
STORED_SECTIONS = ("overview", "discussion", "decisions", "next_steps")

_logger = logging.getLogger("meetinglog.sections")

# "## 3. Decisions", "### 3) 결정 사항", "#3. **Decisions**"
_HEADING = re.compile(r"^[ \t]*(#{1,6})(?=[ \t*\d]|$)[ \t]*(.*?)[ \t]*$", re.MULTILINE)
_SECTION_NUMBER = re.compile(r"^\**[ \t]*([1-5])[.)]")


class _Heading(NamedTuple):
    level: int
    number: Optional[int]
    start: int
    end: int


def _headings(text: str) -> list[_Heading]:
    headings = []
    for match in _HEADING.finditer(text):
        number = _SECTION_NUMBER.match(match.group(2))
        headings.append(
            _Heading(
                level=len(match.group(1)),
                number=int(number.group(1)) if number else None,
                start=match.start(),
                end=match.end(),
            )
        )
    return headings


def parse_sections(narrative: Optional[str]) -> dict[str, str]:
    """Return every section keyed by name; missing sections are empty strings.

    Section headings are searched in order, each one after the previous
    match, so a missing section never shifts the others. A section's body
    runs from the end of its heading line to the next heading of the same or
    a higher level (numbered or not), or to the end of the text.
    """
    sections = {key: "" for key in SECTION_ORDER}
    if not narrative:
        return sections

    text = narrative.replace("\r\n", "\n")
    headings = _headings(text)
    numbered = [h for h in headings if h.number is not None]
    if not numbered:
        _logger.debug("Narrative has no numbered headings")
        return sections
    depth = min(h.level for h in numbered)

    found: list[tuple[str, int]] = []
    cursor = 0
    for number, key in enumerate(SECTION_ORDER, start=1):
        for index in range(cursor, len(headings)):
            heading = headings[index]
            if heading.level == depth and heading.number == number:
                found.append((key, index))
                cursor = index + 1
                break

    missing = [key for key in SECTION_ORDER if key not in {f[0] for f in found}]
    if missing:
        _logger.debug("Narrative missing sections: %s", ", ".join(missing))

    for key, index in found:
        heading = headings[index]
        body_end = len(text)
        for following in headings[index + 1:]:
            if following.level <= depth:
                body_end = following.start
                break
        sections[key] = text[heading.end:body_end].strip()
    return sections


def stored_sections(narrative: Optional[str]) -> dict[str, str]:
    """Sections in the shape of the meeting columns."""
    parsed = parse_sections(narrative)
    return {key: parsed[key] for key in STORED_SECTIONS}
