# voicetutor/nlp/structured.py
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from voicetutor.contracts import StructuredReply

# Lenient headers: header word at line start, anything up to the first colon on that line.
# e.g. "ORIGINAL (EN inglés):", "ESPAÑOL (TRADUCCIÓN + CORRECCIÓN):", "PREGUNTA (EN inglés):"
_HEADERS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("original", re.compile(r"^[ \t]*ORIGINAL[^\n]*?:", re.MULTILINE)),
    ("translation", re.compile(r"^[ \t]*ESPAÑOL[^\n]*?:", re.MULTILINE)),
    ("question", re.compile(r"^[ \t]*PREGUNTA[^\n]*?:", re.MULTILINE)),
)


def parse_structured(text: str) -> StructuredReply:
    """
    Split a finalized tutor reply into its three sections.

    Each section body runs from the end of its header to the start of the
    nearest following recognized header (whichever it is), or to the end of
    the text. Without any recognized header only `raw` is set.
    """
    clean = (text or "").strip()
    if not clean:
        return StructuredReply(raw=clean)

    found: List[Tuple[int, int, str]] = []
    for name, pattern in _HEADERS:
        m = pattern.search(clean)
        if m is not None:
            found.append((m.start(), m.end(), name))

    if not found:
        return StructuredReply(raw=clean)

    found.sort()
    fields: Dict[str, Optional[str]] = {}
    for i, (_start, end, name) in enumerate(found):
        stop = found[i + 1][0] if i + 1 < len(found) else len(clean)
        fields[name] = clean[end:stop].strip()

    return StructuredReply(
        raw=clean,
        original=fields.get("original"),
        translation=fields.get("translation"),
        question=fields.get("question"),
    )
