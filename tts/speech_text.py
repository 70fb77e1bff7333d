"""Text clean-up applied before synthesis so pictograms are not read aloud."""

from __future__ import annotations

import re

# Symbols/arrows, dingbats, private use, the astral emoji planes, and the
# variation selector / zero-width joiner that glue emoji sequences together.
_PICTOGRAPH_RE = re.compile(
    "["
    "\u2011-\u26ff"
    "\u2700-\u27bf"
    "\ue000-\uf8ff"
    "\U0001f000-\U0001faff"
    "\ufe0f\u200d"
    "]+"
)
_SPACE_RE = re.compile(r"\s{2,}")


def clean_for_speech(text: str) -> str:
    """Drop decorative symbols and collapse the whitespace they leave behind."""

    stripped = _PICTOGRAPH_RE.sub("", text)
    return _SPACE_RE.sub(" ", stripped).strip()
