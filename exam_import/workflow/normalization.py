from __future__ import annotations

import re

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
INLINE_WHITESPACE = re.compile(r"[^\S\n]+")
LINE_EDGE_SPACES = re.compile(r" *\n *")
BLANK_LINE_RUNS = re.compile(r"\n{3,}")
ELLIPSIS_RUNS = re.compile(r"\.{3,}")

CHARACTER_MAP = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "‘": "'",
        "’": "'",
        "‚": "'",
        "–": "-",
        "—": "-",
        "…": "...",
        "ﬀ": "ff",
        "ﬁ": "fi",
        "ﬂ": "fl",
        "ﬃ": "ffi",
        "ﬄ": "ffl",
        "|": "I",
        "\ufeff": "",
        "\u00ad": "",
    }
)


class TextNormalizer:
    """Cleans extracted text before it is chunked and sent to the model.

    The steps are ordered so that none of them can produce input for an earlier
    one, which keeps normalize() idempotent.
    """

    def normalize(self, text: str) -> str:
        if not text:
            return ""
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = CONTROL_CHARS.sub("", text)
        text = text.translate(CHARACTER_MAP)
        text = ELLIPSIS_RUNS.sub("...", text)
        text = INLINE_WHITESPACE.sub(" ", text)
        text = LINE_EDGE_SPACES.sub("\n", text)
        text = BLANK_LINE_RUNS.sub("\n\n", text)
        return text.strip()


_default_normalizer = TextNormalizer()


def normalize_text(text: str) -> str:
    return _default_normalizer.normalize(text)
