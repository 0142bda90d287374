"""Canonical form of free-text answers.

Answers are compared after normalization so that accents, curly quotes,
apostrophes, hyphens, spacing and letter case never make a right answer wrong::

    normalize("São Paulo's café") == normalize("sao paulos cafe") == "saopauloscafe"
"""
import re
import unicodedata

# Straight and curly quotes, accents typed instead of apostrophes,
# modifier-letter primes and hyphens.
IGNORED_CHARACTERS = (
    "'\"`´"
    "‘’‚‛“”„‟"
    "′″"
    "ʹʺʻʼʽˈ"
    "-‐‑"
)

_IGNORED_PATTERN = re.compile("[" + re.escape(IGNORED_CHARACTERS) + r"]|\s+")


def normalize(text: str) -> str:
    """Return the comparison form of ``text``.

    Lowercases, decomposes (NFD), drops combining marks, then removes the
    ignored punctuation and all whitespace. The result is stable:
    ``normalize(normalize(s)) == normalize(s)``.
    """
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(char for char in decomposed if unicodedata.category(char) != "Mn")
    return _IGNORED_PATTERN.sub("", stripped)
