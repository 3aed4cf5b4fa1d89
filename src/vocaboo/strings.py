import re
from typing import Any, Mapping, Optional

from .config import settings

_TITLE_SPLIT = re.compile(r"(\s|-)")


def normalize(text: Any, fold_rules: Optional[Mapping[str, str]] = None) -> str:
    """Canonical form used for every equality check on words.

    Case-folds, trims and applies the letter folding rules (``ё`` -> ``е``
    by default). Never raises: ``None`` and non-strings are coerced.
    """
    if text is None:
        return ""
    value = str(text).casefold().strip()
    rules = settings.FOLD_RULES if fold_rules is None else fold_rules
    for letter, replacement in rules.items():
        value = value.replace(letter, replacement)
    return value


def title_case(text: Any) -> str:
    """Capitalize every space or hyphen separated part. Display only."""
    parts = _TITLE_SPLIT.split(text or "")
    return "".join(
        part if part in (" ", "-") else part[:1].upper() + part[1:] for part in parts
    )
