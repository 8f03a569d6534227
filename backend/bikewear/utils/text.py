from typing import Optional

MAX_LABEL_LEN = 120
MAX_NOTES_LEN = 2000


def clean_text(value, max_len: int = MAX_LABEL_LEN) -> Optional[str]:
    """
    Trim and truncate user text. Empty strings and non-strings become None.

    HTML escaping is left to the rendering layer; escaping here would
    double-encode stored values.
    """
    if not isinstance(value, str):
        return None
    cleaned = value.strip()[:max_len]
    return cleaned or None
