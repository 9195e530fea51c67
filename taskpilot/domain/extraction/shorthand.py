from typing import Optional
import re

# "edit it to X", "change that into X", "rename the task to X"
_PRONOUN_EDIT = re.compile(
    r"^\s*(?:edit|change|rename)\s+(?:it|that|this|the task|the)\s+(?:to|into)?\s+(.+)$",
    re.IGNORECASE,
)
# "edit last to X", "edit previous to X"
_RECENT_EDIT = re.compile(
    r"^\s*edit\s+(?:previous|last)\s+(?:to|into)?\s+(.+)$",
    re.IGNORECASE,
)


def detect_edit_shorthand(message: str) -> Optional[str]:
    """Return the replacement text of an anaphoric edit phrasing, else None"""

    if not message:
        return None

    for pattern in (_PRONOUN_EDIT, _RECENT_EDIT):
        match = pattern.match(message)
        if match:
            replacement = match.group(1).strip()
            return replacement or None
    return None
