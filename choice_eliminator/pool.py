"""Choice pool depletion."""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Set, Union

from choice_eliminator.config import DEFAULT_BACKUP_TEXT

Answer = Union[str, Sequence[str], None]


def deplete(
    current_pool: Sequence[str],
    removed: Iterable[str],
    *,
    backup_text: Optional[str] = None,
) -> List[str]:
    """Return *current_pool* without the values in *removed*.

    Relative order of the remaining choices is kept.  A pool is never
    returned empty: when nothing is left the result is a single placeholder
    choice (``DEFAULT_BACKUP_TEXT`` unless *backup_text* is given).
    """
    removed_set = set(removed)
    remaining = [choice for choice in current_pool if choice not in removed_set]
    if not remaining:
        return [backup_text if backup_text is not None else DEFAULT_BACKUP_TEXT]
    return remaining


def removed_values(answer: Answer) -> Set[str]:
    """Normalise a respondent's answer into the set of values to remove.

    Multiple choice and list answers arrive as a single string, checkbox
    answers as a sequence of strings.
    """
    if answer is None:
        return set()
    if isinstance(answer, str):
        return {answer} if answer else set()
    return {value for value in answer if value}
