from typing import List, Mapping, NamedTuple, Sequence, Tuple

from taskpilot.domain.models.task_state import Task

MAX_EDIT_DISTANCE = 2


class TaskMatch(NamedTuple):
    key: str
    task: Task
    distance: int


def levenshtein_distance(first: str, second: str) -> int:
    """Edit distance with unit cost for insert, delete and substitute"""

    if first == second:
        return 0

    previous = list(range(len(second) + 1))
    for i, a in enumerate(first, start=1):
        current = [i]
        for j, b in enumerate(second, start=1):
            if a == b:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], current[j - 1], previous[j]) + 1)
        previous = current
    return previous[-1]


def substring_distance(needle: str, haystack: str) -> int:
    """Smallest edit distance between ``needle`` and any substring of ``haystack``"""

    if not needle:
        return 0

    # Row over haystack positions; a match may start anywhere, so row 0 is free
    previous = [0] * (len(haystack) + 1)
    for i, a in enumerate(needle, start=1):
        current = [i]
        for j, b in enumerate(haystack, start=1):
            if a == b:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], current[j - 1], previous[j]) + 1)
        previous = current
    return min(previous)


def _fuzzy_substring_budget(needle: str) -> int:
    return min(MAX_EDIT_DISTANCE, len(needle) // 4)


def find_tasks_by_text(
    buckets: Mapping[str, Sequence[Task]],
    search_text: str,
    exact_match: bool = False,
    case_sensitive: bool = False,
) -> List[TaskMatch]:
    """Find tasks whose text matches ``search_text``, best match first.

    A task matches on equality, containment in either direction, an edit
    distance of at most two, or a near-substring ("grocery" in "buy
    groceries") within a budget that grows with the search length.
    Containment is not bounded by length, so a short search string contained
    in many tasks matches all of them. Results are ranked by edit distance;
    ties keep iteration order. Near-substring-only matches always rank after
    the others, so they never win over a containment or close match.
    """

    needle = search_text if case_sensitive else search_text.lower()
    budget = _fuzzy_substring_budget(needle)
    matches: List[Tuple[bool, TaskMatch]] = []

    for key, tasks in buckets.items():
        for task in tasks:
            haystack = task.text if case_sensitive else task.text.lower()
            distance = levenshtein_distance(haystack, needle)

            near_only = False
            if exact_match:
                matched = haystack == needle
            else:
                matched = (
                    needle in haystack
                    or haystack in needle
                    or distance <= MAX_EDIT_DISTANCE
                )
                if not matched and budget > 0:
                    matched = near_only = substring_distance(needle, haystack) <= budget

            if matched:
                matches.append((near_only, TaskMatch(key, task, distance)))

    matches.sort(key=lambda item: (item[0], item[1].distance))
    return [match for _, match in matches]
