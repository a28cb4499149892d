"""Pure ordering helpers for dense 1-based ``order_index`` columns.

These functions never touch the database.  The catalog and questionnaire
store compute an index assignment here, then write it in one transaction.
"""

from collections import Counter
from collections.abc import Iterable, Sequence

from checkrun_workflow.errors import ValidationError


def dense_order(ids: Sequence[int]) -> dict[int, int]:
    """Map each id to its 1-based position in ``ids``."""
    return {row_id: position for position, row_id in enumerate(ids, start=1)}


def changed_positions(
    current: dict[int, int], assignment: dict[int, int]
) -> dict[int, int]:
    """Return only the entries of ``assignment`` that differ from ``current``."""
    return {
        row_id: index
        for row_id, index in assignment.items()
        if current.get(row_id) != index
    }


def is_dense(indices: Iterable[int]) -> bool:
    """True when ``indices`` is exactly {1..N} with no repeats."""
    values = list(indices)
    return sorted(values) == list(range(1, len(values) + 1))


def validate_permutation(requested: Sequence[int], existing: Iterable[int]) -> None:
    """Raise ``ValidationError`` unless ``requested`` is a permutation of ``existing``."""
    existing_set = set(existing)
    duplicates = sorted(i for i, count in Counter(requested).items() if count > 1)
    if duplicates:
        raise ValidationError(f"Duplicate ids in ordering: {duplicates}")

    requested_set = set(requested)
    unknown = sorted(requested_set - existing_set)
    missing = sorted(existing_set - requested_set)
    if unknown or missing:
        raise ValidationError(
            f"Ordering must list every existing id exactly once "
            f"(unknown={unknown}, missing={missing})"
        )
