"""
Small helpers shared by the repositories for building SQL fragments.
"""
import uuid
from typing import Dict, Iterable, List, Tuple


def is_uuid(value) -> bool:
    """
    True when `value` parses as a UUID.

    Every key column is a UUID; Postgres rejects any other text with
    InvalidTextRepresentation, so lookups check first and report "not found".
    """
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def build_set_clause(fields: Dict, allowed_columns: Iterable[str]) -> Tuple[str, List]:
    """
    Build "col1 = %s, col2 = %s" for a partial UPDATE.

    Only whitelisted columns are accepted; column names are never taken from
    user input. updated_at is always refreshed.

    Returns:
        Tuple of (SET clause, parameters)
    """
    allowed = set(allowed_columns)
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Columns not updatable: {sorted(unknown)}")

    assignments = [f"{column} = %s" for column in fields]
    assignments.append("updated_at = NOW()")
    return ", ".join(assignments), list(fields.values())
