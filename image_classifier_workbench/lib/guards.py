from typing import Iterable, List, Optional, TypeVar

T = TypeVar("T")


def defined_values(values: Iterable[Optional[T]]) -> List[T]:
    """Drop undefined (None) values, keeping the order of the rest."""
    return [value for value in values if value is not None]
