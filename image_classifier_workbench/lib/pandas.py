from pathlib import Path
from typing import Union

import pandas as pd


class pandas:
    """
    A wrapper around pandas with type hints.
    """

    @staticmethod
    def read_csv(path: Path) -> pd.DataFrame:
        return pd.read_csv(path)  # type: ignore

    @staticmethod
    def read_json(path: Path, lines: bool = False) -> pd.DataFrame:
        return pd.read_json(path, lines=lines)  # type: ignore

    @staticmethod
    def read_table(path: Union[str, Path]) -> pd.DataFrame:
        """Read a prediction table, choosing the parser from the file suffix."""
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix == ".csv":
            return pandas.read_csv(path)
        if suffix == ".json":
            return pandas.read_json(path)
        if suffix == ".jsonl":
            return pandas.read_json(path, lines=True)
        raise ValueError(f"Unsupported prediction table format: {path.suffix}")
