"""CSV loading with robust delimiter handling.

Training files for treatment design are often exported with a non-comma
delimiter (tab or semicolon). :func:`load_frame`:

1) tries standard :func:`pandas.read_csv` parsing;
2) falls back to delimiter auto-detection if parsing looks suspicious.

Values are left as parsed: column kinds are decided later, by the treatment
factory, from the resulting dtypes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd
from pandas.errors import ParserError


def load_frame(
    path: Union[str, Path],
    parse_dates: Optional[Sequence[str]] = None,
    min_expected_columns: int = 2,
) -> pd.DataFrame:
    """Load a delimited text file into a DataFrame.

    Parameters
    ----------
    path:
        CSV/TSV file to read.
    parse_dates:
        Optional list of columns to parse as dates (they are then treated as
        categorical levels at design time).
    min_expected_columns:
        Sanity threshold: if fewer columns are parsed, we assume delimiter
        parsing failed and fall back to auto-detection.
    """

    csv_path = Path(path)
    if not csv_path.is_file():
        raise FileNotFoundError(f"Expected a data file at {csv_path}.")

    # First attempt: default pandas CSV parsing.
    try:
        df = pd.read_csv(csv_path, parse_dates=parse_dates)
    except (ParserError, ValueError):
        # ValueError may occur when ``parse_dates`` columns are not found due to an
        # unexpected delimiter collapsing the header into a single column.
        df = None

    # If parsing failed or produced too few columns, try auto-detecting the separator.
    if df is None or df.shape[1] < min_expected_columns:
        try:
            df = pd.read_csv(
                csv_path,
                parse_dates=parse_dates,
                sep=None,  # infer delimiters such as '\t', ';', etc.
                engine="python",
            )
        except (ParserError, ValueError) as exc:
            raise ValueError(
                f"Failed to parse {csv_path} with automatic delimiter detection."
            ) from exc

    if df.shape[1] < min_expected_columns:
        raise ValueError(
            f"Parsed {csv_path} has only {df.shape[1]} column(s); expected at least "
            f"{min_expected_columns}."
        )

    return df


__all__ = ["load_frame"]
