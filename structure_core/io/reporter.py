"""Serialization and reporting for distograms and comparison results.

Provides JSON persistence for distograms and CSV, JSON and text
summaries for batch comparison results.
"""

import json
import math
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from structure_core import __version__
from structure_core.core.distogram import DistogramMatrix


def write_distogram_json(distogram: DistogramMatrix, path: str | Path) -> None:
    """Save a distogram as a JSON cache artifact.

    Args:
        distogram: DistogramMatrix to save.
        path: Output file path.
    """
    with open(path, "w") as f:
        json.dump(distogram.to_dict(), f)


def read_distogram_json(path: str | Path) -> DistogramMatrix:
    """Load a distogram saved by write_distogram_json.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file is not a valid distogram.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Distogram file not found: {path}")

    with open(path) as f:
        data = json.load(f)

    if not isinstance(data, dict) or "distogram" not in data:
        raise ValueError(f"Unrecognized distogram format in {path}")

    return DistogramMatrix.from_dict(data)


class ComparisonReporter:
    """Generate reports from structure comparison results."""

    def __init__(self, results: Optional[pd.DataFrame] = None):
        """Initialize the reporter.

        Args:
            results: Optional DataFrame of comparison results.
        """
        self.results = results

    def set_results(self, results: pd.DataFrame) -> None:
        self.results = results

    def _require_results(self) -> pd.DataFrame:
        if self.results is None:
            raise ValueError("No results to report")
        return self.results

    def to_csv(self, path: str | Path, **kwargs) -> None:
        """Save results to CSV file.

        Args:
            path: Output file path.
            **kwargs: Additional arguments to pandas to_csv.
        """
        self._require_results().to_csv(path, index=False, **kwargs)

    def to_json(
        self,
        path: str | Path,
        include_metadata: bool = True,
        **kwargs,
    ) -> None:
        """Save results to JSON file.

        Missing scores are written as null.

        Args:
            path: Output file path.
            include_metadata: Include generation metadata.
            **kwargs: Additional arguments to json.dump.
        """
        results = self._require_results()
        records = [
            {k: (None if isinstance(v, float) and math.isnan(v) else v) for k, v in row.items()}
            for row in results.to_dict(orient="records")
        ]
        output = {"comparisons": records}

        if include_metadata:
            output["metadata"] = {
                "generated_at": datetime.now().isoformat(),
                "n_comparisons": len(results),
                "tool": "structure_core",
                "version": __version__,
            }

        with open(path, "w") as f:
            json.dump(output, f, indent=2, default=_json_default, **kwargs)

    def summary_report(self) -> str:
        """Generate text summary report.

        Returns:
            Formatted text report.
        """
        results = self._require_results()
        scores = pd.to_numeric(results["score"], errors="coerce")
        valid = scores.dropna()

        lines = [
            "=" * 60,
            "STRUCTURE COMPARISON REPORT",
            "=" * 60,
            f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"Number of comparisons: {len(results)}",
            f"Unavailable scores:    {int(scores.isna().sum())}",
            f"Truncated comparisons: {int(results['truncated'].sum())}",
            "",
            "-" * 60,
            "TM-SCORE",
            "-" * 60,
        ]

        if len(valid):
            std = valid.std() if len(valid) > 1 else 0.0
            lines.extend([
                f"TM-score:  {valid.mean():.3f} ± {std:.3f}",
                f"           (range: {valid.min():.3f} - {valid.max():.3f})",
                "",
                f"Same fold (TM > 0.5):        {(valid > 0.5).sum()}",
                f"Some similarity (TM > 0.3):  {((valid > 0.3) & (valid <= 0.5)).sum()}",
                f"Not similar (TM <= 0.3):     {(valid <= 0.3).sum()}",
            ])
        else:
            lines.append("No scores available")

        lines.extend(["", "=" * 60])
        return "\n".join(lines)


def _json_default(value):
    # numpy scalars from DataFrame records
    if hasattr(value, "item"):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
