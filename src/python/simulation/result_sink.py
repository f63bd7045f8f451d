"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Result Files
===============================================================================
Writes result streams as delimited text, one row per ResultRecord:

    time_of_flight_days, epoch_days, best_cost, revolution_count

No header row, full double precision (15 significant digits by default).
Invalid points keep their row: the cost is written as ``inf`` and a missing
revolution count as ``nan``, so row i of a file is always grid point i.

A campaign produces three files: baseline grid search, low-order
comparison and high-order optimized results.
===============================================================================
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd

from core.constants import (
    BASELINE_FILENAME,
    HIGH_ORDER_FILENAME,
    LOW_ORDER_FILENAME,
    OUTPUT_DELIMITER,
    OUTPUT_PRECISION,
)
from core.data_structures import ResultRecord
from core.exceptions import InvalidConfiguration

logger = logging.getLogger(__name__)

RESULT_COLUMNS = ['time_of_flight_days', 'epoch_days', 'best_cost', 'revolution_count']

NAN_TEXT = 'nan'


def records_to_frame(records: Sequence[ResultRecord]) -> pd.DataFrame:
    """
    Tabulate result records in output column order.

    Args:
        records: Ordered result records.

    Returns:
        DataFrame with RESULT_COLUMNS, one row per record, float dtype.
    """
    rows = [record.as_row() for record in records]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS, dtype=np.float64)


def read_records(path: Union[str, Path], delimiter: str = OUTPUT_DELIMITER) -> pd.DataFrame:
    """Load a result file written by :class:`ResultSink`."""
    return pd.read_csv(
        path, sep=delimiter, header=None, names=RESULT_COLUMNS, dtype=np.float64,
    )


def _check_format(delimiter: str, precision: int) -> None:
    if not delimiter:
        raise InvalidConfiguration("Delimiter must not be empty")
    if precision < 1:
        raise InvalidConfiguration(f"Precision must be at least 1, got {precision}")


class ResultSink:
    """
    Persists ordered result records to delimited text files.

    Parameters
    ----------
    output_dir : str or Path
        Directory receiving the files; created on first write.
    delimiter : str
        Column separator.
    precision : int
        Significant digits of every numeric column.
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        delimiter: str = OUTPUT_DELIMITER,
        precision: int = OUTPUT_PRECISION,
    ) -> None:
        _check_format(delimiter, precision)
        self.output_dir = Path(output_dir)
        self.delimiter = delimiter
        self.precision = precision

    def write(
        self,
        records: Sequence[ResultRecord],
        destination_name: str,
        column_precision: Optional[int] = None,
        delimiter: Optional[str] = None,
    ) -> Path:
        """
        Write one result stream.

        Args:
            records:          Ordered result records.
            destination_name: File name inside ``output_dir``.
            column_precision: Significant digits, overrides the sink default.
            delimiter:        Column separator, overrides the sink default.

        Returns:
            Path of the written file.

        Raises:
            InvalidConfiguration: On an empty delimiter or a precision below 1.
        """
        precision = self.precision if column_precision is None else column_precision
        sep = self.delimiter if delimiter is None else delimiter
        _check_format(sep, precision)

        os.makedirs(self.output_dir, exist_ok=True)
        path = self.output_dir / destination_name

        frame = records_to_frame(records)
        frame.to_csv(
            path,
            sep=sep,
            header=False,
            index=False,
            float_format=f'%.{precision}g',
            na_rep=NAN_TEXT,
        )
        logger.info(f"Wrote {len(frame)} records to {path}")
        return path

    def write_campaign(
        self,
        results,
        baseline_name: str = BASELINE_FILENAME,
        low_order_name: str = LOW_ORDER_FILENAME,
        high_order_name: str = HIGH_ORDER_FILENAME,
    ) -> Dict[str, Path]:
        """
        Write the three streams of a finished campaign.

        Args:
            results: CampaignResults with baseline, low_order and high_order.

        Returns:
            Mapping stream name -> written path.
        """
        return {
            'baseline': self.write(results.baseline, baseline_name),
            'low_order': self.write(results.low_order, low_order_name),
            'high_order': self.write(results.high_order, high_order_name),
        }
