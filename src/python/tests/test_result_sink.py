"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Result File Test Suite
===============================================================================
Tests for the delimited result files: column layout without header, full
double precision, sentinel text for invalid points, custom delimiters, and
the three-file campaign output.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from core.constants import BASELINE_FILENAME, HIGH_ORDER_FILENAME, LOW_ORDER_FILENAME
from core.data_structures import GridPoint, ResultRecord
from core.exceptions import InvalidConfiguration
from simulation.campaign import CampaignResults
from simulation.result_sink import RESULT_COLUMNS, ResultSink, read_records, records_to_frame


RECORDS = [
    ResultRecord(time_of_flight=500.0, epoch=7304.5, best_cost=1234.5, revolution_count=1),
    ResultRecord.invalid(GridPoint(epoch=7319.5, time_of_flight=500.0)),
    ResultRecord(time_of_flight=520.0, epoch=7304.5, best_cost=1.0 / 3.0, revolution_count=0),
]


class TestResultSink:

    def test_rows_without_header(self, tmp_path):
        path = ResultSink(tmp_path).write(RECORDS, 'phase.dat')
        lines = path.read_text().splitlines()
        assert len(lines) == 3
        assert lines[0] == '500,7304.5,1234.5,1'
        assert lines[1] == '500,7319.5,inf,nan'

    def test_full_precision(self, tmp_path):
        path = ResultSink(tmp_path).write(RECORDS, 'phase.dat')
        cost_text = path.read_text().splitlines()[2].split(',')[2]
        assert cost_text == '0.333333333333333'

    def test_reduced_precision_and_delimiter(self, tmp_path):
        sink = ResultSink(tmp_path, delimiter=' ', precision=15)
        path = sink.write(RECORDS, 'phase.dat', column_precision=5, delimiter='\t')
        fields = path.read_text().splitlines()[2].split('\t')
        assert fields == ['520', '7304.5', '0.33333', '0']

    def test_read_back(self, tmp_path):
        path = ResultSink(tmp_path).write(RECORDS, 'phase.dat')
        frame = read_records(path)
        assert list(frame.columns) == RESULT_COLUMNS
        assert_allclose(frame['best_cost'].iloc[0], 1234.5)
        assert math.isinf(frame['best_cost'].iloc[1])
        assert math.isnan(frame['revolution_count'].iloc[1])
        assert_allclose(frame['best_cost'].iloc[2], 1.0 / 3.0, rtol=1e-14)

    def test_creates_output_directory(self, tmp_path):
        target = tmp_path / 'nested' / 'run'
        path = ResultSink(target).write(RECORDS[:1], 'phase.dat')
        assert path.parent == target
        assert path.exists()

    def test_empty_stream_writes_empty_file(self, tmp_path):
        path = ResultSink(tmp_path).write([], 'empty.dat')
        assert path.read_text().strip() == ''

    @pytest.mark.parametrize("kwargs", [dict(delimiter=''), dict(precision=0)])
    def test_invalid_settings(self, tmp_path, kwargs):
        with pytest.raises(InvalidConfiguration):
            ResultSink(tmp_path, **kwargs)

    @pytest.mark.parametrize("kwargs", [dict(column_precision=0), dict(delimiter='')])
    def test_invalid_overrides_are_not_replaced_by_defaults(self, tmp_path, kwargs):
        with pytest.raises(InvalidConfiguration):
            ResultSink(tmp_path).write(RECORDS, 'phase.dat', **kwargs)
        assert not (tmp_path / 'phase.dat').exists()

    def test_single_digit_override(self, tmp_path):
        path = ResultSink(tmp_path).write(RECORDS, 'phase.dat', column_precision=1)
        assert path.read_text().splitlines()[0] == '5e+02,7e+03,1e+03,1'

    def test_write_campaign(self, tmp_path):
        results = CampaignResults(
            baseline=tuple(RECORDS),
            low_order=(RECORDS[0],),
            high_order=(RECORDS[2],),
        )
        paths = ResultSink(tmp_path).write_campaign(results)
        assert paths['baseline'].name == BASELINE_FILENAME
        assert paths['low_order'].name == LOW_ORDER_FILENAME
        assert paths['high_order'].name == HIGH_ORDER_FILENAME
        assert len(paths['baseline'].read_text().splitlines()) == 3
        assert len(paths['high_order'].read_text().splitlines()) == 1


def test_records_to_frame_column_order():
    frame = records_to_frame(RECORDS)
    assert list(frame.columns) == RESULT_COLUMNS
    assert frame.dtypes.eq(np.float64).all()
    assert_allclose(frame['epoch_days'], [7304.5, 7319.5, 7304.5])
