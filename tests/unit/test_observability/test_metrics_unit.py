"""Unit tests for metrics module."""

from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from orgsync.observability.metrics import MetricsExporter


def _value(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.unit
class TestMetricsExporter:
    """Test metric recording."""

    def test_record_batch(self):
        exporter = MetricsExporter(port=None)
        before = {
            name: _value(name, object_type="MetricsTestObject")
            for name in (
                "orgsync_records_upserted_total",
                "orgsync_records_unchanged_total",
                "orgsync_upsert_cache_hits_total",
                "orgsync_records_failed_total",
            )
        }

        exporter.record_batch("MetricsTestObject", upserted=3, unchanged=2, cached=1, failed=4)

        assert _value("orgsync_records_upserted_total", object_type="MetricsTestObject") == before["orgsync_records_upserted_total"] + 3
        assert _value("orgsync_records_unchanged_total", object_type="MetricsTestObject") == before["orgsync_records_unchanged_total"] + 2
        assert _value("orgsync_upsert_cache_hits_total", object_type="MetricsTestObject") == before["orgsync_upsert_cache_hits_total"] + 1
        assert _value("orgsync_records_failed_total", object_type="MetricsTestObject") == before["orgsync_records_failed_total"] + 4

    def test_record_read_and_object(self):
        exporter = MetricsExporter(port=None)
        read_before = _value("orgsync_records_read_total", object_type="MetricsTestRead")
        done_before = _value("orgsync_objects_total", state="done")

        exporter.record_read("MetricsTestRead", 10)
        exporter.record_object("done")

        assert _value("orgsync_records_read_total", object_type="MetricsTestRead") == read_before + 10
        assert _value("orgsync_objects_total", state="done") == done_before + 1

    def test_record_remote_call(self):
        exporter = MetricsExporter(port=None)
        before = _value("orgsync_remote_calls_total", call="metrics_test")

        exporter.record_remote_call("metrics_test", 0.2)

        assert _value("orgsync_remote_calls_total", call="metrics_test") == before + 1
        assert _value("orgsync_remote_call_duration_seconds_count", call="metrics_test") >= 1

    def test_start_without_port_is_noop(self):
        exporter = MetricsExporter(port=None)
        exporter.port = None

        with patch("orgsync.observability.metrics.start_http_server") as mock_start:
            exporter.start()

        mock_start.assert_not_called()

    def test_start_once(self):
        exporter = MetricsExporter(port=9108)

        with patch("orgsync.observability.metrics.start_http_server") as mock_start:
            exporter.start()
            exporter.start()

        mock_start.assert_called_once_with(9108)
