"""Tests for the worker metrics listener."""

from unittest.mock import patch

from video_processor.core import metrics


class TestStartMetricsServer:
    """The listener serves the process registry or the multiprocess view."""

    def test_single_process_serves_module_registry(self, monkeypatch) -> None:
        monkeypatch.delenv("PROMETHEUS_MULTIPROC_DIR", raising=False)
        monkeypatch.delenv("prometheus_multiproc_dir", raising=False)

        with patch("video_processor.core.metrics.start_http_server") as serve:
            metrics.start_metrics_server(9200)

        serve.assert_called_once_with(9200, registry=metrics.REGISTRY)

    def test_multiprocess_dir_aggregates_children(self, monkeypatch, tmp_path) -> None:
        monkeypatch.delenv("prometheus_multiproc_dir", raising=False)
        monkeypatch.setenv("PROMETHEUS_MULTIPROC_DIR", str(tmp_path))

        with patch("video_processor.core.metrics.start_http_server") as serve:
            metrics.start_metrics_server(9201)

        port = serve.call_args.args[0]
        registry = serve.call_args.kwargs["registry"]
        assert port == 9201
        assert registry is not metrics.REGISTRY
