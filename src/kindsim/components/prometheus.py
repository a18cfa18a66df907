"""Prometheus scrape configuration generation."""

from __future__ import annotations

from typing import Any

import yaml

from .model import Component


def build_prometheus_config(components: list[Component]) -> str:
    """Render a prometheus.yaml scraping every component with a metric.

    Args:
        components: Components of the cluster, in install order.

    Returns:
        YAML document as a string.
    """
    scrape_configs: list[dict[str, Any]] = []
    for component in components:
        metric = component.metric
        if metric is None:
            continue
        job: dict[str, Any] = {
            "job_name": component.name,
            "scheme": metric.scheme,
            "honor_timestamps": True,
            "metrics_path": metric.path,
            "follow_redirects": True,
            "enable_http2": True,
            "static_configs": [{"targets": [metric.host]}],
        }
        if metric.scheme == "https":
            tls_config: dict[str, Any] = {"insecure_skip_verify": metric.insecure_skip_verify}
            if metric.cert_path:
                tls_config["cert_file"] = metric.cert_path
            if metric.key_path:
                tls_config["key_file"] = metric.key_path
            job["tls_config"] = tls_config
        scrape_configs.append(job)

    prometheus_config = {
        "global": {
            "scrape_interval": "15s",
            "scrape_timeout": "10s",
            "evaluation_interval": "15s",
        },
        "scrape_configs": scrape_configs,
    }
    return yaml.safe_dump(prometheus_config, default_flow_style=False, sort_keys=False)
