"""Prometheus push gateway reporting."""

from typing import Iterable, Mapping, Optional, Union

import requests

from conplicity.constants import HTTP_TIMEOUT_SECONDS, METRICS_CONTENT_TYPE


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def format_metric_line(name: str, labels: Optional[Mapping[str, str]], value: Union[int, float]) -> str:
    """Render one sample in the text exposition format."""
    if not labels:
        return f"{name} {value}"

    rendered = ",".join(f'{key}="{_escape_label_value(str(val))}"' for key, val in labels.items())
    return f"{name}{{{rendered}}} {value}"


class MetricsReporter:
    """Pushes accumulated metric lines to a push gateway.

    Reporting is opt-in and best effort: nothing is sent without lines and a
    gateway URL, and a failed push is logged rather than raised.
    """

    def __init__(self, logger, requests_module=requests, timeout: float = HTTP_TIMEOUT_SECONDS):
        self.logger = logger
        self.requests = requests_module
        self.timeout = timeout

    @staticmethod
    def build_url(gateway_url: str, job_name: str, instance_id: str) -> str:
        return f"{gateway_url.rstrip('/')}/metrics/job/{job_name}/instance/{instance_id}"

    def push(self, batch: Iterable[str], gateway_url: Optional[str], job_name: str, instance_id: str) -> bool:
        lines = list(batch)
        if not lines or not gateway_url:
            return True

        url = self.build_url(gateway_url, job_name, instance_id)
        data = "\n".join(lines) + "\n"
        self.logger.debug("Sending metrics to Prometheus Pushgateway %s:\n%s", url, data)

        try:
            response = self.requests.put(
                url,
                data=data.encode("utf-8"),
                headers={"Content-Type": METRICS_CONTENT_TYPE},
                timeout=self.timeout,
            )
        except self.requests.RequestException as exc:
            self.logger.warning("Failed to push metrics to %s: %s", url, exc)
            return False

        self.logger.debug("Received Prometheus response: %s", response.status_code)
        return True
