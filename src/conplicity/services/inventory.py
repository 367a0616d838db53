"""Client for the volume inventory of a remote Conplicity instance."""

import json
from typing import Any, List, Tuple

import requests

from conplicity.constants import HTTP_TIMEOUT_SECONDS
from conplicity.errors import ConnectivityError, ProtocolMismatchError
from conplicity.models import Volume


class RemoteInventoryClient:
    """Queries ``/ping`` and ``/volumes`` with a preshared bearer key.

    Transport failures and any status other than 200 raise
    ``ConnectivityError``. A 200 whose body does not have the expected shape
    raises ``ProtocolMismatchError``. Requests are never retried.
    """

    PONG = "pong"

    def __init__(self, remote_address: str, psk: str, requests_module=requests, timeout: float = HTTP_TIMEOUT_SECONDS):
        self.remote_address = remote_address.rstrip("/")
        self.psk = psk
        self.requests = requests_module
        self.timeout = timeout

    @classmethod
    def connect(cls, remote_address: str, psk: str, **kwargs) -> "RemoteInventoryClient":
        client = cls(remote_address, psk, **kwargs)
        client.ping()
        return client

    def ping(self):
        response, body = self._request("GET", "/ping")
        if not isinstance(response, dict) or response.get("type") != self.PONG:
            raise ProtocolMismatchError(f"Wrong response from the Conplicity instance: {body}")

    def list_volumes(self) -> List[Volume]:
        response, body = self._request("GET", "/volumes")
        if not isinstance(response, list):
            raise ProtocolMismatchError(f"Expected a list of volumes from the Conplicity instance: {body}")

        volumes = []
        for item in response:
            if not isinstance(item, dict) or "name" not in item:
                raise ProtocolMismatchError(f"Invalid volume entry: {json.dumps(item)}")
            try:
                volumes.append(Volume.from_dict(item))
            except ValueError as exc:
                raise ProtocolMismatchError(f"Invalid volume entry {json.dumps(item)}: {exc}") from exc
        return volumes

    def _request(self, method: str, endpoint: str) -> Tuple[Any, str]:
        url = self.remote_address + endpoint
        headers = {"Authorization": f"Bearer {self.psk}"}

        try:
            response = self.requests.request(method, url, headers=headers, timeout=self.timeout)
            body = response.text
        except self.requests.RequestException as exc:
            raise ConnectivityError(f"Failed to send request to {url}: {exc}") from exc

        if response.status_code != 200:
            raise ConnectivityError(
                f"Received wrong status code from the Conplicity instance: [{response.status_code}] {body}"
            )

        try:
            return json.loads(body), body
        except ValueError as exc:
            raise ProtocolMismatchError(
                f"Failed to decode response from the Conplicity instance: {exc}: {body}"
            ) from exc
