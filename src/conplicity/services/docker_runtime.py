"""Docker runtime services for Conplicity."""

import json
from typing import Any, Dict, List, Optional, Sequence

from conplicity.errors import (
    CommandFailedError,
    ConnectivityError,
    ObservabilityError,
    RuntimeProvisioningError,
)
from conplicity.errors_catalog import actionable_error
from conplicity.models import BindMount


class DockerRuntimeService:
    """Thin wrapper over the docker CLI: one method per runtime operation.

    Every method takes a ``timeout`` in seconds which bounds the underlying
    docker call. ``None`` waits for the daemon or the container indefinitely.
    Nothing is retried here.
    """

    def __init__(self, logger, command_runner, endpoint: Optional[str] = None, docker_binary: str = "docker"):
        self.logger = logger
        self.command_runner = command_runner
        self.endpoint = endpoint
        self.docker_binary = docker_binary

    def _docker(self, *args: str) -> List[str]:
        cmd = [self.docker_binary]
        if self.endpoint:
            cmd += ["--host", self.endpoint]
        return cmd + list(args)

    def image_exists(self, image: str, timeout: Optional[float] = None) -> bool:
        result = self.command_runner.run(
            self._docker("image", "inspect", image),
            check=False,
            capture_output=True,
            timeout=timeout,
        )
        return result.returncode == 0

    def pull_image(self, image: str, timeout: Optional[float] = None):
        try:
            self.command_runner.run(
                self._docker("pull", image),
                capture_output=True,
                timeout=timeout,
            )
        except CommandFailedError as exc:
            raise RuntimeProvisioningError(
                f"{actionable_error('image_unavailable', image=image)}\n{exc}"
            ) from exc

    def ensure_image(self, image: str, timeout: Optional[float] = None):
        if self.image_exists(image, timeout=timeout):
            self.logger.debug("Image %s already pulled, not pulling", image)
            return

        self.logger.info("Pulling image %s", image)
        self.pull_image(image, timeout=timeout)

    def create_container(
        self,
        image: str,
        args: Sequence[str],
        env: Sequence[str],
        mounts: Sequence[BindMount] = (),
        timeout: Optional[float] = None,
    ) -> str:
        """Create an interactive TTY container and return its id.

        Variables are passed as bare ``--env KEY`` flags and resolved by
        docker from the child process environment, keeping values out of
        the command line.
        """
        values: Dict[str, str] = {}
        cmd = self._docker(
            "create",
            "--interactive",
            "--tty",
            "--attach",
            "stdin",
            "--attach",
            "stdout",
            "--attach",
            "stderr",
        )
        for entry in env:
            key, _, value = entry.partition("=")
            values[key] = value
            cmd += ["--env", key]
        for mount in mounts:
            cmd += ["--volume", mount.to_spec()]
        cmd.append(image)
        cmd += list(args)

        try:
            result = self.command_runner.run(
                cmd,
                capture_output=True,
                timeout=timeout,
                env=values,
            )
        except CommandFailedError as exc:
            raise RuntimeProvisioningError(f"Failed to create container: {exc}") from exc

        container_id = (result.stdout or "").strip().splitlines()
        if not container_id:
            raise RuntimeProvisioningError("Docker did not return a container id.")
        return container_id[-1].strip()

    def start_container(self, container_id: str, timeout: Optional[float] = None):
        try:
            self.command_runner.run(
                self._docker("start", container_id),
                capture_output=True,
                timeout=timeout,
            )
        except CommandFailedError as exc:
            raise RuntimeProvisioningError(f"Failed to start container: {exc}") from exc

    def container_logs(self, container_id: str, timeout: Optional[float] = None) -> str:
        """Follow combined stdout and stderr until the container exits."""
        try:
            result = self.command_runner.run(
                self._docker("logs", "--details", "--follow", container_id),
                timeout=timeout,
                merge_stderr=True,
            )
        except (CommandFailedError, ConnectivityError) as exc:
            raise ObservabilityError(f"Failed to retrieve logs: {exc}") from exc
        return result.stdout or ""

    def inspect_container(self, container_id: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        try:
            result = self.command_runner.run(
                self._docker("inspect", "--format", "{{json .State}}", container_id),
                capture_output=True,
                timeout=timeout,
            )
            state = json.loads(result.stdout or "")
        except (CommandFailedError, ConnectivityError) as exc:
            raise ObservabilityError(f"Failed to inspect container: {exc}") from exc
        except ValueError as exc:
            raise ObservabilityError(f"Unreadable container state for {container_id}: {exc}") from exc

        if not isinstance(state, dict):
            raise ObservabilityError(f"Unexpected container state for {container_id}: {state!r}")
        return state

    def remove_container(self, container_id: str, timeout: Optional[float] = None) -> bool:
        self.logger.info("Removing container %s", container_id)
        try:
            result = self.command_runner.run(
                self._docker("rm", "--force", "--volumes", container_id),
                check=False,
                capture_output=True,
                timeout=timeout,
            )
        except ConnectivityError as exc:
            self.logger.error("Failed to remove container %s: %s", container_id, exc)
            return False
        return result.returncode == 0
