"""Backup run supervision: one transient container per backup command."""

import logging
from typing import Optional

from conplicity.constants import EXIT_CODE_UNKNOWN, REMOVE_TIMEOUT_SECONDS
from conplicity.errors import ObservabilityError
from conplicity.models import BackupCommand, RunConfiguration, RunResult
from conplicity.services.environment import compose_environment


class BackupRunSupervisor:
    """Drives a single backup-tool execution end to end.

    Creation and start failures propagate as ``RuntimeProvisioningError``.
    Failing to read the logs or the final state only degrades the result:
    the error text is appended to ``RunResult.errors`` and the run goes on.
    Whatever happens after creation, the container is force-removed before
    ``run`` returns.
    """

    def __init__(
        self,
        config: RunConfiguration,
        runtime,
        logger: Optional[logging.Logger] = None,
        remove_timeout: float = REMOVE_TIMEOUT_SECONDS,
    ):
        self.config = config
        self.runtime = runtime
        self.logger = logger or logging.getLogger("conplicity")
        self.remove_timeout = remove_timeout

    def run(self, command: BackupCommand) -> RunResult:
        env = compose_environment(self.config)
        timeout = self.config.run_timeout
        result = RunResult(exit_code=EXIT_CODE_UNKNOWN)

        self.logger.debug(
            "Creating container from %s: %s",
            self.config.image,
            " ".join(command.args),
        )
        container_id = self.runtime.create_container(
            self.config.image,
            command.args,
            env,
            mounts=command.mounts,
            timeout=timeout,
        )

        try:
            self.logger.debug("Launching 'duplicity %s'...", " ".join(command.args))
            self.runtime.start_container(container_id, timeout=timeout)

            try:
                result.output = self.runtime.container_logs(container_id, timeout=timeout)
            except ObservabilityError as exc:
                self.logger.error(str(exc))
                result.errors.append(str(exc))

            try:
                state = self.runtime.inspect_container(container_id, timeout=timeout)
                if state.get("Running") or state.get("Status", "exited") != "exited":
                    # A live container reports ExitCode 0; removal below kills it.
                    message = (
                        f"Container {container_id} still {state.get('Status', 'running')} "
                        "after its log stream ended; exit code unknown"
                    )
                    self.logger.error(message)
                    result.errors.append(message)
                else:
                    result.exit_code = int(state.get("ExitCode", EXIT_CODE_UNKNOWN))
            except ObservabilityError as exc:
                self.logger.error(str(exc))
                result.errors.append(str(exc))
            except (TypeError, ValueError) as exc:
                message = f"Invalid exit code in container state: {exc}"
                self.logger.error(message)
                result.errors.append(message)
        finally:
            # The run deadline may already be spent; removal gets its own.
            self.runtime.remove_container(container_id, timeout=self.remove_timeout)

        self.logger.debug("Backup output:\n%s", result.output)
        return result
