import logging
import subprocess
from typing import Iterable, List, Optional

import requests
from rich.console import Console

from .constants import CONTAINER_DATA_ROOT, METRICS_JOB_NAME
from .errors import CommandTimeoutError, ConnectivityError, ConplicityError
from .errors_catalog import actionable_error
from .models import BackupCommand, BackupTarget, BindMount, MetricBatch, RunConfiguration, RunResult
from .services.command_runner import CommandRunner
from .services.docker_runtime import DockerRuntimeService
from .services.metrics import MetricsReporter, format_metric_line
from .services.supervisor import BackupRunSupervisor

console = Console()
logger = logging.getLogger("conplicity")


class Conplicity:
    """Runs one backup cycle over a precomputed set of volumes."""

    COMMON_ARGS = ("--s3-use-new-style", "--no-encryption", "--allow-source-mismatch")

    def __init__(
        self,
        config: RunConfiguration,
        hostname: str,
        runtime=None,
        metrics_reporter: Optional[MetricsReporter] = None,
    ):
        self.config = config
        self.hostname = hostname
        self.metrics = MetricBatch()

        if runtime is None:
            runtime = DockerRuntimeService(
                logger=logger,
                command_runner=CommandRunner(logger=logger, subprocess_module=subprocess),
                endpoint=config.docker_endpoint,
            )
        self.runtime = runtime
        self.supervisor = BackupRunSupervisor(config=config, runtime=runtime, logger=logger)
        self.metrics_reporter = metrics_reporter or MetricsReporter(logger=logger, requests_module=requests)

    def setup(self):
        self.runtime.ensure_image(self.config.image, timeout=self.config.run_timeout)

    def _remote_url(self, target: BackupTarget) -> str:
        return f"{self.config.target_url.rstrip('/')}/{self.hostname}/{target.name}"

    def _source_mount(self, target: BackupTarget) -> BindMount:
        return BindMount(
            host_path=target.host_path,
            container_path=f"{CONTAINER_DATA_ROOT}/{target.name}",
            read_only=True,
        )

    def build_backup_command(self, target: BackupTarget) -> BackupCommand:
        mount = self._source_mount(target)
        args = (
            "--full-if-older-than",
            self.config.full_if_older_than,
            *self.COMMON_ARGS,
            mount.container_path,
            self._remote_url(target),
        )
        return BackupCommand(args=args, mounts=(mount,))

    def build_verify_command(self, target: BackupTarget) -> BackupCommand:
        mount = self._source_mount(target)
        args = ("verify", *self.COMMON_ARGS, self._remote_url(target), mount.container_path)
        return BackupCommand(args=args, mounts=(mount,))

    def build_cleanup_command(self, target: BackupTarget) -> BackupCommand:
        args = (
            "remove-older-than",
            self.config.remove_older_than,
            "--s3-use-new-style",
            "--no-encryption",
            "--force",
            self._remote_url(target),
        )
        return BackupCommand(args=args)

    def record_metric(self, target: BackupTarget, what: str, result: RunResult):
        self.metrics.append(
            format_metric_line(
                METRICS_JOB_NAME,
                {"volume": target.name, "what": what},
                result.exit_code,
            )
        )

    def _run_step(self, target: BackupTarget, what: str, command: BackupCommand) -> RunResult:
        result = self.supervisor.run(command)
        self.record_metric(target, what, result)
        if result.succeeded:
            logger.info("%s of %s succeeded", what, target.name)
        else:
            logger.error("%s of %s failed with exit code %s", what, target.name, result.exit_code)
        return result

    def backup_volume(self, target: BackupTarget) -> bool:
        console.print(f"[blue]Backing up volume {target.name}...[/blue]")

        results = [self._run_step(target, "backupExitCode", self.build_backup_command(target))]
        if not self.config.no_verify:
            results.append(self._run_step(target, "verifyExitCode", self.build_verify_command(target)))
        results.append(self._run_step(target, "cleanupExitCode", self.build_cleanup_command(target)))

        ok = all(result.succeeded for result in results)
        if ok:
            console.print(f"[green]Volume {target.name} backed up.[/green]")
        else:
            console.print(f"[red]Backup of volume {target.name} reported failures.[/red]")
        return ok

    def push_metrics(self) -> bool:
        return self.metrics_reporter.push(
            self.metrics,
            self.config.pushgateway_url,
            METRICS_JOB_NAME,
            self.hostname,
        )

    def run(self, targets: Iterable[BackupTarget]) -> int:
        failed: List[str] = []
        try:
            self.setup()
            for target in targets:
                if not self.backup_volume(target):
                    failed.append(target.name)
        except CommandTimeoutError as exc:
            limit = f"{self.config.run_timeout}s" if self.config.run_timeout else "its timeout"
            message = actionable_error("docker_timed_out", timeout=limit)
            console.print(f"[bold red]Error:[/bold red] {message}")
            logger.error("%s %s", message, exc)
            return 1
        except ConnectivityError as exc:
            message = actionable_error("docker_unreachable", endpoint=self.config.docker_endpoint)
            console.print(f"[bold red]Error:[/bold red] {message}")
            logger.error("%s %s", message, exc)
            return 1
        except ConplicityError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return 1
        finally:
            self.push_metrics()

        if failed:
            logger.error("Backups failed for: %s", ", ".join(failed))
            return 1
        return 0
