from __future__ import annotations

import shlex
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import docker
import requests

from judge import config as judge_config
from judge.exception import SandboxSetupError
from judge.meta import ExecutionConstraints
from judge.utils import logger
from runner.languages import LanguageProfile
from runner.path_utils import PathTranslator

CONTAINER_LABEL = "judge.managed"
CONTAINER_PREFIX = "judge_"
SANDBOX_MOUNT = "/sandbox"

_DOCKER_ERRORS = (
    docker.errors.DockerException,
    requests.exceptions.RequestException,
)
# a wait() that outlives its timeout surfaces as one of these
_WAIT_TIMEOUT_ERRORS = (
    requests.exceptions.ReadTimeout,
    requests.exceptions.ConnectionError,
)


@dataclass
class CompileOutcome:
    ok: bool
    error_text: str = ""


@dataclass
class RunOutcome:
    exit_ok: bool
    exit_code: int
    stdout: str
    stderr: str
    elapsed_ms: int
    memory_bytes: int
    timed_out: bool = False
    oom_killed: bool = False


class Sandbox:
    """
    Run one command inside a fresh, network-isolated, resource-bounded
    container. Each call creates its own container and removes it before
    returning, whatever the outcome.
    """

    def __init__(
        self,
        docker_url: Optional[str] = None,
        translator: Optional[PathTranslator] = None,
        client=None,
    ):
        self.docker_url = docker_url or judge_config.DOCKER_URL
        self.translator = translator or PathTranslator()
        self._client = client
        self._active = set()
        self._active_lock = threading.Lock()

    @property
    def client(self) -> docker.APIClient:
        if self._client is None:
            self._client = docker.APIClient(base_url=self.docker_url)
        return self._client

    @property
    def active_count(self) -> int:
        with self._active_lock:
            return len(self._active)

    def compile(self, profile: LanguageProfile,
                src_dir: str | Path) -> CompileOutcome:
        if not profile.compile_need:
            return CompileOutcome(ok=True)
        # the compiler writes its artifact next to the source
        with self._container(
                image=profile.image,
                command=profile.compile_command,
                src_dir=src_dir,
                mem_limit_mb=profile.memory_limit_mb,
                read_only=False,
        ) as container_id:
            started = time.monotonic()
            budget = profile.timeout_ms / 1000
            try:
                exit_status = self.client.wait(container_id, timeout=budget)
            except _WAIT_TIMEOUT_ERRORS as exc:
                self._raise_if_not_timeout(exc, started, budget)
                self._kill(container_id)
                return CompileOutcome(ok=False,
                                      error_text="Compilation timed out")
            except docker.errors.DockerException as exc:
                raise SandboxSetupError(f"compile wait failed: {exc}") from exc
            if exit_status.get("StatusCode", 1) != 0:
                return CompileOutcome(
                    ok=False,
                    error_text=self._logs(container_id,
                                          stdout=True,
                                          stderr=True),
                )
            return CompileOutcome(ok=True)

    def run(
        self,
        profile: LanguageProfile,
        src_dir: str | Path,
        stdin_name: str,
        constraints: ExecutionConstraints,
    ) -> RunOutcome:
        mem_limit_mb = constraints.memoryLimit or profile.memory_limit_mb
        command = f"{profile.run_command} < {shlex.quote(stdin_name)}"
        with self._container(
                image=profile.image,
                command=command,
                src_dir=src_dir,
                mem_limit_mb=mem_limit_mb,
                read_only=True,
        ) as container_id:
            started = time.monotonic()
            budget = constraints.timeLimit / 1000
            try:
                exit_status = self.client.wait(container_id, timeout=budget)
            except _WAIT_TIMEOUT_ERRORS as exc:
                self._raise_if_not_timeout(exc, started, budget)
                logger().debug(f"time limit exceeded [id={container_id}]")
                self._kill(container_id)
                return RunOutcome(
                    exit_ok=False,
                    exit_code=-1,
                    stdout="",
                    stderr="",
                    elapsed_ms=constraints.timeLimit,
                    memory_bytes=self._peak_memory(container_id),
                    timed_out=True,
                )
            except docker.errors.DockerException as exc:
                raise SandboxSetupError(f"run wait failed: {exc}") from exc
            elapsed_ms = int((time.monotonic() - started) * 1000)
            exit_code = exit_status.get("StatusCode", -1)
            memory_bytes = self._peak_memory(container_id)
            if exit_code != 0:
                combined = self._logs(container_id, stdout=True, stderr=True)
                return RunOutcome(
                    exit_ok=False,
                    exit_code=exit_code,
                    stdout="",
                    stderr=combined[:judge_config.ERROR_MESSAGE_LIMIT],
                    elapsed_ms=elapsed_ms,
                    memory_bytes=memory_bytes,
                    oom_killed=self._oom_killed(container_id),
                )
            stderr = self._logs(container_id, stdout=False, stderr=True)
            return RunOutcome(
                exit_ok=True,
                exit_code=0,
                stdout=self._logs(container_id, stdout=True, stderr=False),
                stderr=stderr[:judge_config.ERROR_MESSAGE_LIMIT],
                elapsed_ms=elapsed_ms,
                memory_bytes=memory_bytes,
            )

    def kill_all(self):
        """Force-remove every container still in flight."""
        with self._active_lock:
            container_ids = [*self._active]
        for container_id in container_ids:
            logger().info(f"remove in-flight sandbox [id={container_id}]")
            self._release(container_id)

    @contextmanager
    def _container(
        self,
        image: str,
        command: str,
        src_dir: str | Path,
        mem_limit_mb: int,
        read_only: bool,
    ) -> Iterator[str]:
        host_dir = str(self.translator.to_host(src_dir))
        try:
            host_config = self.client.create_host_config(
                binds={
                    host_dir: {
                        "bind": SANDBOX_MOUNT,
                        "mode": "ro" if read_only else "rw",
                    }
                },
                network_mode="none",
                mem_limit=f"{mem_limit_mb}m",
                memswap_limit=f"{mem_limit_mb}m",
                cpu_period=judge_config.SANDBOX_CPU_PERIOD,
                cpu_quota=judge_config.SANDBOX_CPU_QUOTA,
                pids_limit=judge_config.SANDBOX_PIDS_LIMIT,
                tmpfs={"/tmp": "rw,noexec,nosuid,size=64m"},
            )
            container = self.client.create_container(
                image=image,
                command=["/bin/sh", "-c", command],
                working_dir=SANDBOX_MOUNT,
                network_disabled=True,
                host_config=host_config,
                name=f"{CONTAINER_PREFIX}{uuid.uuid4().hex}",
                labels={CONTAINER_LABEL: "true"},
            )
        except _DOCKER_ERRORS as exc:
            raise SandboxSetupError(f"create sandbox failed: {exc}") from exc
        container_id = container.get("Id")
        with self._active_lock:
            self._active.add(container_id)
        try:
            try:
                self.client.start(container_id)
            except _DOCKER_ERRORS as exc:
                raise SandboxSetupError(
                    f"start sandbox failed: {exc}") from exc
            yield container_id
        finally:
            self._release(container_id)

    def _release(self, container_id: str):
        try:
            self.client.remove_container(container_id, v=True, force=True)
        except docker.errors.NotFound:
            pass
        except _DOCKER_ERRORS as exc:
            logger().warning(
                f"remove sandbox failed [id={container_id}]: {exc}")
        finally:
            with self._active_lock:
                self._active.discard(container_id)

    def _raise_if_not_timeout(self, exc: Exception, started: float,
                              budget: float):
        # a dropped daemon connection before the deadline is not a timeout
        if time.monotonic() - started < budget:
            raise SandboxSetupError(f"lost sandbox connection: {exc}") from exc

    def _kill(self, container_id: str):
        try:
            self.client.kill(container_id)
        except _DOCKER_ERRORS as exc:
            # already exited between the timeout and the kill
            logger().debug(f"kill sandbox failed [id={container_id}]: {exc}")

    def _logs(self, container_id: str, stdout: bool, stderr: bool) -> str:
        try:
            raw = self.client.logs(container_id, stdout=stdout, stderr=stderr)
        except _DOCKER_ERRORS as exc:
            logger().warning(f"read logs failed [id={container_id}]: {exc}")
            return ""
        return raw.decode("utf-8", "ignore")

    def _peak_memory(self, container_id: str) -> int:
        try:
            stats = self.client.stats(container_id, stream=False)
        except _DOCKER_ERRORS as exc:
            logger().debug(f"read stats failed [id={container_id}]: {exc}")
            return 0
        memory_stats = (stats or {}).get("memory_stats") or {}
        return int(
            memory_stats.get("max_usage") or memory_stats.get("usage") or 0)

    def _oom_killed(self, container_id: str) -> bool:
        try:
            info = self.client.inspect_container(container_id)
        except _DOCKER_ERRORS:
            return False
        return bool(info.get("State", {}).get("OOMKilled"))
