# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Executor that drives a docker-compatible engine binary (docker, podman).
"""
import logging
import os
import subprocess
import time
from typing import Callable, List, Optional

from tenacity import Retrying, retry_if_result, stop_after_attempt, wait_fixed

from ..MODELS.plan import BuildImage, CreateVolume, ExecutionResult, StartService, Step, WaitHealthy
from .base import StepExecutor

logger = logging.getLogger(__name__)

EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124
EXIT_NOT_EXECUTABLE = 126


class CommandExecutor(StepExecutor):
    """
    Runs each step as one engine command, e.g. ``docker volume create``.

    Commands are passed as argument lists, never through a shell.
    """
    def __init__(self,
                 engine: str = "docker",
                 base_dir: str = ".",
                 timeout: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initializes the executor.

        :param engine: Engine binary to call.
        :param base_dir: Directory relative build contexts and bind mounts are resolved against.
        :param timeout: Seconds each engine command may take; None waits forever.
        :param sleep: Used between readiness probes.
        """
        self.engine = engine
        self.base_dir = os.path.abspath(base_dir)
        self.timeout = timeout
        self.sleep = sleep

    def run_step(self, step: Step) -> ExecutionResult:
        if isinstance(step, WaitHealthy):
            return self._wait_healthy(step)
        return self._execute(self.build_command(step), self.timeout)

    def build_command(self, step: Step) -> List[str]:
        """
        The engine command line for a build, volume or start step.

        :param step: Any step except WaitHealthy.
        :return: Argument list starting with the engine binary.
        """
        if isinstance(step, BuildImage):
            cmd = [self.engine, "build", "-t", step.tag,
                   "-f", os.path.join(self._path(step.context), step.dockerfile)]
            for key, value in step.args.items():
                cmd += ["--build-arg", f"{key}={value}"]
            cmd.append(self._path(step.context))
            return cmd

        if isinstance(step, CreateVolume):
            return [self.engine, "volume", "create",
                    "--label", f"io.stackplan.persistent={str(step.persistent).lower()}",
                    step.engine_name]

        if isinstance(step, StartService):
            cmd = [self.engine, "run", "-d", "--name", step.container_name]
            for key, value in step.environment.items():
                cmd += ["-e", f"{key}={value}"]
            for port in step.ports:
                cmd += ["-p", str(port)]
            for mount in step.volumes:
                source = mount.source if mount.is_named else self._path(mount.source)
                cmd += ["-v", f"{source}:{mount.target}{':ro' if mount.read_only else ''}"]
            cmd.append(step.image)
            cmd += list(step.command)
            return cmd

        raise TypeError(f"no engine command for {type(step).__name__}")

    def probe_command(self, step: WaitHealthy) -> List[str]:
        """
        The command that checks readiness once, run inside the container.
        """
        test = list(step.check.test)
        if test[0] == "CMD-SHELL":
            inner = ["sh", "-c", " ".join(test[1:])]
        elif test[0] == "CMD":
            inner = test[1:]
        else:
            inner = test
        return [self.engine, "exec", step.container_name] + inner

    def _wait_healthy(self, step: WaitHealthy) -> ExecutionResult:
        """
        Probes until the check passes or its retries are used up.
        """
        check = step.check
        if check.start_period:
            self.sleep(check.start_period)

        command = self.probe_command(step)
        retrying = Retrying(
            stop=stop_after_attempt(check.retries),
            wait=wait_fixed(check.interval),
            retry=retry_if_result(lambda result: not result.success),
            retry_error_callback=lambda state: state.outcome.result(),
            sleep=self.sleep,
        )
        result = retrying(self._execute, command, check.timeout)
        if result.success:
            logger.info("%s is ready", step.service)
            return result
        detail = f"{step.service} not ready after {check.retries} attempts"
        if result.detail:
            detail = f"{detail}: {result.detail}"
        return ExecutionResult.failed(result.exit_code, detail)

    def _execute(self, command: List[str], timeout: Optional[float]) -> ExecutionResult:
        logger.debug("Running: %s", " ".join(command))
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
                shell=False,
            )
        except FileNotFoundError:
            return ExecutionResult.failed(EXIT_NOT_FOUND, f"{command[0]}: command not found")
        except PermissionError:
            return ExecutionResult.failed(EXIT_NOT_EXECUTABLE, f"{command[0]}: permission denied")
        except subprocess.TimeoutExpired:
            return ExecutionResult.failed(EXIT_TIMEOUT, f"timed out after {timeout}s")
        except OSError as e:
            return ExecutionResult.failed(EXIT_NOT_EXECUTABLE, f"{command[0]}: {e.strerror or e}")

        if completed.returncode == 0:
            return ExecutionResult.ok(completed.stdout.strip()[:500])
        return ExecutionResult.failed(completed.returncode, (completed.stderr or "").strip()[:500])

    def _path(self, path: str) -> str:
        return os.path.normpath(os.path.join(self.base_dir, os.path.expanduser(path)))
