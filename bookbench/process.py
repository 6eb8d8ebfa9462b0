"""Thin wrapper around external command-line tools."""

import logging
import re
import shlex
import subprocess
import sys
import threading
from collections.abc import Iterable
from typing import IO

from pydantic import BaseModel

from bookbench.errors import ProcessError

logger = logging.getLogger(__name__)

_SECRET_ARG = re.compile(r"(--password=|//[^:/@]+:)[^@\s]+")


class ProcessResult(BaseModel):
    """Captured output of a finished process."""

    stdout: str
    stderr: str
    returncode: int


class ExternalProcess:
    """Spawns an executable and captures its output.

    Arguments accumulate in ``args`` until ``execute`` is called. Output
    is collected by reader threads and echoed to this process's own
    stdout/stderr unless ``silent`` is set. One invocation per instance.

    Args:
        command: Executable name or path.
        args: Initial arguments.
        shell: Run through the shell.
        silent: Do not echo the child's output.
        env: Environment for the child; inherits when None.
    """

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        shell: bool = False,
        silent: bool = False,
        env: dict[str, str] | None = None,
    ) -> None:
        self.command = command
        self.args: list[str] = list(args or [])
        self.shell = shell
        self.silent = silent
        self.env = env
        self._process: subprocess.Popen | None = None
        self._stdout: list[str] = []
        self._stderr: list[str] = []
        self._readers: list[threading.Thread] = []

    def add_argument(self, *values: object) -> "ExternalProcess":
        self.args.extend(str(v) for v in values)
        return self

    def add_arguments(self, values: Iterable[object]) -> "ExternalProcess":
        """Append every item of ``values`` as a separate argument."""
        return self.add_argument(*values)

    @property
    def command_line(self) -> list[str] | str:
        argv = [self.command, *self.args]
        return shlex.join(argv) if self.shell else argv

    def describe(self) -> str:
        """Command line with passwords masked, for logging."""
        return _SECRET_ARG.sub(r"\1***", shlex.join([self.command, *self.args]))

    def execute(self) -> subprocess.Popen:
        """Start the process with piped stdin, stdout and stderr.

        Raises:
            ProcessError: If the executable cannot be started.
        """
        logger.info("Running command: %s", self.describe())
        try:
            self._process = subprocess.Popen(
                self.command_line,
                shell=self.shell,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self.env,
            )
        except OSError as exc:
            raise ProcessError(f"Process error: {exc}") from exc

        self._readers = [
            threading.Thread(
                target=self._pump,
                args=(self._process.stdout, self._stdout, sys.stdout),
                daemon=True,
            ),
            threading.Thread(
                target=self._pump,
                args=(self._process.stderr, self._stderr, sys.stderr),
                daemon=True,
            ),
        ]
        for reader in self._readers:
            reader.start()
        return self._process

    def _pump(self, stream: IO[str], sink: list[str], echo: IO[str]) -> None:
        for chunk in iter(stream.readline, ""):
            sink.append(chunk)
            if not self.silent:
                echo.write(chunk)
        stream.close()

    def write(self, data: str) -> None:
        """Write to the child's stdin.

        Raises:
            ProcessError: If the process was not started.
        """
        if self._process is None:
            raise ProcessError("Process not started")
        if self._process.stdin is None or self._process.stdin.closed:
            return
        try:
            self._process.stdin.write(data)
        except BrokenPipeError:
            # Child exited early; finish() reports its exit code and stderr
            logger.warning("Process %s closed its input early", self.command)

    def end(self) -> None:
        """Close the child's stdin so tools reading a script see EOF."""
        if self._process is None or self._process.stdin is None or self._process.stdin.closed:
            return
        try:
            self._process.stdin.close()
        except BrokenPipeError:
            logger.warning("Process %s closed its input early", self.command)

    def finish(self, timeout: float | None = None) -> ProcessResult:
        """Wait for exit and return the captured output.

        Closes stdin first if the caller has not.

        Raises:
            ProcessError: If the process was not started, timed out, or
                exited with a non-zero code (stderr attached).
        """
        if self._process is None:
            raise ProcessError("Process not started")

        self.end()
        try:
            returncode = self._process.wait(timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            self._process.kill()
            self._process.wait()
            raise ProcessError(f"Process {self.command} timed out after {timeout}s") from exc

        for reader in self._readers:
            reader.join()

        stdout = "".join(self._stdout)
        stderr = "".join(self._stderr)
        if returncode != 0:
            raise ProcessError(
                f"Process exited with code {returncode}. Error: {stderr}",
                returncode=returncode,
                stderr=stderr,
            )
        return ProcessResult(stdout=stdout, stderr=stderr, returncode=returncode)

    def run(self, input: str | None = None, timeout: float | None = None) -> ProcessResult:
        """Execute, optionally feed ``input`` to stdin, and wait for exit."""
        self.execute()
        if input is not None:
            self.write(input)
        return self.finish(timeout=timeout)
