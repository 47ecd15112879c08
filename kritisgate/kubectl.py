"""Running kubectl and the other command-line tools the install hooks rely on."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

KUBECTL = "kubectl"
SERVICE_ACCOUNT_NAMESPACE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")
DEFAULT_NAMESPACE = "default"


class CommandError(RuntimeError):
    """An external command could not be started or exited with an error."""

    def __init__(self, command: Sequence[str], returncode: int | None, output: str) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        if returncode is None:
            detail = f"could not start: {output}"
        else:
            detail = f"exit status {returncode}"
            if output.strip():
                detail += f": {output.strip()}"
        super().__init__(f"running {self.command}: {detail}")


def run_command(args: Sequence[str], input: bytes | str | None = None) -> bytes:
    """Run a command, feeding it input, and return what it wrote to stdout."""
    command = list(args)
    data = input.encode("utf-8") if isinstance(input, str) else input
    try:
        result = subprocess.run(command, input=data, capture_output=True, check=False)
    except OSError as err:
        raise CommandError(command, None, str(err)) from err
    if result.returncode != 0:
        stderr = result.stderr or b""
        raise CommandError(command, result.returncode, stderr.decode("utf-8", errors="replace"))
    return result.stdout or b""


def object_exists(kind: str, name: str, namespace: str) -> bool:
    """Whether kubectl can find the named object; its complaints go to stderr."""
    command = [KUBECTL, "get", kind, name, "--namespace", namespace]
    try:
        result = subprocess.run(command, stdout=subprocess.DEVNULL, check=False)
    except OSError:
        return False
    return result.returncode == 0


def delete_object(kind: str, name: str, namespace: str) -> None:
    """Delete the named object."""
    run_command([KUBECTL, "delete", kind, name, "--namespace", namespace])
    logger.info("deleted %s %s", kind, name)


def apply_manifest(manifest: str) -> bytes:
    """Apply a manifest through kubectl's standard input."""
    return run_command([KUBECTL, "apply", "-f", "-"], manifest)


def retrieve_namespace() -> str:
    """The namespace this process runs in, or "default" outside a cluster."""
    try:
        namespace = SERVICE_ACCOUNT_NAMESPACE.read_text().strip()
    except OSError:
        return DEFAULT_NAMESPACE
    return namespace or DEFAULT_NAMESPACE