"""Input and output handling of the resolve-tags command."""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Mapping, Sequence, TextIO

from kritisgate.kubectl import KUBECTL, CommandError

logger = logging.getLogger(__name__)

LOCAL_FLAG_FILENAME_ENV = "KUBECTL_PLUGINS_LOCAL_FLAG_FILENAME"
LOCAL_FLAG_APPLY_ENV = "KUBECTL_PLUGINS_LOCAL_FLAG_APPLY"
CALLER_ENV = "KUBECTL_PLUGINS_CALLER"


def resolve_apply(apply: bool, env: Mapping[str, str] | None = None) -> bool:
    """Whether changes are to be applied, by flag or by the plugin environment."""
    env = os.environ if env is None else env
    return apply or bool(env.get(LOCAL_FLAG_APPLY_ENV, ""))


def resolve_filepaths(
    files: Sequence[str],
    relative_dir: str | os.PathLike[str],
    env: Mapping[str, str] | None = None,
) -> list[str]:
    """The files to resolve, with paths that do not exist taken relative to relative_dir.

    A filename given through the plugin environment replaces the files passed in.
    """
    env = os.environ if env is None else env
    plugin_file = env.get(LOCAL_FLAG_FILENAME_ENV, "")
    paths = [plugin_file] if plugin_file else list(files)
    if not paths:
        raise ValueError("Please specify a path to resolve using --filename")
    logger.info("Resolving: %s", paths)
    resolved = []
    for path in paths:
        if not os.path.exists(path):
            full_path = os.path.join(relative_dir, path)
            os.stat(full_path)
            path = full_path
        resolved.append(path)
    return resolved


def format_results(substitutes: Mapping[str, str]) -> str:
    """The resolved manifests, each under a header naming its file."""
    return "".join(f"---{name}---\n{contents}\n" for name, contents in substitutes.items())


def apply_changes(
    substitutes: Mapping[str, str], out: TextIO, env: Mapping[str, str] | None = None
) -> None:
    """Apply each manifest with kubectl, copying kubectl's output to out."""
    env = os.environ if env is None else env
    kubectl = env.get(CALLER_ENV, "") or KUBECTL
    for contents in substitutes.values():
        command = [kubectl, "apply", "-f", "-"]
        logger.info("Sending to kubectl via stdin:\n%s", contents)
        logger.info("Executing %s ...", command)
        try:
            result = subprocess.run(
                command,
                input=contents.encode("utf-8"),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                check=False,
            )
        except OSError as err:
            out.write("\n")
            raise CommandError(command, None, str(err)) from err
        output = (result.stdout or b"").decode("utf-8", errors="replace")
        out.write(output + "\n")
        if result.returncode != 0:
            raise CommandError(command, result.returncode, output)