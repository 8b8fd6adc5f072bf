"""Naming, volume layout and platform selection for job containers."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import sys
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path

log = logging.getLogger(__name__)

DEFAULT_DAEMON_SOCKET = "/var/run/docker.sock"
DEFAULT_ACT_PATH = "/var/run/act"
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def trim_to_len(text: str, length: int) -> str:
    """Cut ``text`` to at most ``length`` characters."""
    return text[: max(length, 0)]


def create_container_name(*args: str) -> str:
    """Build a container name from parts, made safe and suffixed with its hash."""
    name = _NON_ALNUM.sub("-", "-".join(args)).replace("--", "-")
    digest = hashlib.sha256(name.encode()).hexdigest()
    # the hash takes 64 characters, so the readable part is kept to 63
    trimmed = trim_to_len(name, 63).strip("-")
    return f"{trimmed}-{digest}"


def job_container_name(workflow_name: str, run_name: str, caller_job_id: str | None = None) -> str:
    """Container name for a job, prefixed with the calling job of a reusable workflow."""
    name = f"{workflow_name}/{run_name}"
    if caller_job_id is not None:
        name = f"{caller_job_id}/{name}"
    return create_container_name("act", name)


def binds_and_mounts(
    container_name: str,
    workdir: str,
    container_workdir: str | None = None,
    act_path: str = DEFAULT_ACT_PATH,
    bind_workdir: bool = False,
    daemon_socket: str = "",
    volumes: Iterable[str] = (),
    platform: str | None = None,
    selinux_enabled: bool = False,
) -> tuple[list[str], dict[str, str]]:
    """Return the host binds and named volume mounts for a job container."""
    socket = daemon_socket or DEFAULT_DAEMON_SOCKET
    target = workdir if container_workdir is None else container_workdir
    binds = [f"{socket}:{DEFAULT_DAEMON_SOCKET}"]
    mounts = {"act-toolcache": "/toolcache", f"{container_name}-env": act_path}

    for volume in volumes:
        if ":" not in volume or os.path.isabs(volume):
            binds.append(volume)
        else:
            source, destination = volume.split(":", 1)
            mounts[source] = destination

    if bind_workdir:
        modifiers = ""
        if (platform or sys.platform) == "darwin":
            modifiers = ":delegated"
        if selinux_enabled:
            modifiers = ":z"
        binds.append(f"{workdir}:{target}{modifiers}")
    else:
        mounts[container_name] = target
    return binds, mounts


def action_cache_dir(environ: Mapping[str, str] | None = None) -> str:
    """Directory where actions and runner files are cached."""
    env = os.environ if environ is None else environ
    cache = env.get("XDG_CACHE_HOME", "")
    if not cache:
        home = env.get("HOME", "")
        if not home:
            try:
                home = str(Path.home())
            except RuntimeError:
                home = ""
        cache = os.path.join(home, ".cache") if home else os.path.abspath(".")
    return os.path.join(cache, "act")


def is_host_environment(image: str) -> bool:
    """True when the image selects running directly on the host."""
    return image.casefold() == "-self-hosted"


def platform_image(
    container_image: str | None,
    runs_on: Sequence[str] | None,
    platforms: Mapping[str, str],
    interpolate: Callable[[str], str],
) -> str:
    """Image for a job: its own container image or the first mapped runner label."""
    if container_image is not None:
        return interpolate(container_image)
    if runs_on is None:
        log.error("'runs-on' key not defined")
        return ""
    for label in runs_on:
        image = platforms.get(interpolate(label).lower(), "")
        if image:
            return image
    return ""


def job_container_env(arch: str) -> list[str]:
    """Base environment of a job container as ``KEY=value`` entries."""
    return [
        "RUNNER_TOOL_CACHE=/opt/hostedtoolcache",
        "RUNNER_OS=Linux",
        f"RUNNER_ARCH={arch}",
        "RUNNER_TEMP=/tmp",
        "LANG=C.UTF-8",
    ]