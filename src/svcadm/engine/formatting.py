"""Translation of service settings into docker API arguments."""

import re
from typing import Dict, List, Tuple, Union

from svcadm.constants import RESTART_POLICY_PATTERN


_RESTART_RE = re.compile(RESTART_POLICY_PATTERN)


def format_env(env: Dict[str, str]) -> List[str]:
    """``{K: V}`` -> ``["K=V"]``."""
    return [f"{key}={value}" for key, value in env.items()]


def parse_env(entries: List[str]) -> Dict[str, str]:
    """``["K=V"]`` -> ``{K: V}``, splitting on the first ``=`` only."""
    env = {}
    for entry in entries or []:
        key, _, value = entry.partition("=")
        env[key] = value
    return env


def format_binds(volumes: Dict[str, str]) -> List[str]:
    """``{source: target}`` -> ``["source:target"]``."""
    return [f"{source}:{target}" for source, target in volumes.items()]


def format_port_bindings(ports: Dict[int, int]) -> Dict[str, Union[int, List[int]]]:
    """``{host: container}`` -> ``{"container/tcp": host}``.

    Several host ports published for the same container port become a list.
    """
    bindings: Dict[str, List[int]] = {}
    for host_port, container_port in ports.items():
        bindings.setdefault(f"{int(container_port)}/tcp", []).append(int(host_port))
    return {
        key: hosts[0] if len(hosts) == 1 else hosts
        for key, hosts in bindings.items()
    }


def parse_restart_policy(policy: str) -> Tuple[str, int]:
    """Split a restart policy into ``(mode, max_retries)``.

    The configuration validator rejects malformed policies, so a malformed
    value here is a programming error.
    """
    if not _RESTART_RE.match(policy):
        raise ValueError(f"invalid restart policy: {policy!r}")
    mode, _, retries = policy.partition(":")
    return mode, int(retries) if retries else 0


def format_restart_policy(policy: str) -> Dict[str, Union[str, int]]:
    """Restart policy in the shape the docker API expects."""
    mode, max_retries = parse_restart_policy(policy)
    return {"Name": mode, "MaximumRetryCount": max_retries}
