"""Runtime data produced while starting a service."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class RuntimeArtifacts:
    """Contributions returned by an adapter's ``pre_init``."""
    env: Dict[str, str] = field(default_factory=dict)
    volumes: Dict[str, str] = field(default_factory=dict)
    ports: Dict[int, int] = field(default_factory=dict)
    cap_add: List[str] = field(default_factory=list)
    command: Optional[List[str]] = None


@dataclass
class ContainerRunSpec:
    """Everything the engine needs to create and start a container."""
    name: str
    image: str
    env: Dict[str, str] = field(default_factory=dict)
    command: Optional[List[str]] = None
    labels: Dict[str, str] = field(default_factory=dict)
    restart_policy: str = "no"
    volumes: Dict[str, str] = field(default_factory=dict)
    ports: Dict[int, int] = field(default_factory=dict)
    cap_add: List[str] = field(default_factory=list)
