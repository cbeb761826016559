"""Tar extraction for files copied out of containers."""

import logging
import os
import tarfile
from pathlib import Path
from typing import BinaryIO, List, Union

from svcadm.errors import UnsupportedTarEntry


logger = logging.getLogger(__name__)


def _safe_target(destination: Path, member_name: str) -> Path:
    target = (destination / member_name).resolve()
    root = destination.resolve()
    if target != root and root not in target.parents:
        raise UnsupportedTarEntry(f"tar entry escapes destination: {member_name}")
    return target


def extract_tar(fileobj: BinaryIO, destination: Union[str, Path]) -> List[Path]:
    """Extract regular files and directories from a tar stream, preserving mode.

    Any other entry type raises UnsupportedTarEntry.
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    extracted: List[Path] = []

    with tarfile.open(fileobj=fileobj, mode="r|*") as archive:
        for member in archive:
            target = _safe_target(destination, member.name)
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
                os.chmod(target, member.mode & 0o7777)
            elif member.isreg():
                target.parent.mkdir(parents=True, exist_ok=True)
                source = archive.extractfile(member)
                with open(target, "wb") as handle:
                    while True:
                        chunk = source.read(1024 * 1024)
                        if not chunk:
                            break
                        handle.write(chunk)
                os.chmod(target, member.mode & 0o7777)
            else:
                raise UnsupportedTarEntry(
                    f"unsupported entry type {member.type!r} for {member.name}"
                )
            extracted.append(target)
            logger.debug(f"Extracted {target}")

    return extracted
