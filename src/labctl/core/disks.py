"""Partitioning, formatting and mounting of block devices."""

import os
from pathlib import Path

from labctl.core.environment import is_block_device
from labctl.core.layout import PartitionSpec
from labctl.errors import DiskLayoutError
from labctl.utils.output import warn
from labctl.utils.polling import wait_for
from labctl.utils.process import run

# parted file-system-type hints for GPT partition entries
_PARTED_FS = {"vfat": "fat32", "ext4": "ext4"}


def partition_commands(disk: str, parts: list[PartitionSpec]) -> list[list[str]]:
    """parted invocations that lay out ``disk`` for ``parts``."""
    cmds = [["parted", disk, "--script", "mklabel", "gpt"]]
    for part in parts:
        cmds.append(
            ["parted", disk, "--script", "mkpart", part.label, _PARTED_FS[part.fstype], part.start, part.end]
        )
        if part.esp:
            cmds.append(["parted", disk, "--script", "set", str(part.number), "esp", "on"])
    return cmds


def format_command(part: PartitionSpec) -> list[str]:
    """mkfs invocation for a partition, including its label."""
    if part.fstype == "vfat":
        return ["mkfs.fat", "-F", "32", "-n", part.label, part.device]
    return ["mkfs.ext4", "-F", "-L", part.label, part.device]


def partition_disk(disk: str, parts: list[PartitionSpec]) -> None:
    """Write a fresh GPT table and partitions. Destroys existing data."""
    for cmd in partition_commands(disk, parts):
        run(cmd, check=True)


def format_partition(part: PartitionSpec) -> None:
    """Create the filesystem of ``part``. Destroys existing data."""
    run(format_command(part), check=True)


def rescan_devices() -> None:
    """Ask udev to re-read block devices and wait for the event queue."""
    run(["udevadm", "trigger", "--subsystem-match=block", "--action=change"])
    run(["udevadm", "settle", "--timeout=10"])


def wait_for_partitions(parts: list[PartitionSpec], timeout: float) -> None:
    """Wait until the kernel exposes every partition device node."""
    for part in parts:
        wait_for(
            lambda p=part: is_block_device(p.device),
            timeout=timeout,
            what=f"partition {part.device}",
            on_retry=rescan_devices,
        )


def label_resolves(part: PartitionSpec) -> bool:
    """True if the by-label symlink exists and points at the partition."""
    link = part.label_path
    if not link.exists():
        return False
    return link.resolve() == Path(part.device).resolve()


def wait_for_labels(layout: list[PartitionSpec], timeout: float) -> None:
    """Wait for every by-label symlink, then check where each one points.

    Label registration happens asynchronously after mkfs, so each link is
    polled with a rescan between attempts.
    """
    for part in layout:
        wait_for(
            part.label_path.exists,
            timeout=timeout,
            what=f"filesystem label {part.label}",
            on_retry=rescan_devices,
        )
        if not label_resolves(part):
            raise DiskLayoutError(
                f"Label {part.label} resolves to {part.label_path.resolve()}, "
                f"expected {part.device} ({part.role.value})"
            )


def unmount_tree(root: Path) -> None:
    """Recursively unmount everything under ``root`` (best effort)."""
    result = run(["umount", "-R", str(root)])
    if result.success:
        return
    stderr = result.stderr.lower()
    if "not mounted" in stderr or "no mount point" in stderr or "not found" in stderr:
        return
    warn(f"Could not unmount {root}: {result.stderr.strip()}")


def mount_source(target: Path) -> str | None:
    """Device mounted at ``target``, as reported by findmnt."""
    result = run(["findmnt", "-n", "-o", "SOURCE", str(target)])
    if not result.success:
        return None
    return result.stdout.strip() or None


def is_mounted_from(part: PartitionSpec, target: Path) -> bool:
    """True if ``target`` is a mount point backed by the partition of ``part``."""
    if not os.path.ismount(target):
        return False
    source = mount_source(target)
    return source is not None and Path(source).resolve() == Path(part.device).resolve()


def mount_partition(part: PartitionSpec, target: Path) -> bool:
    """Mount ``part`` by label at ``target``; returns False if already mounted.

    Raises:
        DiskLayoutError: If ``target`` is a mount point of another device.
    """
    if os.path.ismount(target):
        if is_mounted_from(part, target):
            return False
        raise DiskLayoutError(
            f"{target} is mounted from {mount_source(target) or 'an unknown device'}, "
            f"expected {part.device} ({part.label}); unmount it and re-run"
        )
    target.mkdir(parents=True, exist_ok=True)
    run(["mount", str(part.label_path), str(target)], check=True)
    return True
