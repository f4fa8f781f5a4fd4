"""Disk layout: which partition carries which filesystem and where it mounts."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from labctl.core.config import LabConfig

BY_LABEL_DIR = Path("/dev/disk/by-label")


class DeviceRole(Enum):
    """Role of a formatted filesystem in the lab host."""

    BOOT = "boot"
    ROOT = "root"
    BULK_A = "bulk-storage-a"  # AI models
    BULK_B = "bulk-storage-b"  # Nextcloud data


@dataclass(frozen=True)
class PartitionSpec:
    """One partition to create, format and mount."""

    role: DeviceRole
    disk: str
    number: int
    label: str
    fstype: str  # vfat|ext4
    start: str
    end: str
    mountpoint: str  # absolute path on the installed system
    esp: bool = False

    @property
    def device(self) -> str:
        """Partition block device, e.g. /dev/sdb2 or /dev/nvme0n1p1."""
        return partition_path(self.disk, self.number)

    @property
    def label_path(self) -> Path:
        """By-label symlink udev creates once the filesystem is registered."""
        return BY_LABEL_DIR / self.label


def partition_path(disk: str, number: int) -> str:
    """Return the device path of partition ``number`` on ``disk``."""
    # nvme/mmcblk devices use p suffix
    if disk[-1:].isdigit():
        return f"{disk}p{number}"
    return f"{disk}{number}"


def build_layout(config: LabConfig) -> list[PartitionSpec]:
    """Return the partitions in mount order (root first).

    The boot and bulk mount points live under root, so root must be mounted
    before any of them.
    """
    return [
        PartitionSpec(
            role=DeviceRole.ROOT,
            disk=config.boot_device,
            number=2,
            label="nixos-root",
            fstype="ext4",
            start="512MiB",
            end="100%",
            mountpoint="/",
        ),
        PartitionSpec(
            role=DeviceRole.BOOT,
            disk=config.boot_device,
            number=1,
            label="boot",
            fstype="vfat",
            start="1MiB",
            end="512MiB",
            mountpoint="/boot",
            esp=True,
        ),
        PartitionSpec(
            role=DeviceRole.BULK_A,
            disk=config.models_device,
            number=1,
            label="ai-storage",
            fstype="ext4",
            start="1MiB",
            end="100%",
            mountpoint="/mnt/ai-models",
        ),
        PartitionSpec(
            role=DeviceRole.BULK_B,
            disk=config.cloud_device,
            number=1,
            label="nextcloud-storage",
            fstype="ext4",
            start="1MiB",
            end="100%",
            mountpoint="/mnt/nextcloud",
        ),
    ]


def check_unique_labels(layout: list[PartitionSpec]) -> None:
    """Raise ValueError if two partitions share a label."""
    seen: dict[str, DeviceRole] = {}
    for part in layout:
        if part.label in seen:
            raise ValueError(
                f"Label '{part.label}' used by both {seen[part.label].value} and {part.role.value}"
            )
        seen[part.label] = part.role


def partitions_by_disk(layout: list[PartitionSpec]) -> dict[str, list[PartitionSpec]]:
    """Group partitions per disk, ordered by partition number."""
    grouped: dict[str, list[PartitionSpec]] = {}
    for part in layout:
        grouped.setdefault(part.disk, []).append(part)
    for parts in grouped.values():
        parts.sort(key=lambda p: p.number)
    return grouped
