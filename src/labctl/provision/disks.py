"""Disk provisioning step: partition, format, wait for labels, mount."""

import shlex

from labctl.core import disks
from labctl.core.layout import build_layout, check_unique_labels, partitions_by_disk
from labctl.errors import AbortedByOperator
from labctl.provision.pipeline import ProvisionContext
from labctl.utils.output import info, ok, warn
from labctl.utils.prompts import confirm_destructive

CONFIRM_TOKEN = "ERASE"


class DiskStep:
    step_id = "disks"
    title = "Disk Provisioning"
    read_only = False

    def is_done(self, ctx: ProvisionContext) -> bool:
        config = ctx.config
        for part in build_layout(config):
            if not disks.label_resolves(part):
                return False
            if not disks.is_mounted_from(part, config.in_target(part.mountpoint)):
                return False
        return True

    def plan(self, ctx: ProvisionContext) -> list[str]:
        config = ctx.config
        layout = build_layout(config)
        actions = [f"umount -R {config.target_root}"]
        if config.skip_destructive:
            actions.append("Keep existing partition tables and filesystems")
        else:
            for disk, parts in partitions_by_disk(layout).items():
                actions.extend(shlex.join(cmd) for cmd in disks.partition_commands(disk, parts))
                actions.extend(shlex.join(disks.format_command(p)) for p in parts)
        actions.append(f"Wait up to {config.label_timeout:g}s for labels: {', '.join(p.label for p in layout)}")
        for part in layout:
            actions.append(f"mount {part.label_path} {config.in_target(part.mountpoint)}")
        return actions

    def run(self, ctx: ProvisionContext) -> None:
        config = ctx.config
        layout = build_layout(config)
        check_unique_labels(layout)

        if config.skip_destructive:
            info("Skipping partitioning and formatting (LAB_SKIP_DESTRUCTIVE)")
        else:
            self._confirm(ctx)

        disks.unmount_tree(config.target_root)

        if not config.skip_destructive:
            for disk, parts in partitions_by_disk(layout).items():
                info(f"Partitioning {disk}...")
                disks.partition_disk(disk, parts)
                disks.wait_for_partitions(parts, timeout=config.label_timeout)
                for part in parts:
                    info(f"Formatting {part.device} as {part.fstype} ({part.label})...")
                    disks.format_partition(part)
            ok("Disks partitioned and formatted")

        disks.rescan_devices()
        disks.wait_for_labels(layout, timeout=config.label_timeout)

        for part in layout:
            target = config.in_target(part.mountpoint)
            if disks.mount_partition(part, target):
                ok(f"Mounted {part.label} at {target}")
            else:
                info(f"{target} already mounted")

    def _confirm(self, ctx: ProvisionContext) -> None:
        devices = ", ".join(ctx.config.device_paths.values())
        if ctx.config.noninteractive:
            warn(f"Non-interactive override: erasing {devices}")
            return
        if not confirm_destructive(
            ctx.prompts, CONFIRM_TOKEN, f"ALL DATA on {devices} will be destroyed."
        ):
            raise AbortedByOperator("Disk provisioning not confirmed")
