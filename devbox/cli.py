"""Command-line front-end.

    devbox search [TYPES...] [--min-vcpu N] [--min-mem GiB] [--arch A] [--gpu]
    devbox resize INSTANCE_ID TYPE
    devbox recover INSTANCE_ID [--yes]
    devbox volume move VOLUME REGION [--az ZONE] [--cleanup]
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path

from botocore.exceptions import ClientError
from injector import Injector
from loguru import logger
from rich.console import Console
from rich.table import Table

from devbox.app import build_injector
from devbox.config import resolve_config
from devbox.constants import SortKey
from devbox.discovery import CapacityDiscoveryEngine
from devbox.exceptions import DevboxError
from devbox.logging import LogConfig, setup_logging, teardown_logging
from devbox.recover import RecoveryPlanner
from devbox.resize import InstanceResizeOrchestrator
from devbox.types import CandidateOffer, Degradation, SearchConstraints
from devbox.volumes import VolumeRelocationOrchestrator

console = Console()


def _offer_table(offers: Sequence[CandidateOffer], *, show_zone: bool = True) -> Table:
    table = Table(show_edge=False, header_style="bold")
    table.add_column("TYPE")
    table.add_column("VCPU", justify="right")
    table.add_column("MEMORY", justify="right")
    table.add_column("NETWORK")
    if show_zone:
        table.add_column("AZ")
    table.add_column("PRICE", justify="right")
    table.add_column("GPU")
    for o in offers:
        row = [
            o.instance_type,
            str(o.profile.vcpus),
            f"{o.profile.memory_gib:.0f} GiB",
            o.profile.network or "-",
        ]
        if show_zone:
            row.append(o.zone)
        row += [f"${o.price:.4f}", "yes" if o.profile.has_gpu else "-"]
        table.add_row(*row)
    return table


def _print_degradations(degradations: Sequence[Degradation]) -> None:
    for d in degradations:
        console.print(f"[yellow]warning[/yellow] {d.step} {d.resource_id}: {d.message}")


def _cmd_search(injector: Injector, args: argparse.Namespace) -> int:
    engine = injector.get(CapacityDiscoveryEngine)
    sort_by = SortKey(args.sort)
    if args.types:
        offers = engine.lookup(args.types, zone=args.az, max_price=args.max_price, sort_by=sort_by)
    else:
        constraints = SearchConstraints(
            min_vcpus=args.min_vcpu,
            min_memory_gib=args.min_mem,
            architecture=args.arch,
            require_gpu=args.gpu,
            zone=args.az,
            max_price=args.max_price,
        )
        offers = engine.find_candidates(constraints, sort_by=sort_by)
    if not offers:
        console.print("No spot prices found matching filters.")
        return 0
    if args.limit > 0:
        offers = offers[: args.limit]
    console.print(_offer_table(offers))
    return 0


def _cmd_resize(injector: Injector, args: argparse.Namespace) -> int:
    outcome = injector.get(InstanceResizeOrchestrator).resize(args.instance_id, args.type)
    if outcome.path == "noop":
        console.print(f"{outcome.instance_id} is already {outcome.new_type}")
        return 0
    _print_degradations(outcome.degradations)
    if outcome.replaced:
        console.print(
            f"[green]{outcome.original_id} replaced by {outcome.instance_id}[/green] "
            f"({outcome.old_type} -> {outcome.new_type})"
        )
        for att in outcome.migrated_volumes:
            console.print(f"  {att.volume_id} attached at {att.device}")
    else:
        console.print(
            f"[green]{outcome.instance_id} resized[/green] "
            f"({outcome.old_type} -> {outcome.new_type})"
        )
    return 0


def _cmd_recover(injector: Injector, args: argparse.Namespace) -> int:
    plan = injector.get(RecoveryPlanner).recover(
        args.instance_id,
        auto_confirm=args.yes,
        min_vcpus=args.min_vcpu,
        min_memory_gib=args.min_mem,
        max_price=args.max_price,
    )
    inst, current = plan.instance, plan.current
    console.print(f"Instance {inst.id}: {inst.instance_type} ({inst.state}) in {inst.zone}")
    for att in inst.attachments:
        console.print(f"  Volume: {att.volume_id} ({att.device})")
    console.print(
        f"  Current specs: {current.vcpus} vCPU, {current.memory_gib:.0f} GiB, "
        f"{current.architecture}"
    )
    if plan.best is None:
        console.print("No spot capacity found matching filters.")
        return 0

    console.print(_offer_table(plan.candidates, show_zone=False))
    if plan.outcome is None:
        console.print(f"\nTo resize: devbox resize {inst.id} {plan.best.instance_type}")
        return 0
    outcome = plan.outcome
    _print_degradations(outcome.degradations)
    console.print(f"[green]Now running {outcome.new_type} as {outcome.instance_id}[/green]")
    return 0


def _cmd_volume_move(injector: Injector, args: argparse.Namespace) -> int:
    outcome = injector.get(VolumeRelocationOrchestrator).relocate(
        args.volume,
        args.region_to,
        target_zone=args.az,
        cleanup=args.cleanup,
    )
    _print_degradations(outcome.degradations)
    console.print(f"[green]Volume moved[/green]: {outcome.volume_id} in {outcome.zone}")
    if not outcome.snapshots_deleted:
        console.print(
            f"  Snapshots kept: {outcome.source_snapshot_id}, {outcome.target_snapshot_id}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="devbox", description=__doc__.splitlines()[0])
    parser.add_argument("--config", type=Path, default=None, help="Global config file")
    parser.add_argument("--region", default=None)
    parser.add_argument("--endpoint-url", default=None)
    parser.add_argument("--log-file", default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Browse spot prices by hardware specs")
    search.add_argument("types", nargs="*", help="Specific instance types to price")
    search.add_argument("--min-vcpu", type=int, default=8)
    search.add_argument("--min-mem", type=float, default=16)
    search.add_argument("--max-price", type=float, default=None)
    search.add_argument("--arch", default="x86_64")
    search.add_argument("--gpu", action="store_true")
    search.add_argument("--az", default=None)
    search.add_argument("--sort", choices=[k.value for k in SortKey], default=SortKey.PRICE.value)
    search.add_argument("--limit", type=int, default=20)
    search.set_defaults(handler=_cmd_search)

    resize = sub.add_parser("resize", help="Change an instance's type")
    resize.add_argument("instance_id")
    resize.add_argument("type")
    resize.set_defaults(handler=_cmd_resize)

    recover = sub.add_parser("recover", help="Find capacity for a stuck spot instance")
    recover.add_argument("instance_id")
    recover.add_argument("--min-vcpu", type=int, default=None)
    recover.add_argument("--min-mem", type=float, default=None)
    recover.add_argument("--max-price", type=float, default=None)
    recover.add_argument("--yes", action="store_true", help="Resize to the cheapest candidate")
    recover.set_defaults(handler=_cmd_recover)

    volume = sub.add_parser("volume", help="Volume operations")
    volume_sub = volume.add_subparsers(dest="volume_command", required=True)
    move = volume_sub.add_parser("move", help="Move a volume to another region")
    move.add_argument("volume", help="Volume id or Name tag")
    move.add_argument("region_to", metavar="region")
    move.add_argument("--az", default=None, help="Target AZ (default: <region>a)")
    move.add_argument("--cleanup", action="store_true", help="Delete intermediate snapshots")
    move.set_defaults(handler=_cmd_volume_move)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logger.remove()
    handler_ids = setup_logging(LogConfig.for_cli(verbose=args.verbose, log_file=args.log_file))
    try:
        config = resolve_config(
            global_path=args.config,
            region=args.region,
            endpoint_url=args.endpoint_url,
        )
        return args.handler(build_injector(config), args)
    except (DevboxError, ClientError) as e:
        console.print(f"[red]error:[/red] {e}")
        return 1
    finally:
        teardown_logging(handler_ids)
