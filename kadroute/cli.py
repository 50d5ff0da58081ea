#!/usr/bin/env python3
"""
kadroute CLI

Command-line interface for inspecting Kademlia routing tables.

Usage:
    kadroute bucket-index LOCAL TARGET   # Bucket TARGET falls into for LOCAL
    kadroute simulate --peers 200        # Fill a table with random peers
    kadroute show-config                 # Print the effective configuration
"""

import json
import logging
import random
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.logging import RichHandler

from .bucket import NodeInfo
from .config import Config, load_config
from .routing import RoutingTable
from .utils import generate_node_id, hex_to_id, check_id, id_to_hex

console = Console()
log_console = Console(stderr=True)


def setup_logging(level: str = 'INFO', verbose: bool = False):
    """Configure logging with rich output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=log_console, show_time=False, show_path=False)],
        force=True,
    )


def parse_node_id(value: str, id_bits: int, param_name: str) -> bytes:
    """Parse a hex identifier, turning format errors into click errors."""
    try:
        return check_id(hex_to_id(value), id_bits)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=param_name)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False, path_type=Path),
              default=None, help='JSON config file')
@click.pass_context
def cli(ctx, verbose, config_path):
    """kadroute - Kademlia routing table inspection tools."""
    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    setup_logging(config.log_level, verbose)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command('bucket-index')
@click.argument('local')
@click.argument('target')
@click.pass_context
def bucket_index(ctx, local, target):
    """Print the bucket TARGET falls into in LOCAL's table (hex IDs)."""
    config: Config = ctx.obj['config']
    local_id = parse_node_id(local, config.id_bits, 'LOCAL')
    target_id = parse_node_id(target, config.id_bits, 'TARGET')

    table = RoutingTable.from_config(NodeInfo(node_id=local_id), config)
    click.echo(table.get_bucket_index(target_id))


@cli.command()
@click.option('--peers', '-n', default=100, show_default=True, help='Random peers to insert')
@click.option('--count', '-c', default=None, type=int, help='Contacts to return (default: bucket size)')
@click.option('--local', default=None, help='Local node ID (hex, random if omitted)')
@click.option('--target', default=None, help='Target ID (hex, random if omitted)')
@click.option('--seed', default=None, type=int, help='Seed for reproducible IDs')
@click.option('--dump', is_flag=True, help='Print the full routing table')
@click.pass_context
def simulate(ctx, peers, count, local, target, seed, dump):
    """Fill a routing table with random peers and query it."""
    config: Config = ctx.obj['config']
    rng = random.Random(seed)
    count = config.bucket_size if count is None else count

    local_id = (
        parse_node_id(local, config.id_bits, '--local') if local
        else generate_node_id(config.id_bits, rng)
    )
    target_id = (
        parse_node_id(target, config.id_bits, '--target') if target
        else generate_node_id(config.id_bits, rng)
    )

    table = RoutingTable.from_config(NodeInfo(node_id=local_id, ip='127.0.0.1'), config)
    for i in range(peers):
        table.insert(NodeInfo(
            node_id=generate_node_id(config.id_bits, rng),
            ip=f"10.0.{i // 250}.{i % 250 + 1}",
            port=8468 + i,
        ))

    stats = table.get_stats()
    console.print(Panel.fit(
        f"Local ID: [cyan]{id_to_hex(local_id)[:32]}...[/cyan]\n"
        f"Metric: [yellow]{config.metric}[/yellow]\n"
        f"Nodes: [yellow]{stats['total_nodes']}[/yellow] "
        f"in [yellow]{stats['non_empty_buckets']}[/yellow] buckets",
        title="Routing Table"
    ))

    if dump:
        console.print(table.render(), markup=False, highlight=False)

    result = Table(title=f"Closest {count} to {id_to_hex(target_id)[:16]}... "
                         f"(bucket {table.get_bucket_index(target_id)})")
    result.add_column("Bucket", justify="right", style="yellow")
    result.add_column("Node ID", style="cyan")
    result.add_column("Address")

    for node in table.find_closest(target_id, count):
        result.add_row(
            str(table.get_bucket_index(node.node_id)),
            node.node_id_hex[:16] + "...",
            f"{node.ip}:{node.port}",
        )

    console.print(result)


@cli.command('show-config')
@click.option('--save', 'save_path', type=click.Path(dir_okay=False, path_type=Path),
              default=None, help='Also write the configuration to this file')
@click.pass_context
def show_config(ctx, save_path: Optional[Path]):
    """Print the effective configuration as JSON."""
    config: Config = ctx.obj['config']
    click.echo(json.dumps(config.to_dict(), indent=2))
    if save_path:
        config.save(save_path)


if __name__ == '__main__':
    cli()
