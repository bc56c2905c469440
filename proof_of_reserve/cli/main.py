"""
Proof of Reserve Command Line Interface

Provides commands for computing the reserve root, printing user inclusion
paths, rendering the tree and querying a running server.
"""

import json
import logging
import sys
from typing import List, Optional

import click
import requests

from proof_of_reserve.core.merkle import (
    DEFAULT_BRANCH_TAG,
    DEFAULT_LEAF_TAG,
    MerkleTree,
    MerkleTreeError,
    compute_root,
)
from proof_of_reserve.core.models import (
    DEFAULT_RECORDS,
    MalformedIdentifier,
    RecordLoadError,
    load_records,
    parse_user_id,
)
from proof_of_reserve.visualize import MerkleTreeVisualizer, render_mermaid, strip_colors

# Configure click
CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])

REQUEST_TIMEOUT = 10


# Helper functions
def build_tree(records_file: Optional[str], leaf_tag: str, branch_tag: str) -> MerkleTree:
    """Build a tree from a records file, or from the default records."""
    try:
        records = load_records(records_file) if records_file else DEFAULT_RECORDS
    except RecordLoadError as e:
        click.echo(f"Error loading records: {e}", err=True)
        sys.exit(1)
    return MerkleTree.build(leaf_tag, branch_tag, records)


def tree_options(f):
    """Options shared by commands that build a tree."""
    f = click.option('--branch-tag', default=DEFAULT_BRANCH_TAG, show_default=True,
                     help='Domain separation tag for branch hashes')(f)
    f = click.option('--leaf-tag', default=DEFAULT_LEAF_TAG, show_default=True,
                     help='Domain separation tag for leaf hashes')(f)
    f = click.option('--records', '-r', type=click.Path(exists=True, dir_okay=False),
                     help='JSON file with the records (default: built-in sample)')(f)
    return f


def fetch(url: str) -> requests.Response:
    """GET a URL, exiting with a message on connection errors or non-2xx replies."""
    try:
        response = requests.get(url, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        click.echo(f"Error contacting {url}: {e}", err=True)
        sys.exit(1)

    if not response.ok:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        message = payload.get('message', response.text) if isinstance(payload, dict) else response.text
        click.echo(f"Server returned {response.status_code}: {message}", err=True)
        sys.exit(1)
    return response


# Command groups
@click.group(context_settings=CONTEXT_SETTINGS)
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def cli(verbose: bool):
    """Proof of Reserve - Merkle commitments over user balances."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@cli.command()
@tree_options
def root(records: Optional[str], leaf_tag: str, branch_tag: str):
    """Print the Merkle root of the records."""
    tree = build_tree(records, leaf_tag, branch_tag)
    merkle_root = tree.root()
    if merkle_root is None:
        click.echo("Merkle tree is empty", err=True)
        sys.exit(1)
    click.echo(merkle_root)


@cli.command()
@click.argument('user_id')
@tree_options
def proof(user_id: str, records: Optional[str], leaf_tag: str, branch_tag: str):
    """Print the inclusion path for USER_ID as JSON."""
    try:
        parsed_id = parse_user_id(user_id)
    except MalformedIdentifier as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    tree = build_tree(records, leaf_tag, branch_tag)
    try:
        merkle_proof = tree.get_proof(parsed_id)
    except MerkleTreeError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    click.echo(json.dumps(merkle_proof.model_dump(), indent=2))


@cli.command()
@click.option('--format', 'fmt', type=click.Choice(['mermaid', 'text']), default='mermaid',
              show_default=True, help='Output format')
@click.option('--max-depth', type=int, default=4, show_default=True,
              help='Maximum depth for the text view')
@click.option('--output', '-o', help='Output file (default: print to console)')
@tree_options
def diagram(fmt: str, max_depth: int, output: Optional[str], records: Optional[str],
            leaf_tag: str, branch_tag: str):
    """Render the Merkle tree."""
    tree = build_tree(records, leaf_tag, branch_tag)
    if fmt == 'mermaid':
        rendered = render_mermaid(tree)
    else:
        rendered = MerkleTreeVisualizer(max_depth=max_depth).visualize_tree(tree)

    if output:
        # Strip ANSI color codes when writing to file
        with open(output, 'w', encoding='utf-8') as f:
            f.write(strip_colors(rendered))
        click.echo(f"Diagram saved to {output}")
    else:
        click.echo(rendered)


@cli.command()
@click.argument('items', nargs=-1, required=True)
@click.option('--leaf-tag', default=DEFAULT_LEAF_TAG, show_default=True)
@click.option('--branch-tag', default=DEFAULT_BRANCH_TAG, show_default=True)
def compute(items: List[str], leaf_tag: str, branch_tag: str):
    """Print the Merkle root over raw string ITEMS."""
    click.echo(compute_root(branch_tag, leaf_tag, list(items)))


@cli.command()
@click.option('--host', default='0.0.0.0', show_default=True, help='Host to bind to')
@click.option('--port', type=int, default=8000, show_default=True, help='Port to listen on')
@click.option('--records', '-r', type=click.Path(exists=True, dir_okay=False),
              help='JSON file with the records to commit to')
@click.option('--debug', is_flag=True, help='Enable debug mode')
def serve(host: str, port: int, records: Optional[str], debug: bool):
    """Run the proof of reserve HTTP server."""
    from proof_of_reserve.server import run_server

    click.echo(f"Starting proof of reserve server on {host}:{port}")
    run_server(host=host, port=port, debug=debug, records_file=records)


# Remote commands
@cli.group()
def remote():
    """Query a running proof of reserve server."""
    pass


@remote.command('root')
@click.argument('url')
def remote_root(url: str):
    """Fetch the published Merkle root from URL."""
    response = fetch(f"{url.rstrip('/')}/proof")
    click.echo(response.text)


@remote.command('proof')
@click.argument('url')
@click.argument('user_id')
def remote_proof(url: str, user_id: str):
    """Fetch the inclusion path for USER_ID from URL."""
    try:
        parsed_id = parse_user_id(user_id)
    except MalformedIdentifier as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    response = fetch(f"{url.rstrip('/')}/proof/{parsed_id}")
    click.echo(json.dumps(response.json(), indent=2))


# Main entry point
if __name__ == '__main__':
    cli()
