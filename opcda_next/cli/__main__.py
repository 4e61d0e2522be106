import sys
import time
from typing import List, Optional

import typer

from .. import log
from ..core.browser import create_tree
from ..core.connection import DEFAULT_NODES, new_connection
from ..core.errors import OPCError
from ..core.session import Session
from ..core.state import StateStore
from ..core.tree import collect_tags, extract_branch_by_names, pretty_print
from ..drivers import create_driver

app = typer.Typer(help="OPC-DA client: browse, read, write and poll tags.")

NODE_OPTION = typer.Option(None, "--node", "-n", help="Node to try, in order. Repeatable.")
DRIVER_OPTION = typer.Option("automation", "--driver", help="automation or simulated")
BRANCH_OPTION = typer.Option(None, "--branch", "-b", help="Branch path, one name per level.")


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Print client diagnostics to stderr.")):
    if debug:
        log.debug()


def _fail(message: str) -> None:
    typer.echo(typer.style(message, fg=typer.colors.RED), err=True)
    sys.exit(1)


def _nodes(server: str, nodes: Optional[List[str]]) -> List[str]:
    if nodes:
        return list(nodes)
    profile = StateStore().get_server(server)
    if profile and profile.get("nodes"):
        return list(profile["nodes"])
    return list(DEFAULT_NODES)


def _tags(server: str, tags: Optional[List[str]]) -> List[str]:
    if tags:
        return list(tags)
    return StateStore().list_tags(server)


def _parse_value(value: str):
    try:
        return int(value)
    except ValueError:
        try:
            return float(value)
        except ValueError:
            return value


@app.command()
def servers(node: str = typer.Argument("localhost"), driver: str = DRIVER_OPTION):
    """List OPC server prog-ids registered on a node."""
    try:
        session = Session(create_driver(driver))
    except (OPCError, ValueError) as e:
        _fail(f"Error loading driver {driver}: {e}")
    try:
        for progid in session.list_servers(node):
            typer.echo(progid)
    finally:
        session.close()


@app.command()
def browse(server: str, node: Optional[List[str]] = NODE_OPTION,
           branch: Optional[List[str]] = BRANCH_OPTION, driver: str = DRIVER_OPTION):
    """Print the namespace of a server, or of one branch of it."""
    try:
        tree = create_tree(server, _nodes(server, node), create_driver(driver))
    except (OPCError, ValueError) as e:
        _fail(f"Error browsing {server}: {e}")
    subtree = extract_branch_by_names(tree, *(branch or []))
    if subtree is None:
        _fail(f"Branch {'/'.join(branch or [])} not found")
    pretty_print(subtree)


@app.command()
def tags(server: str, node: Optional[List[str]] = NODE_OPTION,
         branch: Optional[List[str]] = BRANCH_OPTION, driver: str = DRIVER_OPTION):
    """Print every tag identifier below a branch."""
    try:
        tree = create_tree(server, _nodes(server, node), create_driver(driver))
    except (OPCError, ValueError) as e:
        _fail(f"Error browsing {server}: {e}")
    subtree = extract_branch_by_names(tree, *(branch or []))
    if subtree is None:
        _fail(f"Branch {'/'.join(branch or [])} not found")
    for tag in collect_tags(subtree):
        typer.echo(tag)


@app.command()
def read(server: str, tag: Optional[List[str]] = typer.Argument(None),
         node: Optional[List[str]] = NODE_OPTION, driver: str = DRIVER_OPTION):
    """Read value, quality and timestamp of tags (saved tags when none given)."""
    tag_list = _tags(server, tag)
    if not tag_list:
        _fail(f"No tags given and none saved for {server}")
    try:
        with new_connection(server, _nodes(server, node), tag_list, create_driver(driver)) as conn:
            for name, item in conn.read().items():
                typer.echo(f"{name}: {item.value} (quality={item.quality}, timestamp={item.timestamp})")
    except (OPCError, ValueError) as e:
        _fail(f"Error reading from {server}: {e}")


@app.command()
def write(server: str, tag: str, value: str,
          node: Optional[List[str]] = NODE_OPTION, driver: str = DRIVER_OPTION):
    """Write a value to a tag."""
    typed_value = _parse_value(value)
    try:
        with new_connection(server, _nodes(server, node), driver=create_driver(driver)) as conn:
            conn.write(tag, typed_value)
    except (OPCError, ValueError) as e:
        _fail(f"Error writing {value} to {tag} on {server}: {e}")
    typer.echo(f"Wrote {typed_value} to {tag}")


@app.command()
def poll(
    server: str,
    tag: Optional[List[str]] = typer.Argument(None),
    node: Optional[List[str]] = NODE_OPTION,
    driver: str = DRIVER_OPTION,
    interval: int = typer.Option(1000, help="Polling interval in ms."),
    count: Optional[int] = typer.Option(None, help="Stop after this many polls."),
    output: Optional[str] = None,
    format: str = "parquet",
):
    """Poll tags periodically and optionally record them to a file."""
    from ..sinks import item_records, open_sink

    tag_list = _tags(server, tag)
    if not tag_list:
        _fail(f"No tags given and none saved for {server}")
    try:
        sink = open_sink(output, format) if output else None
    except ValueError as e:
        _fail(str(e))

    polls = 0
    try:
        with new_connection(server, _nodes(server, node), tag_list, create_driver(driver)) as conn:
            typer.echo(f"Polling {len(tag_list)} tags on {server} every {interval}ms")
            try:
                while count is None or polls < count:
                    items = conn.read()
                    records = item_records(items)
                    for record in records:
                        typer.echo(f"{record['timestamp']} {record['tag']}: {record['value']}")
                    if sink:
                        sink.write_records(records)
                    polls += 1
                    if count is None or polls < count:
                        time.sleep(interval / 1000)
            except KeyboardInterrupt:
                pass
    except (OPCError, ValueError) as e:
        _fail(f"Error polling {server}: {e}")
    typer.echo(f"Polling stopped after {polls} polls.")


@app.command()
def save(server: str, tag: Optional[List[str]] = typer.Option(None, "--tag", "-t"),
         node: Optional[List[str]] = NODE_OPTION, name: Optional[str] = None):
    """Save a server profile with its nodes and tags."""
    store = StateStore()
    store.upsert_server(server, list(node) if node else None, name)
    for t in tag or []:
        store.add_tag(server, t)
    typer.echo(f"Saved {server} with {len(store.list_tags(server))} tags")


@app.command()
def profiles():
    """List saved server profiles."""
    for s in StateStore().list_servers():
        typer.echo(f"{s['id']} ({s.get('name')}) nodes={','.join(s.get('nodes', []))} tags={len(s.get('tags', []))}")


@app.command()
def forget(server: str, tag: Optional[List[str]] = typer.Option(None, "--tag", "-t")):
    """Remove saved tags from a profile, or the whole profile when no tag is given."""
    store = StateStore()
    if tag:
        for t in tag:
            store.remove_tag(server, t)
        typer.echo(f"Removed {len(tag)} tags from {server}")
    else:
        store.delete_server(server)
        typer.echo(f"Removed {server}")


if __name__ == "__main__":
    app()
