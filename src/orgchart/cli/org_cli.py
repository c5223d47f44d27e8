"""Flask CLI commands for org chart management.

Provides ``flask org tree``, ``flask org import``, ``flask org export``,
``flask org stats`` and ``flask org add-department``.
"""

from pathlib import Path

import click
from flask import current_app
from flask.cli import AppGroup

from ..services.errors import OrgChartError
from ..services.hierarchy_builder import PositionNode

org_cli = AppGroup("org", help="Org chart management commands.")


def _service():
    return current_app.extensions["org_hierarchy"]


def _echo_node(node: PositionNode, depth: int) -> None:
    holder = node.employee_name or "(vacant)"
    department = f" [{node.department}]" if node.department else ""
    click.echo(f"{'  ' * depth}- {node.title}: {holder}{department}")
    for child in node.children:
        _echo_node(child, depth + 1)


@org_cli.command("tree")
@click.option("--client", "client_id", required=True, help="Client identifier.")
@click.option("--department", "department_id", default=None, help="Scope to one department id.")
def tree_command(client_id: str, department_id: str | None) -> None:
    """Print the client's org chart as an indented tree."""
    roots = _service().fetch_tree(client_id, department_id=department_id)
    if not roots:
        click.echo("No positions found.")
        return
    for root in roots:
        _echo_node(root, 0)


@org_cli.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--client", "client_id", required=True, help="Client identifier.")
def import_command(csv_file: Path, client_id: str) -> None:
    """Import positions from a CSV file (all rows or none)."""
    try:
        result = _service().import_csv(client_id, csv_file.read_text(encoding="utf-8"))
    except OrgChartError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(1)

    if not result.success:
        click.echo(f"Import rejected with {len(result.errors)} error(s):", err=True)
        for error in result.errors:
            click.echo(f"  Row {error.row}: {error.message}", err=True)
        raise SystemExit(1)

    click.echo(f"Imported {result.created} new and {result.updated} updated position(s).")


@org_cli.command("export")
@click.option("--client", "client_id", required=True, help="Client identifier.")
@click.option(
    "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
    help="Write to this file instead of stdout.",
)
def export_command(client_id: str, output: Path | None) -> None:
    """Export the client's positions as CSV."""
    text = _service().export_csv(client_id)
    if output is None:
        click.echo(text, nl=False)
        return
    output.write_text(text, encoding="utf-8")
    click.echo(f"Exported to {output}")


@org_cli.command("stats")
@click.option("--client", "client_id", required=True, help="Client identifier.")
def stats_command(client_id: str) -> None:
    """Show fill counts per department and level."""
    stats = _service().get_stats(client_id)
    click.echo(
        f"Positions: {stats.total_positions} "
        f"({stats.filled_positions} filled, {stats.vacant_positions} vacant, "
        f"{stats.fill_rate:.0%} fill rate)"
    )
    if not stats.total_positions:
        return

    click.echo("\nBy department:")
    width = max(len(entry["department"]) for entry in stats.by_department)
    for entry in stats.by_department:
        click.echo(
            f"  {entry['department'].ljust(width)}  "
            f"{entry['total']} total, {entry['filled']} filled, {entry['vacant']} vacant"
        )

    click.echo("\nBy level:")
    for entry in stats.by_level:
        click.echo(
            f"  Level {entry['level']}  "
            f"{entry['total']} total, {entry['filled']} filled, {entry['vacant']} vacant"
        )


@org_cli.command("add-department")
@click.option("--client", "client_id", required=True, help="Client identifier.")
@click.option("--name", required=True, help="Department name (e.g. 'Engineering').")
@click.option("--color", default=None, help="Optional display colour (e.g. '#3B82F6').")
def add_department_command(client_id: str, name: str, color: str | None) -> None:
    """Add a department to the client's directory."""
    service = _service()
    try:
        department = service.departments.create(client_id, name, color)
        service.session.commit()
    except OrgChartError as e:
        service.session.rollback()
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(1)

    click.echo(f"Department created: {department.name} (id={department.id})")
