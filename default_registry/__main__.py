import csv
import json
import sys
from contextlib import contextmanager
from typing import Any

import click
import typer.cli
from fastapi.routing import APIRoute
from rich.console import Console
from rich.table import Table

from default_registry import main
from default_registry.db import get_db
from default_registry.workflows import customers, reasons

state = {"quiet": False}


class OrderedGroup(typer.cli.TyperCLIGroup):
    # https://github.com/fastapi/typer/blob/adca3254f8c2adc8d9b71b5cdea65c41770bd9b9/typer/cli.py#L55-L57
    # https://github.com/pallets/click/blob/e16088a8569597c55f108ea89af6245898249ec2/src/click/core.py#L1684-L1686
    def list_commands(self, ctx: click.Context) -> list[str]:
        self.maybe_add_run(ctx)
        return list(self.commands)


console = Console()
app = typer.Typer(cls=OrderedGroup)
dev = typer.Typer()
app.add_typer(dev, name="dev", help="Commands for maintainers of the default registry.")


@app.command()
def load_reasons(file: typer.FileText, *, renewal: bool = False) -> None:
    """
    Create or update default reasons (or renewal reasons, with --renewal) from a JSON file.

    \b
    The file contains a list of objects, like:
    [{"reason": "Overdue principal", "detail": "...", "enabled": true, "sort_order": 1}]
    An entry whose "reason" matches an existing entry updates it. Otherwise, it is created.
    """
    try:
        entries = json.load(file)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{file.name} is not valid JSON: {e}")
    if not isinstance(entries, list):
        raise click.BadParameter(f"{file.name} must contain a JSON list.")

    with contextmanager(get_db)() as session:
        try:
            created, updated = reasons.load_reasons(session, entries, renewal=renewal)
        except ValueError as e:
            raise click.BadParameter(str(e))

    if not state["quiet"]:
        print(f"Created {created} and updated {updated} {'renewal' if renewal else 'default'} reasons")


@app.command()
def check_integrity() -> None:
    """
    Report customers that have many active default episodes, many pending renewals, or a status that disagrees with
    their default episodes. Exit with status 1 if any is found.
    """
    with contextmanager(get_db)() as session:
        problems = customers.find_integrity_problems(session)

    if not problems:
        if not state["quiet"]:
            print("No problems found")
        return

    table = Table("Customer", "Problem")
    for row in problems:
        table.add_row(*row)
    console.print(table)
    raise typer.Exit(code=1)


def _model_name(model: Any) -> str:
    if model is None:
        return ""
    return getattr(model, "__name__", str(model))


def _query_parameters(dependant: Any) -> list[str]:
    # Includes the parameters of Depends() filters and pagination.
    names = [field.name for field in dependant.path_params + dependant.query_params]
    for dependency in dependant.dependencies:
        names.extend(name for name in _query_parameters(dependency) if name not in names)
    return names


# The openapi.json file names schemas, not the parser and serializer classes.
@dev.command()
def routes(*, csv_format: bool = False) -> None:
    """Print a table of routes, with their request parameters and response models."""
    rows = []
    for route in main.app.routes:
        # The OpenAPI and documentation routes are plain Starlette routes.
        if not isinstance(route, APIRoute):
            continue

        if route.body_field:  # POST, PUT
            parameters = [_model_name(route.body_field.type_)]
        else:  # GET, DELETE
            parameters = _query_parameters(route.dependant)

        rows.append(
            {
                "Methods": ", ".join(sorted(route.methods)),
                "Path": route.path,
                "Parsers": ", ".join(parameters),
                "Serializers": _model_name(route.response_model),
            }
        )

    fieldnames = "Methods", "Path", "Parsers", "Serializers"
    if csv_format:
        writer = csv.DictWriter(sys.stdout, fieldnames=fieldnames, lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
    else:
        table = Table(*fieldnames)
        for row in rows:
            table.add_row(*row.values())
        console.print(table)


# https://typer.tiangolo.com/tutorial/commands/callback/
@app.callback()
def cli(*, quiet: bool = typer.Option(False, "--quiet", "-q")) -> None:  # noqa: FBT003 # false positive
    if quiet:
        state["quiet"] = True


if __name__ == "__main__":
    app()
