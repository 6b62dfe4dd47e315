"""Typer CLI entrypoint for fieldqr."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from apps.cli.io import build_output_path, write_artifact_atomic
from core.fields.loader import load_fields, parse_field_option
from core.fields.models import FieldCollection
from core.payload.encoder import payload_text_for
from core.session.controller import FormController
from core.utils.errors import EncodingFailedError, NoValidFieldsError

app = typer.Typer(help="Field QR code generator CLI", rich_markup_mode=None)

FieldOption = Annotated[
    list[str] | None,
    typer.Option(
        "--field",
        "-f",
        help="Field as LABEL=VALUE. Repeat for more fields.",
    ),
]
FieldsFileOption = Annotated[
    Path | None,
    typer.Option(
        "--fields-file",
        exists=True,
        dir_okay=False,
        file_okay=True,
        help="YAML/JSON file with a list of {label, value} or a label -> value mapping.",
    ),
]


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep `fieldqr generate` as explicit command form."""


@app.command("generate")
def generate_command(
    field: FieldOption = None,
    fields_file: FieldsFileOption = None,
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite qrcode.png when it already exists.")
    ] = False,
    no_overwrite: Annotated[
        bool,
        typer.Option(
            "--no-overwrite",
            help="Fail when qrcode.png already exists.",
        ),
    ] = False,
    print_payload: Annotated[
        bool,
        typer.Option("--print-payload", help="Echo the encoded JSON payload."),
    ] = False,
) -> None:
    """Encode fields into a QR code and write qrcode.png."""

    if force and no_overwrite:
        typer.echo("ERROR: --force and --no-overwrite cannot be used together.")
        raise typer.Exit(code=1)

    collection = _collect_fields_or_exit(field, fields_file)
    controller = FormController()
    controller.load_fields(collection)

    try:
        image = asyncio.run(controller.generate())
    except NoValidFieldsError:
        typer.echo("ERROR: add at least one field with both label and value")
        raise typer.Exit(code=2)
    except EncodingFailedError as exc:
        typer.echo(f"ERROR: error generating QR code: {exc}")
        raise typer.Exit(code=3)

    if print_payload:
        typer.echo(image.payload_text)

    artifact = controller.download()
    output_path = build_output_path(out_dir, artifact)
    if output_path.exists():
        if no_overwrite:
            typer.echo("ERROR: output already exists and --no-overwrite is enabled.")
            raise typer.Exit(code=1)
        typer.echo(f"INFO: overwriting existing output: {output_path.name}")

    try:
        write_artifact_atomic(output_path, artifact)
    except OSError as exc:
        typer.echo(f"ERROR: write output failed: {exc}")
        raise typer.Exit(code=1)

    typer.echo(f"INFO: wrote {output_path} ({image.width}x{image.height})")
    typer.echo("INFO: success")


@app.command("payload")
def payload_command(
    field: FieldOption = None,
    fields_file: FieldsFileOption = None,
) -> None:
    """Print the JSON payload the QR code would contain."""

    collection = _collect_fields_or_exit(field, fields_file)
    try:
        typer.echo(payload_text_for(collection))
    except NoValidFieldsError:
        typer.echo("ERROR: add at least one field with both label and value")
        raise typer.Exit(code=2)


def _collect_fields_or_exit(
    field_options: list[str] | None, fields_file: Path | None
) -> FieldCollection:
    try:
        return _collect_fields(field_options or [], fields_file)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=1)


def _collect_fields(field_options: list[str], fields_file: Path | None) -> FieldCollection:
    """File fields first, then --field options, in the order given."""

    if fields_file is None and not field_options:
        return FieldCollection.default()

    base = load_fields(fields_file) if fields_file is not None else FieldCollection()
    pairs = [(field.label, field.value) for field in base.fields]
    pairs.extend(parse_field_option(raw) for raw in field_options)
    return FieldCollection.from_pairs(pairs)


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()
