import json

import click
from flask import current_app

from .product_codes import DEFAULT_SEQUENCE, ProductCodeError, generate_product_code
from .scanner import classify_scan
from .services.product_code_migration import MigrationError, run_once


def register_cli(app):
    @app.cli.command("migrate-product-codes")
    def migrate_product_codes() -> None:
        """Assign product codes to products that do not have one yet."""
        migration_key = current_app.config["PRODUCT_CODE_MIGRATION_KEY"]
        try:
            result = run_once(migration_key)
        except MigrationError as exc:
            click.echo(f"Migration {migration_key} failed: {exc}", err=True)
            raise SystemExit(1)
        if result.already_completed:
            click.echo(f"Migration {migration_key} already completed; nothing to do.")
            return
        click.echo(
            f"Migration {migration_key} completed: {result.processed_count} product(s) updated."
        )

    @app.cli.command("generate-product-code")
    @click.argument("product_type")
    @click.argument("name")
    @click.option(
        "--sequence",
        default=DEFAULT_SEQUENCE,
        show_default=True,
        type=int,
        help="Sequence number appended to the code.",
    )
    def generate_product_code_command(product_type: str, name: str, sequence: int) -> None:
        """Print the product code for TYPE and NAME."""
        try:
            click.echo(generate_product_code(product_type, name, sequence))
        except ProductCodeError as exc:
            raise click.BadParameter(str(exc)) from exc

    @app.cli.command("classify-scan")
    @click.argument("value")
    def classify_scan_command(value: str) -> None:
        """Classify a scanned VALUE as a product, rack or order."""
        event = classify_scan(value)
        if event is None:
            click.echo("Scan could not be classified.", err=True)
            raise SystemExit(1)
        click.echo(json.dumps({"kind": event.kind, "identifier": event.identifier}))
