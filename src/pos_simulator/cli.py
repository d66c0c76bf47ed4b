"""CLI entry point for the POS simulator."""

from __future__ import annotations

import sys

import click


@click.group()
def main() -> None:
    """Mock point-of-sale backend."""


@main.command()
@click.option("--config", default="configs/local.toml", help="Config file path")
@click.option("--host", default=None, help="Bind address override")
@click.option("--port", default=None, type=int, help="Port override")
@click.option("--webhook-url", default=None, help="Outbound order webhook URL override")
def serve(config: str, host: str | None, port: int | None, webhook_url: str | None) -> None:
    """Run the HTTP + WebSocket server."""
    from .main import run

    overrides: dict = {}
    if host:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if webhook_url:
        overrides["webhook"] = {"url": webhook_url}

    run(config_path=config, overrides=overrides)


@main.command()
@click.option("--secret", required=True, envvar="POS_WEBHOOK__SECRET", help="Signing secret")
@click.argument("payload", type=click.File("rb"), default="-")
def sign(secret: str, payload) -> None:
    """Print the signature for a webhook body (file or stdin)."""
    from .webhooks.signing import sign as sign_payload

    click.echo(sign_payload(payload.read(), secret))


@main.command()
@click.option("--secret", required=True, envvar="POS_WEBHOOK__SECRET", help="Signing secret")
@click.option("--signature", required=True, help="Hex signature from the x-pos-signature header")
@click.argument("payload", type=click.File("rb"), default="-")
def verify(secret: str, signature: str, payload) -> None:
    """Check a received webhook body against its signature.

    Exits 0 when the signature matches, 1 otherwise.
    """
    from .webhooks.signing import verify as verify_payload

    if verify_payload(payload.read(), signature, secret):
        click.echo("valid")
        return
    click.echo("invalid", err=True)
    sys.exit(1)


if __name__ == "__main__":
    main()
