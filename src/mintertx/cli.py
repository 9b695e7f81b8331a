"""Click CLI for mintertx."""

import json as json_mod
import logging
import sys
from pathlib import Path

import click

from mintertx.config import MinterTxConfig, load_config
from mintertx.constants import TxType
from mintertx.crypto import private_key_to_address
from mintertx.exceptions import MinterTxError
from mintertx.helpers import bytes_to_address, to_pip
from mintertx.transaction import (
    INVALID_SIGNATURE,
    MALFORMED_PAYLOAD,
    UNKNOWN_TYPE,
    Transaction,
)


class _JsonFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record):
        return json_mod.dumps({
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        })


def setup_logging(level: str, json_log: bool = False) -> None:
    if json_log:
        handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            handlers=[handler],
        )
    else:
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def _jsonable(value):
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def describe_transaction(tx: Transaction) -> dict:
    """Summarize a decoded transaction for display."""
    summary = {
        "hash": tx.full_digest().hex(),
        "fields": _jsonable(tx.to_dict()),
        "type": TxType.names().get(tx.int_value("type_code"), "UNKNOWN"),
    }
    result = tx.validate()
    summary["valid"] = result.ok
    summary["errors"] = result.errors
    if UNKNOWN_TYPE not in result.errors and MALFORMED_PAYLOAD not in result.errors:
        summary["payload"] = _jsonable(tx.get_payload().to_dict())
    if INVALID_SIGNATURE not in result.errors:
        summary["sender"] = tx.sender
    return summary


def _emit(tx: Transaction, as_json: bool) -> None:
    if as_json:
        click.echo(json_mod.dumps(describe_transaction(tx), indent=2))
    else:
        click.echo(tx.to_hex())


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True),
              default=None, help="Path to config YAML file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--json-log", is_flag=True, help="Output logs in structured JSON format")
@click.pass_context
def cli(ctx, config_path, verbose, json_log):
    """mintertx: build, sign and verify Minter transactions."""
    ctx.ensure_object(dict)

    if config_path:
        config = load_config(Path(config_path))
    else:
        config = MinterTxConfig()

    if verbose:
        config.log_level = "DEBUG"

    setup_logging(config.log_level, json_log=json_log)
    ctx.obj["config"] = config


private_key_option = click.option(
    "--private-key", envvar="MINTERTX_PRIVATE_KEY", prompt=True, hide_input=True,
    help="Hex private key (or set MINTERTX_PRIVATE_KEY)",
)


@cli.command()
@private_key_option
def address(private_key):
    """Print the Mx address of a private key."""
    try:
        click.echo(bytes_to_address(private_key_to_address(private_key)))
    except MinterTxError as e:
        _fail(str(e))


@cli.command()
@click.option("--to", "recipient", required=True, help="Recipient address (Mx...)")
@click.option("--amount", "-a", required=True, type=str, help="Amount in whole coins")
@click.option("--coin", default=None, help="Coin symbol (default: from config)")
@click.option("--nonce", "-n", required=True, type=int, help="Account nonce")
@click.option("--fee-price", type=int, default=None, help="Fee price (default: from config)")
@click.option("--memo", default="", help="Text stored in the transaction's extra data")
@click.option("--json", "as_json", is_flag=True, help="Print a JSON summary instead of hex")
@private_key_option
@click.pass_context
def send(ctx, recipient, amount, coin, nonce, fee_price, memo, as_json, private_key):
    """Build and sign a send transaction."""
    config = ctx.obj["config"]
    try:
        tx = Transaction.build(
            TxType.SEND,
            {
                "to": recipient,
                "coin": coin or config.tx.coin,
                "value": to_pip(amount),
            },
            nonce=nonce,
            fee_price=config.tx.fee_price if fee_price is None else fee_price,
            extra_data=memo.encode("utf-8"),
        )
        tx.sign(private_key)
    except MinterTxError as e:
        _fail(str(e))
    _emit(tx, as_json)


@cli.command()
@click.option("--threshold", "-t", required=True, type=int, help="Signature weight threshold")
@click.option("--weight", "weights", multiple=True, required=True, type=int,
              help="Weight of each address (repeat in address order)")
@click.option("--address", "addresses", multiple=True, required=True,
              help="Member address (repeat)")
@click.option("--nonce", "-n", required=True, type=int, help="Account nonce")
@click.option("--fee-price", type=int, default=None, help="Fee price (default: from config)")
@click.option("--json", "as_json", is_flag=True, help="Print a JSON summary instead of hex")
@private_key_option
@click.pass_context
def multisig(ctx, threshold, weights, addresses, nonce, fee_price, as_json, private_key):
    """Build and sign a create-multisig transaction."""
    config = ctx.obj["config"]
    if len(weights) != len(addresses):
        raise click.UsageError("Give exactly one --weight per --address.")
    try:
        tx = Transaction.build(
            TxType.CREATE_MULTISIG,
            {
                "threshold": threshold,
                "weights": list(weights),
                "addresses": list(addresses),
            },
            nonce=nonce,
            fee_price=config.tx.fee_price if fee_price is None else fee_price,
        )
        tx.sign(private_key)
    except MinterTxError as e:
        _fail(str(e))
    _emit(tx, as_json)


@cli.command()
@click.argument("raw_tx")
def decode(raw_tx):
    """Decode a hex transaction and print its fields as JSON."""
    try:
        tx = Transaction.from_hex(raw_tx)
    except MinterTxError as e:
        _fail(str(e))
    click.echo(json_mod.dumps(describe_transaction(tx), indent=2))


@cli.command()
@click.argument("raw_tx")
def verify(raw_tx):
    """Check a hex transaction's signature. Exits 1 if it is invalid."""
    try:
        tx = Transaction.from_hex(raw_tx)
    except MinterTxError as e:
        _fail(str(e))
    result = tx.validate()
    if not result.ok:
        _fail(f"Invalid transaction: {result}")
    click.echo(f"Valid. Sender: {tx.sender}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
