import asyncio, os, time
import click
from rich.console import Console
from rich.progress import (
    Progress, BarColumn, TextColumn, TimeElapsedColumn,
    TimeRemainingColumn, MofNCompleteColumn, SpinnerColumn
)
from rich.table import Table

from .adapters.parquet_sink import ParquetEventSink
from .application.client import Web3
from .application.planning import plan_chunks
from .application.scan import scan_events
from .config import get_settings
from .domain.errors import Web3Error
from .log import configure_logging

console = Console()


def _run(make_coro):
    """Build a client from the group options, run one coroutine, close the client."""
    ctx = click.get_current_context()
    settings = ctx.obj

    async def main():
        async with Web3.from_settings(settings) as web3:
            return await make_coro(web3)

    try:
        return asyncio.run(main())
    except Web3Error as e:
        raise click.ClickException(f"{type(e).__name__}: {e}")


def _hex_bytes(s: str) -> bytes:
    h = s[2:] if s[:2].lower() == "0x" else s
    return bytes.fromhex(h)


@click.group()
@click.option("--rpc", default=None, help="RPC endpoint URL [env LIGHTWEB3_RPC_URL]")
@click.option("--chain-id", type=int, default=None, help="Chain id used for signing [env LIGHTWEB3_CHAIN_ID]")
@click.option("--log-level", default=None, help="Log level [env LIGHTWEB3_LOG_LEVEL]")
@click.pass_context
def cli(ctx, rpc, chain_id, log_level):
    """lightweb3 — event waits, log scans and transactions over Ethereum JSON-RPC."""
    settings = get_settings()
    if rpc: settings.rpc_url = rpc
    if chain_id is not None: settings.chain_id = chain_id
    if log_level: settings.log_level = log_level
    configure_logging(settings.log_level)
    ctx.obj = settings


@cli.command("block-number")
def block_number_cmd():
    """Print the latest and finalized block numbers."""
    async def go(web3: Web3):
        return await asyncio.gather(web3.eth_block_number(), web3.eth_get_finalized_block_number())
    latest, finalized = _run(go)
    console.print(f"[bold]latest[/]={latest:,}  [bold]finalized[/]={finalized:,}")


@cli.command("chain-id")
def chain_id_cmd():
    """Print the chain id reported by the node."""
    async def go(web3: Web3):
        return await web3.eth_chain_id()
    console.print(int(_run(go)))


@cli.command("balance")
@click.argument("address")
def balance_cmd(address):
    """Print the balance of ADDRESS in wei."""
    async def go(web3: Web3):
        return await web3.eth_get_balance(address)
    console.print(f"{int(_run(go))}")


@cli.command("scan-events")
@click.option("--contract", "contracts", multiple=True, required=True, help="Emitter contract address; repeat for several")
@click.option("--event", "events", multiple=True, required=True, help="Event signature, e.g. 'Transfer(address,address,uint256)'; repeat to OR")
@click.option("--from-block", type=int, required=True)
@click.option("--to-block", type=int, default=None, help="Defaults to the finalized block")
@click.option("--step", type=int, default=1_000, show_default=True, help="Blocks per request")
@click.option("--concurrency", type=int, default=8, show_default=True, help="Max parallel requests")
@click.option("--parquet-out", type=str, default="", help="Directory for one Parquet file per chunk")
def scan_events_cmd(contracts, events, from_block, to_block, step, concurrency, parquet_out):
    """Fetch historical logs for one or more event signatures over a block range."""
    sink = ParquetEventSink(parquet_out) if parquet_out else None

    async def go(web3: Web3):
        end = to_block if to_block is not None else await web3.eth_get_finalized_block_number()
        total = len(plan_chunks(from_block, end, step))
        progress = Progress(SpinnerColumn(),
                            TextColumn("[bold]scanning[/]"),
                            BarColumn(),
                            MofNCompleteColumn(),
                            TextColumn("•"),
                            TimeElapsedColumn(),
                            TextColumn("→"),
                            TimeRemainingColumn(),
                            TextColumn(" • {task.description}"),
                            console=console,
                            expand=True,
                            )
        with progress:
            task = progress.add_task(description=f"{from_block:,}-{end:,}", total=total)
            return await scan_events(
                web3=web3, sink=sink, addresses=list(contracts), signatures=list(events),
                start_block=from_block, end_block=end, step=step, concurrency=concurrency,
                on_chunk=lambda _c, _n: progress.advance(task, 1),
            )

    t0 = time.time()
    s = _run(go)
    console.print(f"[bold]done[/]: {s.total_logs} logs • {time.time() - t0:.2f}s")
    console.print(
        f"[bold]summary[/]: "
        f"[green]processed_ok[/]={s.processed_ok}  "
        f"[red]processed_failed[/]={s.processed_failed}  "
        f"[yellow]split[/]={s.split_chunks}"
    )
    for fb, tb, err in s.failed:
        console.print(f"[red]failed[/] {fb}-{tb}: {err}")


@cli.command("wait-event")
@click.option("--contract", "contracts", multiple=True, required=True)
@click.option("--event", required=True, help="Event signature")
@click.option("--timeout", type=float, default=60.0, show_default=True, help="Seconds to wait")
@click.option("--stateless/--filter", default=False, show_default=True,
              help="Sleep the whole timeout then query once instead of polling a filter")
def wait_event_cmd(contracts, event, timeout, stateless):
    """Block until EVENT is emitted by one of the contracts."""
    async def go(web3: Web3):
        if stateless:
            return await web3.wait_for_event_alt(timeout, list(contracts), event)
        return await web3.wait_for_event(timeout, list(contracts), event)
    log = _run(go)
    table = Table(show_header=False)
    table.add_row("address", log.address)
    table.add_row("block", str(log.block_number))
    table.add_row("tx", "" if log.tx_hash is None else f"0x{log.tx_hash:064x}")
    for i, t in enumerate(log.topics):
        table.add_row(f"topic{i}", "0x" + t.hex())
    table.add_row("data", "0x" + log.data.hex())
    console.print(table)


@cli.command("wait-tx")
@click.argument("tx_hash")
def wait_tx_cmd(tx_hash):
    """Block until the node knows TX_HASH (no timeout)."""
    async def go(web3: Web3):
        return await web3.wait_for_transaction(_hex_bytes(tx_hash).rjust(32, b"\x00"))
    tx = _run(go)
    state = "pending" if tx.is_pending else f"block {tx.block_number:,}"
    console.print(f"[bold]{tx.hash.to_rpc()}[/] {state}")


@cli.command("send")
@click.option("--to", "to_address", required=True, help="Recipient address")
@click.option("--value", type=int, default=0, show_default=True, help="Amount in wei")
@click.option("--data", default="0x", show_default=True, help="Call data as hex")
@click.option("--key-env", default="LIGHTWEB3_PRIVATE_KEY", show_default=True,
              help="Environment variable holding the sender's private key")
@click.option("--wait", "wait_s", type=float, default=None, help="Also wait up to this many seconds for the tx")
def send_cmd(to_address, value, data, key_env, wait_s):
    """Sign a transaction for the configured chain id and broadcast it."""
    from eth_account import Account

    key = os.environ.get(key_env)
    if not key:
        raise click.UsageError(f"set {key_env} to the sender's private key")
    sender = Account.from_key(key).address

    async def go(web3: Web3):
        return await web3.send_transaction(to_address, _hex_bytes(data), value, sender, key, wait_timeout=wait_s)
    try:
        tx_hash = _run(go)
    except TimeoutError:
        raise click.ClickException(f"transaction sent but not seen within {wait_s}s")
    console.print(tx_hash.to_rpc())


if __name__ == "__main__":
    cli()
