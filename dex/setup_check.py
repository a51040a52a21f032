"""
Setup verification for the scanner.

Checks the RPC endpoint, the configured token addresses, every venue's pair
contract and a database read/write before a real run. Each check reports its
own result so one broken venue does not hide the others.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from web3 import Web3

from pair_arbitrage.exceptions import ConfigurationError
from pair_arbitrage.utils import get_current_timestamp_ms, get_logger

from .adapters.v2 import Web3PoolStateSource, connect_web3, price_quote_in_out
from .config import ScannerConfig
from .normalizer import normalize_pool_state
from .store import ResultStore

logger = get_logger(__name__)

CHECK_CONFIG_KEY = "setup_check"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one setup check."""

    name: str
    ok: bool
    detail: str


async def check_rpc(web3: Web3) -> CheckResult:
    """Query chain id and latest block over the sync provider."""
    loop = asyncio.get_running_loop()
    try:
        chain_id, block_number = await asyncio.gather(
            loop.run_in_executor(None, lambda: web3.eth.chain_id),
            loop.run_in_executor(None, lambda: web3.eth.block_number),
        )
    except Exception as e:
        return CheckResult("RPC connection", False, f"RPC connection failed: {e}")
    return CheckResult(
        "RPC connection", True, f"Chain ID {chain_id}, current block {block_number}"
    )


def check_token_addresses(config: ScannerConfig) -> List[CheckResult]:
    results = []
    for token in (config.base_token, config.quote_token):
        name = f"{token.symbol} address"
        if Web3.is_address(token.address):
            checksummed = Web3.to_checksum_address(token.address)
            results.append(CheckResult(name, True, f"{checksummed} (checksummed)"))
        else:
            results.append(CheckResult(name, False, f"Invalid address: {token.address}"))
    return results


async def check_pools(config: ScannerConfig, source: Web3PoolStateSource) -> List[CheckResult]:
    """
    Read every configured pair contract and quote one trade of ``trade_size``.

    A pool passes when it answers token0/token1/getReserves and its tokens
    match the configured pair.
    """
    results = []
    for exchange in config.exchanges:
        name = f"{exchange.id} pool"
        try:
            state = await source.get_pool_state(exchange.pool_address)
            reserves = normalize_pool_state(
                state, config.base_token, config.quote_token, exchange.pool_address
            )
            amount_out, effective_price = price_quote_in_out(
                config.trade_size, reserves.base_reserve, reserves.quote_reserve, exchange.fee
            )
        except Exception as e:
            results.append(CheckResult(name, False, f"Contract call failed: {e}"))
            continue

        base, quote = config.base_token.symbol, config.quote_token.symbol
        results.append(
            CheckResult(
                name,
                True,
                f"Reserves {reserves.base_reserve:.4f} {base} / "
                f"{reserves.quote_reserve:.2f} {quote}, "
                f"{config.trade_size} {base} -> {amount_out:.4f} {quote} "
                f"(effective ${effective_price:.4f})",
            )
        )
    return results


async def check_database(db_path: str) -> CheckResult:
    """Write and read back a bot_config value."""
    token = str(get_current_timestamp_ms())
    try:
        async with ResultStore(db_path) as store:
            await store.set_config_value(CHECK_CONFIG_KEY, token, "Last setup check")
            stored = await store.get_config_value(CHECK_CONFIG_KEY)
    except Exception as e:
        return CheckResult("Database", False, f"Database connection failed: {e}")

    if stored != token:
        return CheckResult("Database", False, f"Read back {stored!r}, expected {token!r}")
    return CheckResult("Database", True, f"Read/write working ({db_path})")


async def run_setup_check(config: ScannerConfig, web3: Optional[Web3] = None) -> List[CheckResult]:
    """
    Run every check; ``web3`` defaults to a client for ``config.rpc_url``.

    Pool checks only run once the RPC endpoint answers.
    """
    results = check_token_addresses(config)

    rpc = None
    if web3 is None:
        try:
            web3 = connect_web3(config.require_rpc_url())
        except (ConfigurationError, ValueError) as e:
            rpc = CheckResult("RPC connection", False, str(e))
    if rpc is None:
        rpc = await check_rpc(web3)
    results.append(rpc)
    if rpc.ok:
        results.extend(await check_pools(config, Web3PoolStateSource(web3)))

    results.append(await check_database(config.db_path))

    failed = [r.name for r in results if not r.ok]
    if failed:
        logger.warning(f"Setup check failed: {', '.join(failed)}")
    return results


def format_check_results(results: List[CheckResult]) -> str:
    lines = [f"{'✅' if r.ok else '❌'} {r.name}: {r.detail}" for r in results]
    passed = sum(1 for r in results if r.ok)
    lines.append("")
    lines.append("=" * 50)
    if passed == len(results):
        lines.append("🎉 ALL CHECKS PASSED")
    else:
        lines.append(f"⚠️  {len(results) - passed} of {len(results)} checks failed")
    return "\n".join(lines)
