"""
Configuration loading and validation for the cross-DEX pair scanner.

The YAML file describes the scanned pair and the venues; a handful of
environment variables (read from ``.env`` by the CLI) override the tunables.
"""

import os
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from pair_arbitrage.exceptions import ConfigurationError
from pair_arbitrage.retry import BACKOFF_STRATEGIES, RetryPolicy

from .types import ExchangeDescriptor, TokenInfo

DEFAULT_CONFIG_PATH = "configs/polygon_weth_usdc.yaml"

# Environment variable -> (config field, parser)
ENV_OVERRIDES = {
    "RPC_URL": ("rpc_url", str),
    "POLL_INTERVAL_MS": ("poll_interval_sec", lambda v: float(v) / 1000.0),
    "GAS_USD_ESTIMATE": ("gas_usd_per_leg", lambda v: Decimal(v)),
    "MIN_PROFIT_THRESHOLD": ("min_profit_threshold", lambda v: Decimal(v)),
    "TRADE_AMOUNT": ("trade_size", lambda v: Decimal(v)),
    "DB_PATH": ("db_path", str),
    "PORT": ("api_port", int),
}


@dataclass(frozen=True)
class ScannerConfig:
    """
    Immutable scanner configuration, passed explicitly to every component.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint (only needed for scanning)
        base_token: Asset being bought and sold (e.g., WETH)
        quote_token: Asset prices are expressed in (e.g., USDC)
        exchanges: Venues with a pool for the pair, in scan order
        poll_interval_sec: Seconds between scan triggers
        gas_usd_per_leg: Gas cost per swap, in quote units
        min_profit_threshold: Net profit a direction must exceed to count as profitable
        trade_size: Base asset amount simulated per direction
        pair_delay_sec: Pause after each exchange-pair evaluation
        pair_concurrency: Exchange pairs evaluated at once (1 = sequential)
        retry_max_attempts: Read attempts per pool before giving up
        retry_backoff_sec: Backoff step between read attempts
        retry_strategy: Backoff schedule, "linear" (attempt * step) or "exponential"
        db_path: SQLite database file
        api_host: Read API bind host
        api_port: Read API port
        once: Run a single pass and exit
    """

    base_token: TokenInfo
    quote_token: TokenInfo
    exchanges: Tuple[ExchangeDescriptor, ...]
    rpc_url: str = ""
    poll_interval_sec: float = 5.0
    gas_usd_per_leg: Decimal = Decimal("2.0")
    min_profit_threshold: Decimal = Decimal("1.0")
    trade_size: Decimal = Decimal("1")
    pair_delay_sec: float = 0.5
    pair_concurrency: int = 1
    retry_max_attempts: int = 3
    retry_backoff_sec: float = 1.0
    retry_strategy: str = "linear"
    db_path: str = "arbitrage_bot.db"
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    once: bool = False

    @property
    def pair_name(self) -> str:
        return f"{self.base_token.symbol}/{self.quote_token.symbol}"

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy.from_strategy(
            self.retry_strategy, self.retry_max_attempts, self.retry_backoff_sec
        )

    def require_rpc_url(self) -> str:
        if not self.rpc_url:
            raise ConfigurationError("rpc_url is required for scanning (config or RPC_URL)")
        return self.rpc_url


def _get_required(d: Dict, key: str, expected_type: type, where: str = "config") -> Any:
    """Get required config field with type validation."""
    if key not in d or d[key] is None:
        raise ConfigurationError(f"Missing required {where} field: {key}")
    val = d[key]
    # bool is an int subclass
    if not isinstance(val, expected_type) or (
        isinstance(val, bool) and expected_type is not bool
    ):
        raise ConfigurationError(
            f"{where} field '{key}' must be {expected_type.__name__}, got {type(val).__name__}"
        )
    return val


def _to_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool):
        raise ConfigurationError(f"'{field_name}' must be numeric, got bool")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(f"'{field_name}' must be numeric: {value!r}") from e


def _to_number(value: Any, field_name: str, cast: type) -> Any:
    """Coerce an optional numeric field with ``cast`` (int or float)."""
    if isinstance(value, bool):
        raise ConfigurationError(f"'{field_name}' must be numeric, got bool")
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"'{field_name}' must be {cast.__name__}: {value!r}"
        ) from e


def _get_section(config_dict: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = config_dict.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"{key} must be a dict, got {type(section).__name__}")
    return section


def _parse_token(raw: Any, role: str) -> TokenInfo:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"pair.{role} must be a dict")

    where = f"pair.{role}"
    symbol = _get_required(raw, "symbol", str, where)
    address = _get_required(raw, "address", str, where)
    decimals = _get_required(raw, "decimals", int, where)
    if decimals < 0:
        raise ConfigurationError(f"{where}.decimals must be >= 0: {decimals}")

    return TokenInfo(symbol=symbol, address=address, decimals=decimals)


def _parse_exchanges(exchanges_raw: Any) -> Tuple[ExchangeDescriptor, ...]:
    """Parse and validate the exchange list."""
    if not isinstance(exchanges_raw, list):
        raise ConfigurationError("exchanges must be a list")

    exchanges: List[ExchangeDescriptor] = []
    seen = set()
    for i, ex in enumerate(exchanges_raw):
        if not isinstance(ex, dict):
            raise ConfigurationError(f"Exchange config {i} must be a dict")

        where = f"exchange {i}"
        ex_id = _get_required(ex, "id", str, where)
        if ex_id in seen:
            raise ConfigurationError(f"Duplicate exchange id: {ex_id}")
        seen.add(ex_id)

        pool_address = _get_required(ex, "pool_address", str, where)

        if "fee" in ex:
            fee = _to_decimal(ex["fee"], f"{ex_id}.fee")
        elif "fee_bps" in ex:
            fee = _to_decimal(ex["fee_bps"], f"{ex_id}.fee_bps") / Decimal(10_000)
        else:
            raise ConfigurationError(f"Exchange '{ex_id}' missing 'fee' or 'fee_bps'")

        if fee < 0 or fee >= 1:
            raise ConfigurationError(f"Exchange '{ex_id}' fee must be in [0, 1): {fee}")

        exchanges.append(
            ExchangeDescriptor(
                id=ex_id,
                name=str(ex.get("name", ex_id)),
                pool_address=pool_address,
                fee=fee,
            )
        )

    if len(exchanges) < 2:
        raise ConfigurationError("At least two exchanges are required to look for arbitrage")

    return tuple(exchanges)


def parse_config(config_dict: Dict[str, Any]) -> ScannerConfig:
    """
    Build a ScannerConfig from a loaded YAML dictionary.

    Raises:
        ConfigurationError: If required fields are missing or invalid
    """
    pair = _get_required(config_dict, "pair", dict)
    base_token = _parse_token(pair.get("base"), "base")
    quote_token = _parse_token(pair.get("quote"), "quote")
    if base_token.address.lower() == quote_token.address.lower():
        raise ConfigurationError("pair.base and pair.quote must be different tokens")

    exchanges = _parse_exchanges(config_dict.get("exchanges", []))

    retry = _get_section(config_dict, "retry")
    api = _get_section(config_dict, "api")

    rpc_url = config_dict.get("rpc_url", "") or ""
    if not isinstance(rpc_url, str):
        raise ConfigurationError("rpc_url must be a string")

    config = ScannerConfig(
        rpc_url=rpc_url,
        base_token=base_token,
        quote_token=quote_token,
        exchanges=exchanges,
        poll_interval_sec=_to_number(
            config_dict.get("poll_interval_sec", 5.0), "poll_interval_sec", float
        ),
        gas_usd_per_leg=_to_decimal(config_dict.get("gas_usd_per_leg", "2.0"), "gas_usd_per_leg"),
        min_profit_threshold=_to_decimal(
            config_dict.get("min_profit_threshold", "1.0"), "min_profit_threshold"
        ),
        trade_size=_to_decimal(config_dict.get("trade_size", 1), "trade_size"),
        pair_delay_sec=_to_number(config_dict.get("pair_delay_sec", 0.5), "pair_delay_sec", float),
        pair_concurrency=_to_number(
            config_dict.get("pair_concurrency", 1), "pair_concurrency", int
        ),
        retry_max_attempts=_to_number(retry.get("max_attempts", 3), "retry.max_attempts", int),
        retry_backoff_sec=_to_number(retry.get("backoff_sec", 1.0), "retry.backoff_sec", float),
        retry_strategy=str(retry.get("strategy", "linear")),
        db_path=str(config_dict.get("db_path", "arbitrage_bot.db")),
        api_host=str(api.get("host", "0.0.0.0")),
        api_port=_to_number(api.get("port", 3000), "api.port", int),
        once=bool(config_dict.get("once", False)),
    )
    return validate_config(config)


def validate_config(config: ScannerConfig) -> ScannerConfig:
    """Check numeric ranges that apply after overrides as well."""
    if config.trade_size <= 0:
        raise ConfigurationError(f"trade_size must be positive: {config.trade_size}")
    if config.poll_interval_sec <= 0:
        raise ConfigurationError(
            f"poll_interval_sec must be positive: {config.poll_interval_sec}"
        )
    if config.gas_usd_per_leg < 0:
        raise ConfigurationError(f"gas_usd_per_leg must be >= 0: {config.gas_usd_per_leg}")
    if config.pair_delay_sec < 0:
        raise ConfigurationError(f"pair_delay_sec must be >= 0: {config.pair_delay_sec}")
    if config.pair_concurrency < 1:
        raise ConfigurationError(
            f"pair_concurrency must be >= 1: {config.pair_concurrency}"
        )
    if config.retry_max_attempts < 1:
        raise ConfigurationError(
            f"retry.max_attempts must be >= 1: {config.retry_max_attempts}"
        )
    if config.retry_strategy not in BACKOFF_STRATEGIES:
        raise ConfigurationError(
            f"retry.strategy must be one of {sorted(BACKOFF_STRATEGIES)}: {config.retry_strategy}"
        )
    return config


def apply_env_overrides(
    config: ScannerConfig, env: Optional[Mapping[str, str]] = None
) -> ScannerConfig:
    """
    Apply environment variable overrides (RPC_URL, POLL_INTERVAL_MS, ...).

    Raises:
        ConfigurationError: If an override cannot be parsed
    """
    env = os.environ if env is None else env

    changes: Dict[str, Any] = {}
    for var, (field_name, parse) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            changes[field_name] = parse(raw)
        except (ValueError, InvalidOperation) as e:
            raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e

    if not changes:
        return config
    return validate_config(replace(config, **changes))


def load_config(
    config_path: str, env: Optional[Mapping[str, str]] = None
) -> ScannerConfig:
    """
    Load and validate config from YAML file, then apply environment overrides.

    Args:
        config_path: Path to config YAML file
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated ScannerConfig instance

    Raises:
        ConfigurationError: If config invalid or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config file must contain a YAML dictionary")

    return apply_env_overrides(parse_config(config_dict), env)
