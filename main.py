#!/usr/bin/env python3
"""
paper_broker_sim: main entry point.

Runs a buy-and-hold backtest of one asset through the paper broker and prints
summary metrics.

**Usage**:
    python main.py data/raw/QQQ.csv --symbol QQQ --size 100
    python main.py data/raw/QQQ.csv --symbol QQQ --size 100 --slippage-bps 5 --fee-per-trade 1

Broker defaults (initial deposit, cost models, account model) come from
PAPER_BROKER_* environment variables or `.env`; command-line flags override
them. Logging is configured from LOG_LEVEL / LOG_DIR.
"""

import argparse
import json
from dataclasses import replace
from pathlib import Path

from loguru import logger

from src.backtesting.engine import BacktestParams, run_backtest
from src.config.settings import get_settings
from src.data.feeds import events_from_frames, read_price_csv
from src.data.schemas import Asset, SchemaValidationError
from src.strategies.base import BuyAndHoldPolicy
from src.utils.logging import configure_logging


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Run a buy-and-hold backtest through the paper broker.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("csv_path", type=Path, help="Price CSV (timestamp, closing_price[, OHLCV])")
    parser.add_argument("--symbol", default=None, help="Asset symbol (default: CSV file stem)")
    parser.add_argument("--currency", default=None, help="Asset currency (default: base currency)")
    parser.add_argument("--size", type=float, default=100.0, help="Units to buy (default: 100)")
    parser.add_argument("--initial-deposit", type=float, default=None, help="Starting cash")
    parser.add_argument("--slippage-bps", type=float, default=None, help="Slippage in basis points")
    parser.add_argument("--fee-bps", type=float, default=None, help="Percentage fee in basis points")
    parser.add_argument("--fee-per-trade", type=float, default=None, help="Flat fee per fill")
    parser.add_argument("--no-liquidate", action="store_true", help="Keep positions open at the end")
    parser.add_argument("--json", action="store_true", help="Print metrics as JSON")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Load data, run the backtest, print metrics. Returns a process exit code."""
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.logging)

    overrides = {
        "initial_deposit": args.initial_deposit,
        "slippage_bps": args.slippage_bps,
        "fee_bps": args.fee_bps,
        "fee_per_trade": args.fee_per_trade,
    }
    broker_settings = replace(settings.broker, **{k: v for k, v in overrides.items() if v is not None})

    symbol = args.symbol or args.csv_path.stem.upper()
    asset = Asset(symbol, args.currency or broker_settings.base_currency)

    try:
        frame = read_price_csv(args.csv_path, instrument_name=symbol)
    except (FileNotFoundError, SchemaValidationError) as e:
        logger.error(str(e))
        return 1

    events = events_from_frames({asset: frame})
    params = BacktestParams(
        initial_deposit=broker_settings.initial_deposit,
        base_currency=broker_settings.base_currency,
        slippage_bps=broker_settings.slippage_bps,
        fee_bps=broker_settings.fee_bps,
        fee_per_trade=broker_settings.fee_per_trade,
        account_model=broker_settings.account_model,
        leverage=broker_settings.leverage,
        liquidate_at_end=not args.no_liquidate,
    )
    result = run_backtest(events, BuyAndHoldPolicy(asset, args.size), params)

    metrics = result.metrics
    if args.json:
        print(json.dumps({k: float(v) for k, v in metrics.items()}, indent=2))
        return 0

    print("-" * 60)
    print(f"  Buy and hold {args.size:g} {asset} ({len(events)} events)")
    print("-" * 60)
    print(f"  Total Return:      {metrics['total_return']:>12.2%}")
    print(f"  CAGR:              {metrics['cagr']:>12.2%}")
    print(f"  Sharpe Ratio:      {metrics.get('sharpe_ratio', float('nan')):>12.2f}")
    print(f"  Max Drawdown:      {metrics['max_drawdown']:>12.2%}")
    print(f"  Final Equity:      {metrics['final_equity']:>12,.2f} {params.base_currency}")
    print(f"  Trades:            {metrics['num_trades']:>12,}")
    print(f"  Fees:              {metrics['total_fees']:>12,.2f}")
    print("-" * 60)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
