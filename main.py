"""CLI entry point: python main.py accounts"""

import argparse
import asyncio
import logging
import sys

from src.brokerage import (
    BrokerageError,
    ConfigError,
    OrderAction,
    OrderRequest,
    OrderType,
)
from src.logging_config import LoggingConfig, LogLevel, configure_logging
from src.oauth import run_authorization_flow
from src.schwab import SchwabBrokerage
from src.settings import load_settings

logger = logging.getLogger("money_pies")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="money-pies - Schwab account and order tool"
    )
    parser.add_argument(
        "--config", default=None,
        help="JSON client config file (default: $CONFIG_FILE_LOCATION or SCHWAB_* env vars)"
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Enable debug logging"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    auth = sub.add_parser("auth", help="Run the interactive OAuth flow")
    auth.add_argument(
        "--no-browser", action="store_true",
        help="Print the authorization URL instead of opening a browser"
    )
    auth.add_argument(
        "--force", action="store_true",
        help="Re-authorize even when a valid token is stored"
    )

    sub.add_parser("accounts", help="List accounts and balances")

    positions = sub.add_parser("positions", help="List positions for an account")
    positions.add_argument("account_id")

    orders = sub.add_parser("orders", help="List recent orders for an account")
    orders.add_argument("account_id")
    orders.add_argument("--limit", type=int, default=10)

    status = sub.add_parser("order-status", help="Show one order")
    status.add_argument("account_id")
    status.add_argument("order_id")

    cancel = sub.add_parser("cancel", help="Cancel a pending order")
    cancel.add_argument("account_id")
    cancel.add_argument("order_id")

    place = sub.add_parser("place", help="Submit an equity order")
    place.add_argument("account_id")
    place.add_argument("action", choices=[a.value for a in OrderAction])
    place.add_argument("symbol")
    place.add_argument("quantity", type=float)
    place.add_argument(
        "--limit-price", type=float, default=None,
        help="Submit a limit order at this price (default: market order)"
    )

    quote = sub.add_parser("quote", help="Show the quote for a symbol")
    quote.add_argument("symbol")

    return parser


async def _authorize(broker: SchwabBrokerage, settings, args) -> None:
    if broker.is_authenticated() and not args.force:
        print("already authenticated")
        return
    credential = await run_authorization_flow(
        broker.session, settings, open_browser=not args.no_browser,
    )
    print(f"OAuth2.0 flow complete (token expires {credential.expires_at:%Y-%m-%d %H:%M:%S %Z})")


async def run(args: argparse.Namespace, settings) -> int:
    async with SchwabBrokerage.from_settings(settings) as broker:
        if args.command == "auth":
            await _authorize(broker, settings, args)

        elif args.command == "accounts":
            accounts = await broker.get_accounts()
            print(f"{'Account':<12} {'Type':<10} {'Cash':>14} {'Market Value':>14} "
                  f"{'Total':>14} {'Buying Power':>14}")
            for a in accounts:
                print(f"{a.account_number:<12} {a.account_type:<10} {a.cash_balance:>14,.2f} "
                      f"{a.market_value:>14,.2f} {a.total_value:>14,.2f} {a.buying_power:>14,.2f}")

        elif args.command == "positions":
            positions = await broker.get_positions(args.account_id)
            print(f"{'Symbol':<8} {'Qty':>10} {'Avg':>10} {'Price':>10} {'Value':>12} "
                  f"{'P/L':>12} {'P/L %':>8} {'Day P/L':>12}")
            for p in positions:
                print(f"{p.symbol:<8} {p.quantity:>10,.2f} {p.average_price:>10,.2f} "
                      f"{p.current_price:>10,.2f} {p.market_value:>12,.2f} "
                      f"{p.unrealized_pl:>12,.2f} {p.unrealized_pl_pct:>7.2f}% {p.day_pl:>12,.2f}")

        elif args.command == "orders":
            for o in await broker.get_recent_orders(args.account_id, args.limit):
                _print_order(o)

        elif args.command == "order-status":
            _print_order(await broker.get_order_status(args.account_id, args.order_id))

        elif args.command == "cancel":
            await broker.cancel_pending_order(args.account_id, args.order_id)
            print(f"cancelled order {args.order_id}")

        elif args.command == "place":
            request = OrderRequest(
                symbol=args.symbol.upper(),
                action=OrderAction(args.action),
                quantity=args.quantity,
                order_type=OrderType.MARKET if args.limit_price is None else OrderType.LIMIT,
                limit_price=args.limit_price,
            )
            order = await broker.place_order(args.account_id, request)
            _print_order(order)

        elif args.command == "quote":
            quote = await broker.get_quote(args.symbol.upper())
            for key, value in quote.items():
                print(f"{key}: {value}")

    return 0


def _print_order(o) -> None:
    action = o.action.value.upper() if o.action else "?"
    order_type = o.order_type.value.upper() if o.order_type else "?"
    submitted = f"{o.submitted_at:%Y-%m-%d %H:%M}" if o.submitted_at else "-"
    print(f"{o.order_id or '(unknown id)':<14} {submitted:<16} {action:<5} {order_type:<7} "
          f"{o.symbol:<8} {o.filled_quantity:g}/{o.quantity:g} @ {o.filled_price:,.2f} "
          f"[{o.status.value}]")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(LoggingConfig(level=LogLevel.DEBUG if args.verbose else LogLevel.INFO))

    try:
        settings = load_settings(args.config)
        return asyncio.run(run(args, settings))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except BrokerageError as e:
        logger.error("%s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
