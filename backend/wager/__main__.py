"""Wager CLI entry point."""

import argparse
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from wager import __version__
from wager.clock import ManualClock
from wager.config import Settings, get_settings
from wager.engine import WagerEngine
from wager.exceptions import WagerError
from wager.ledger import InMemoryLedger
from wager.models import Bet
from wager.storage import (
    capture_snapshot,
    load_snapshot,
    log_events,
    read_events,
    restore_engine,
    save_snapshot,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

EngineOperation = Callable[[WagerEngine, InMemoryLedger, ManualClock], Any]
Command = Callable[[argparse.Namespace], int]
SettingsCommand = Callable[[argparse.Namespace, Settings], int]


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from wager.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def _run(settings: Settings, operation: EngineOperation, persist: bool = True) -> Any:
    """Load the snapshot, apply one operation, then save and journal it.

    Nothing is written when the operation raises.
    """
    snapshot = load_snapshot(settings)
    engine, ledger, clock = restore_engine(snapshot, settings.engine)
    first_new_event = len(engine.state.events)

    result = operation(engine, ledger, clock)

    if persist:
        save_snapshot(capture_snapshot(engine, ledger, clock), settings)
        log_events(engine.events_since(first_new_event), settings)
    return result


def _print_bet(bet: Bet) -> None:
    print(f"\n=== Bet #{bet.id} ===\n")
    print(f"  Description: {bet.description}")
    print(f"  Status: {bet.status.value.upper()}")
    print(f"  Creator: {bet.creator} (backs {bet.creator_side})")
    print(f"  Opponent: {bet.opponent or '-'}")
    print(f"  Stake: {bet.stake:,} per side")
    print(f"  Created at height: {bet.created_at}")
    print(f"  Expires at height: {bet.expires_at}")
    if bet.resolved_at is not None:
        print(f"  Outcome: {bet.outcome}")
        print(f"  Winner: {bet.winner}")
        print(f"  Resolved at height: {bet.resolved_at}")
    print()


def _command(title: str) -> Callable[[SettingsCommand], Command]:
    """Wrap a command with settings loading and uniform error reporting."""

    def decorator(func: SettingsCommand) -> Command:
        def wrapper(args: argparse.Namespace) -> int:
            try:
                return func(args, get_settings())
            except WagerError as e:
                print(f"\n❌ {title} failed: {e} (code {e.code})\n")
                return 1
            except ValidationError as e:
                print("\n❌ Configuration Error:\n")
                for error in e.errors():
                    print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
                print()
                return 1
            except FileNotFoundError as e:
                print(f"\n❌ {e}\n")
                return 1
            except Exception as e:
                logger.error(f"{title} failed: {e}", exc_info=True)
                print(f"\n❌ {title} failed: {e}\n")
                return 1

        wrapper.__doc__ = func.__doc__
        return wrapper

    return decorator


# ============================================================================
# Setup commands
# ============================================================================


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory, configuration and engine state."""
    try:
        settings = get_settings()
        data_dir = settings.data_dir
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_template = {
                "engine": settings.engine.model_dump(),
                "ledger": settings.ledger.model_dump(),
            }
            with open(config_path, "w", encoding="utf-8") as f:
                f.write("# Wager Configuration\n# Secrets belong in .env, not here.\n\n")
                yaml.dump(config_template, f, default_flow_style=False, sort_keys=False)
            logger.info(f"Created config file: {config_path}")

        state_path = data_dir / "state.yaml"
        if not state_path.exists():
            save_snapshot(load_snapshot(settings), settings)
            logger.info(f"Created state file: {state_path}")

        print(f"\n✓ Initialized Wager data directory at {data_dir}\n")
        return 0

    except Exception as e:
        logger.error(f"Initialization failed: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


@_command("Config")
def cmd_config(args: argparse.Namespace, settings: Settings) -> int:
    """Display merged configuration."""
    engine = settings.engine
    print("\n=== Wager Configuration ===\n")
    print(f"Data Directory: {settings.data_dir}\n")
    print("Engine:")
    print(f"  Owner: {engine.owner}")
    print(f"  Resolver: {engine.resolver_account}")
    print(f"  Engine Account: {engine.engine_account}")
    print(f"  Default Fee Rate: {engine.fee_rate_bps} bps")
    print(f"  Max Fee Rate: {engine.max_fee_rate_bps} bps")
    print(f"  Max Description Length: {engine.max_description_length}\n")
    print(f"Ledger Accounts Seeded: {len(settings.ledger.initial_balances)}")
    print(f"Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
    return 0


@_command("Status")
def cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    """Display engine totals."""

    def show(engine: WagerEngine, ledger: InMemoryLedger, clock: ManualClock) -> bool:
        print("\n=== Wager Engine Status ===\n")
        print(f"  Height: {clock.height}")
        print(f"  Next Bet Id: {engine.get_next_bet_id()}")
        print(f"  Fee Rate: {engine.get_fee_rate()} bps")
        print(f"  Accrued Fees: {engine.get_total_fees():,}")
        print(f"  Escrow Held: {engine.escrow.total():,}")
        print(f"  Contract Balance: {engine.get_contract_balance():,}")
        healthy = engine.audit()
        print(f"  Conservation: {'✓ OK' if healthy else '✗ MISMATCH'}\n")
        return healthy

    return 0 if _run(settings, show, persist=False) else 1


@_command("Deposit")
def cmd_deposit(args: argparse.Namespace, settings: Settings) -> int:
    """Credit a local ledger account."""
    balance = _run(settings, lambda engine, ledger, clock: ledger.deposit(args.account, args.amount))
    print(f"\n✓ {args.account} balance: {balance:,}\n")
    return 0


@_command("Advance")
def cmd_advance(args: argparse.Namespace, settings: Settings) -> int:
    """Advance the logical clock."""
    height = _run(settings, lambda engine, ledger, clock: clock.advance(args.blocks))
    print(f"\n✓ Height is now {height}\n")
    return 0


@_command("Balance")
def cmd_balance(args: argparse.Namespace, settings: Settings) -> int:
    """Show a ledger balance."""
    balance = _run(settings, lambda engine, ledger, clock: ledger.balance(args.account), persist=False)
    print(f"\n{args.account}: {balance:,}\n")
    return 0


# ============================================================================
# Bet lifecycle commands
# ============================================================================


@_command("Create")
def cmd_create(args: argparse.Namespace, settings: Settings) -> int:
    """Open a new bet."""
    bet_id = _run(
        settings,
        lambda engine, ledger, clock: engine.create(
            args.description, args.stake, args.side, args.duration, args.caller
        ),
    )
    print(f"\n✓ Created bet #{bet_id}\n")
    return 0


@_command("Accept")
def cmd_accept(args: argparse.Namespace, settings: Settings) -> int:
    """Accept an open bet."""
    _run(settings, lambda engine, ledger, clock: engine.accept(args.bet_id, args.caller))
    print(f"\n✓ {args.caller} accepted bet #{args.bet_id}\n")
    return 0


@_command("Resolve")
def cmd_resolve(args: argparse.Namespace, settings: Settings) -> int:
    """Resolve an accepted bet."""
    caller = args.caller or settings.engine.resolver_account
    winner = _run(settings, lambda engine, ledger, clock: engine.resolve(args.bet_id, args.outcome, caller))
    print(f"\n✓ Bet #{args.bet_id} resolved, winner: {winner}\n")
    return 0


@_command("Cancel")
def cmd_cancel(args: argparse.Namespace, settings: Settings) -> int:
    """Cancel an open bet as its creator."""
    _run(settings, lambda engine, ledger, clock: engine.cancel(args.bet_id, args.caller))
    print(f"\n✓ Bet #{args.bet_id} cancelled\n")
    return 0


@_command("Cancel expired")
def cmd_cancel_expired(args: argparse.Namespace, settings: Settings) -> int:
    """Cancel an expired open bet."""
    _run(settings, lambda engine, ledger, clock: engine.cancel_expired(args.bet_id, args.caller))
    print(f"\n✓ Expired bet #{args.bet_id} cancelled and refunded\n")
    return 0


@_command("Set fee rate")
def cmd_set_fee_rate(args: argparse.Namespace, settings: Settings) -> int:
    """Change the platform fee rate."""
    caller = args.caller or settings.engine.owner
    _run(settings, lambda engine, ledger, clock: engine.set_fee_rate(args.rate_bps, caller))
    print(f"\n✓ Fee rate set to {args.rate_bps} bps\n")
    return 0


@_command("Withdraw fees")
def cmd_withdraw_fees(args: argparse.Namespace, settings: Settings) -> int:
    """Withdraw accrued fees to the owner."""
    caller = args.caller or settings.engine.owner
    _run(settings, lambda engine, ledger, clock: engine.withdraw_fees(args.amount, caller))
    print(f"\n✓ Withdrew {args.amount:,} in fees\n")
    return 0


# ============================================================================
# Read commands
# ============================================================================


@_command("Bet")
def cmd_bet(args: argparse.Namespace, settings: Settings) -> int:
    """Show one bet."""
    bet = _run(settings, lambda engine, ledger, clock: engine.get_bet(args.bet_id), persist=False)
    if bet is None:
        print(f"\n❌ Bet #{args.bet_id} not found\n")
        return 1
    _print_bet(bet)
    return 0


@_command("Stats")
def cmd_stats(args: argparse.Namespace, settings: Settings) -> int:
    """Show per-account statistics."""
    stats = _run(settings, lambda engine, ledger, clock: engine.get_user_stats(args.account), persist=False)
    if stats is None:
        print(f"\n{args.account} has not placed any bets\n")
        return 0
    print(f"\n=== Stats for {args.account} ===\n")
    print(f"  Bets Entered: {stats.total_bets}")
    print(f"  Bets Won: {stats.bets_won}")
    print(f"  Total Wagered: {stats.total_wagered:,}")
    print(f"  Total Won: {stats.total_won:,}\n")
    return 0


@_command("History")
def cmd_history(args: argparse.Namespace, settings: Settings) -> int:
    """Show the journaled events of one bet."""
    events = read_events(bet_id=args.bet_id, settings=settings)
    if not events:
        print(f"\nNo events for bet #{args.bet_id}\n")
        return 0
    print(f"\n=== History of Bet #{args.bet_id} ===\n")
    for event in events:
        extra = f" -> {event.counterparty}" if event.counterparty else ""
        print(f"  [{event.height}] {event.kind:<10} by {event.actor} amount={event.amount:,}{extra}")
    print()
    return 0


def _parse_side(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "yes", "1"):
        return True
    if lowered in ("false", "no", "0"):
        return False
    raise argparse.ArgumentTypeError(f"expected true/false, got {value!r}")


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Wager: peer-to-peer betting escrow engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Wager {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser("init", help="Initialize data directory and configuration files")
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser("config", help="Display merged configuration")
    parser_config.set_defaults(func=cmd_config)

    parser_status = subparsers.add_parser("status", help="Display engine totals and run the conservation audit")
    parser_status.set_defaults(func=cmd_status)

    parser_deposit = subparsers.add_parser("deposit", help="Credit a local ledger account")
    parser_deposit.add_argument("account")
    parser_deposit.add_argument("amount", type=int)
    parser_deposit.set_defaults(func=cmd_deposit)

    parser_advance = subparsers.add_parser("advance", help="Advance the logical clock")
    parser_advance.add_argument("blocks", type=int, nargs="?", default=1)
    parser_advance.set_defaults(func=cmd_advance)

    parser_balance = subparsers.add_parser("balance", help="Show a ledger balance")
    parser_balance.add_argument("account")
    parser_balance.set_defaults(func=cmd_balance)

    parser_create = subparsers.add_parser("create", help="Open a new bet")
    parser_create.add_argument("description")
    parser_create.add_argument("--stake", type=int, required=True, help="Stake per side")
    parser_create.add_argument("--side", type=_parse_side, required=True, help="Proposition value the creator backs")
    parser_create.add_argument("--duration", type=int, required=True, help="Blocks until the bet expires")
    parser_create.add_argument("--as", dest="caller", required=True, help="Creator account")
    parser_create.set_defaults(func=cmd_create)

    parser_accept = subparsers.add_parser("accept", help="Accept an open bet")
    parser_accept.add_argument("bet_id", type=int)
    parser_accept.add_argument("--as", dest="caller", required=True, help="Accepting account")
    parser_accept.set_defaults(func=cmd_accept)

    parser_resolve = subparsers.add_parser("resolve", help="Resolve an accepted bet")
    parser_resolve.add_argument("bet_id", type=int)
    parser_resolve.add_argument("--outcome", type=_parse_side, required=True)
    parser_resolve.add_argument("--as", dest="caller", help="Resolver account (default: configured resolver)")
    parser_resolve.set_defaults(func=cmd_resolve)

    parser_cancel = subparsers.add_parser("cancel", help="Cancel an open bet as its creator")
    parser_cancel.add_argument("bet_id", type=int)
    parser_cancel.add_argument("--as", dest="caller", required=True, help="Creator account")
    parser_cancel.set_defaults(func=cmd_cancel)

    parser_cancel_expired = subparsers.add_parser("cancel-expired", help="Cancel an expired open bet")
    parser_cancel_expired.add_argument("bet_id", type=int)
    parser_cancel_expired.add_argument("--as", dest="caller", required=True, help="Calling account")
    parser_cancel_expired.set_defaults(func=cmd_cancel_expired)

    parser_fee_rate = subparsers.add_parser("set-fee-rate", help="Change the platform fee rate")
    parser_fee_rate.add_argument("rate_bps", type=int)
    parser_fee_rate.add_argument("--as", dest="caller", help="Owner account (default: configured owner)")
    parser_fee_rate.set_defaults(func=cmd_set_fee_rate)

    parser_withdraw = subparsers.add_parser("withdraw-fees", help="Withdraw accrued fees to the owner")
    parser_withdraw.add_argument("amount", type=int)
    parser_withdraw.add_argument("--as", dest="caller", help="Owner account (default: configured owner)")
    parser_withdraw.set_defaults(func=cmd_withdraw_fees)

    parser_bet = subparsers.add_parser("bet", help="Show one bet")
    parser_bet.add_argument("bet_id", type=int)
    parser_bet.set_defaults(func=cmd_bet)

    parser_stats = subparsers.add_parser("stats", help="Show per-account statistics")
    parser_stats.add_argument("account")
    parser_stats.set_defaults(func=cmd_stats)

    parser_history = subparsers.add_parser("history", help="Show the journaled events of one bet")
    parser_history.add_argument("bet_id", type=int)
    parser_history.set_defaults(func=cmd_history)

    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    _init_logfire()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
