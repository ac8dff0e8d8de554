import argparse
import asyncio
import sys

from loguru import logger

from xo.context import ClientContext, open_client_context
from xo.core.config import get_settings
from xo.domain import Prediction, PredictionOption
from xo.domain.address import short_address
from xo.domain.eligibility import allowed_actions, displayed_pot, winner
from xo.domain.units import (
    NATIVE_DECIMALS,
    explorer_transaction_url,
    format_timestamp,
    format_token_amount,
)
from xo.errors import XOError
from xo.repositories import ViewSnapshot
from xo.services.prediction_service import CreatePredictionRequest

OPTION_CHOICES = {"A": PredictionOption.OPTION_A, "B": PredictionOption.OPTION_B}
READ_ONLY_COMMANDS = {"open", "tx"}


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _summary_line(record: Prediction) -> str:
    return (
        f"#{record.id:<5} {record.status.label:<9} "
        f"{format_token_amount(displayed_pot(record)):>12}  {record.title}"
    )


def _print_view(name: str, snapshot: ViewSnapshot) -> None:
    if snapshot.error:
        logger.warning("Could not refresh {} view: {}", name, snapshot.error)
    if not snapshot.records:
        print(f"No {name} predictions.")
    for record in snapshot.records:
        print(_summary_line(record))
    for failure in snapshot.failures:
        logger.warning("Skipped prediction {}: {}", failure.prediction_id, failure.cause)
    print(f"({len(snapshot.records)} shown, {snapshot.total} listed by the ledger)")


def _print_submission(context: ClientContext, txid: str) -> None:
    print(f"Submitted: {txid}")
    print(explorer_transaction_url(context.settings.network_config.explorer_url, txid))


async def cmd_status(context: ClientContext, args: argparse.Namespace) -> int:
    ledger = context.ledger
    fee_percent, paused, count = await asyncio.gather(
        ledger.get_platform_fee_percent(), ledger.is_paused(), ledger.get_prediction_count()
    )
    state = context.session.state
    print(f"Network:       {context.settings.network_config.name}")
    print(f"Contract:      {ledger.contract_address}")
    print(f"Predictions:   {count}")
    print(f"Platform fee:  {fee_percent}%")
    print(f"Paused:        {'yes' if paused else 'no'}")
    if not state.is_connected:
        print("Wallet:        not connected")
        return 0
    print(f"Wallet:        {state.address} ({state.mode.value})")
    print(f"Token balance: {format_token_amount(state.token_balance)}")
    print(f"TRX balance:   {format_token_amount(state.native_balance, NATIVE_DECIMALS)}")
    print(f"Admin:         {'yes' if state.is_admin else 'no'}")
    if state.is_admin:
        fees = await ledger.get_accumulated_fees()
        print(f"Unclaimed fees: {format_token_amount(fees)}")
    allowance = await context.gate.current_authorization()
    print(f"Authorized:    {format_token_amount(allowance)}")
    return 0


async def cmd_open(context: ClientContext, args: argparse.Namespace) -> int:
    snapshot = await context.repository.refresh_open(args.offset, args.limit)
    _print_view("open", snapshot)
    return 0


async def cmd_matched(context: ClientContext, args: argparse.Namespace) -> int:
    if not context.session.state.is_admin:
        logger.error("Matched predictions are only listed for the ledger admin")
        return 1
    snapshot = await context.repository.refresh_matched(args.offset, args.limit)
    _print_view("matched", snapshot)
    return 0


async def cmd_mine(context: ClientContext, args: argparse.Namespace) -> int:
    context.session.require_address()
    snapshot = await context.repository.refresh_owned()
    _print_view("owned", snapshot)
    return 0


async def cmd_show(context: ClientContext, args: argparse.Namespace) -> int:
    record = await context.repository.fetch(args.prediction_id)
    quote = await context.service.quote_payout(record)
    now = context.service.now()
    print(f"#{record.id} {record.title} [{record.status.label}]")
    if record.description:
        print(record.description)
    print(f"  A: {record.option_a}")
    print(f"  B: {record.option_b}")
    print(f"Creator:  {short_address(record.creator)} picked {record.option_text(record.creator_choice)}")
    if record.opponent:
        print(
            f"Opponent: {short_address(record.opponent)} picked "
            f"{record.option_text(record.opponent_choice)}"
        )
    print(f"Stake:    {format_token_amount(record.bet_amount)}")
    print(f"Pot:      {format_token_amount(quote.pot)}")
    print(f"Payout:   {format_token_amount(quote.net_payout)} after {quote.fee_percent}% fee")
    print(f"Created:  {format_timestamp(record.created_at)}")
    print(f"Expires:  {format_timestamp(record.expiry_time)}")
    won_by = winner(record)
    if won_by:
        print(f"Winner:   {short_address(won_by)} ({record.option_text(record.winning_option)})")
    actions = allowed_actions(record, context.session.state.identity, now)
    if actions:
        print("Actions:  " + ", ".join(sorted(action.value for action in actions)))
    return 0


async def cmd_create(context: ClientContext, args: argparse.Namespace) -> int:
    request = CreatePredictionRequest(
        title=args.title,
        description=args.description,
        option_a=args.option_a,
        option_b=args.option_b,
        bet_amount=args.amount,
        creator_choice=OPTION_CHOICES[args.choice],
        expiry_hours=args.expiry_hours,
    )
    _print_submission(context, await context.service.create_prediction(request))
    return 0


async def cmd_join(context: ClientContext, args: argparse.Namespace) -> int:
    _print_submission(context, await context.service.join_prediction(args.prediction_id))
    return 0


async def cmd_cancel(context: ClientContext, args: argparse.Namespace) -> int:
    _print_submission(context, await context.service.cancel_prediction(args.prediction_id))
    return 0


async def cmd_claim(context: ClientContext, args: argparse.Namespace) -> int:
    _print_submission(context, await context.service.claim_winnings(args.prediction_id))
    return 0


async def cmd_resolve(context: ClientContext, args: argparse.Namespace) -> int:
    txid = await context.service.resolve_prediction(args.prediction_id, OPTION_CHOICES[args.winner])
    _print_submission(context, txid)
    return 0


async def cmd_refund(context: ClientContext, args: argparse.Namespace) -> int:
    _print_submission(context, await context.service.emergency_refund(args.prediction_id))
    return 0


async def cmd_faucet(context: ClientContext, args: argparse.Namespace) -> int:
    _print_submission(context, await context.service.faucet())
    return 0


async def cmd_tx(context: ClientContext, args: argparse.Namespace) -> int:
    receipt = await context.service.receipt(args.txid)
    if receipt is None:
        print(f"{args.txid}: not found yet")
        return 1
    outcome = "succeeded" if receipt.succeeded else f"failed ({receipt.message})"
    block = receipt.block_number if receipt.confirmed else "pending"
    print(f"{receipt.txid}: {outcome}, block {block}, fee {receipt.fee or 0} sun")
    return 0 if receipt.succeeded else 1


COMMANDS = {
    "status": cmd_status,
    "open": cmd_open,
    "matched": cmd_matched,
    "mine": cmd_mine,
    "show": cmd_show,
    "create": cmd_create,
    "join": cmd_join,
    "cancel": cmd_cancel,
    "claim": cmd_claim,
    "resolve": cmd_resolve,
    "refund": cmd_refund,
    "faucet": cmd_faucet,
    "tx": cmd_tx,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="XO peer-to-peer predictions on TRON")
    parser.add_argument(
        "--simulated",
        action="store_true",
        help="Use the simulated wallet (read-only; it cannot sign transactions)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show ledger and wallet status")
    for name, help_text in (("open", "List open predictions"), ("matched", "List matched predictions (admin)")):
        listing = subparsers.add_parser(name, help=help_text)
        listing.add_argument("--offset", type=int, default=0)
        listing.add_argument("--limit", type=int, default=None, help="Page size override")
    subparsers.add_parser("mine", help="List predictions you created or joined")

    for name, help_text in (
        ("show", "Show one prediction"),
        ("join", "Join an open prediction on the opposite side"),
        ("cancel", "Cancel your open prediction"),
        ("claim", "Claim winnings of a resolved prediction"),
        ("refund", "Refund both sides of a matched prediction (admin)"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("prediction_id", type=int)

    resolve = subparsers.add_parser("resolve", help="Resolve a matched prediction (admin)")
    resolve.add_argument("prediction_id", type=int)
    resolve.add_argument("--winner", choices=sorted(OPTION_CHOICES), required=True)

    create = subparsers.add_parser("create", help="Create a new prediction")
    create.add_argument("--title", required=True)
    create.add_argument("--description", default="")
    create.add_argument("--option-a", required=True)
    create.add_argument("--option-b", required=True)
    create.add_argument("--amount", required=True, help="Stake in whole token units")
    create.add_argument("--choice", choices=sorted(OPTION_CHOICES), required=True)
    create.add_argument("--expiry-hours", type=int, required=True)

    subparsers.add_parser("faucet", help="Request test tokens (testnets only)")
    tx = subparsers.add_parser("tx", help="Look up a submitted transaction")
    tx.add_argument("txid")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    async with open_client_context(settings) as context:
        if args.simulated:
            await context.session.connect_simulated()
        elif context.session.provider is not None and args.command not in READ_ONLY_COMMANDS:
            await context.session.connect_real()
            await context.session.refresh_balances()
        return await COMMANDS[args.command](context, args)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    try:
        return asyncio.run(run(args))
    except (XOError, ValueError) as exc:
        logger.error("{}", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
