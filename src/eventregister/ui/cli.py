# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from eventregister.app import open_register
from eventregister.config import configure_logging
from eventregister.domain.errors import RegistrationError
from eventregister.domain.model import (
    PaymentConfirmation,
    Person,
    RegistrationUpdate,
    Vehicle,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from eventregister.app import EventRegister
    from eventregister.domain.model import Registration

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage event registrations and counters")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser("show", help="Show one participant record")
    show.add_argument("event", help="Event id")
    target = show.add_mutually_exclusive_group(required=True)
    target.add_argument("participant", nargs="?", help="Participant key (email)")
    target.add_argument("--phone", type=str, help="Look the participant up by phone number")

    counters = subparsers.add_parser("counters", help="Show the counters of an event")
    counters.add_argument("event", help="Event id")

    register = subparsers.add_parser("register", help="Register a form submission (JSON)")
    register.add_argument("event", help="Event id")
    register.add_argument(
        "--file",
        type=str,
        default="-",
        help="Path to the JSON submission, '-' for stdin (default: %(default)s)",
    )

    for name, help_text in (
        ("check-in", "Check a participant in"),
        ("cancel-check-in", "Cancel a participant's check-in"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("event", help="Event id")
        command.add_argument("participant", help="Participant key (email)")
        command.add_argument("--by", type=str, required=True, help="Who performs the action")

    pay = subparsers.add_parser("pay", help="Confirm a participant's payment")
    pay.add_argument("event", help="Event id")
    pay.add_argument("participant", help="Participant key (email)")
    pay.add_argument("--amount", type=str, help="Amount paid")
    pay.add_argument("--by", type=str, help="Who confirmed the payment")
    pay.add_argument("--payment-file", type=str, help="Reference to the proof of payment")

    update = subparsers.add_parser("update", help="Update selected fields of a participant")
    update.add_argument("event", help="Event id")
    update.add_argument("participant", help="Participant key (email)")
    update.add_argument("--name", type=str, help="Driver name")
    update.add_argument("--cc", type=str, help="Driver identity number")
    update.add_argument(
        "--guest",
        action="append",
        default=[],
        metavar="NAME[:CC]",
        help="Guest to set (repeatable; replaces the current guest list)",
    )
    update.add_argument("--phone", type=str, help="Phone number")
    update.add_argument("--plate", type=str, help="Vehicle plate")
    update.add_argument("--make", type=str, help="Vehicle make")
    update.add_argument("--payment-file", type=str, help="Reference to the proof of payment")
    update.add_argument("--vehicle-type", type=str, help="car, motorcycle or quad")
    comment = update.add_mutually_exclusive_group()
    comment.add_argument("--comment", type=str, help="New comment")
    comment.add_argument("--clear-comment", action="store_true", help="Remove the comment")
    paid = update.add_mutually_exclusive_group()
    paid.add_argument("--paid", dest="paid", action="store_true", default=None)
    paid.add_argument("--unpaid", dest="paid", action="store_false")

    reconcile = subparsers.add_parser("reconcile", help="Recompute the counters of an event")
    reconcile.add_argument("event", help="Event id")

    return parser.parse_args(list(argv))


def _parse_amount(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value.strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value}") from exc


def _parse_guest(value: str) -> Person:
    name, _, cc = value.partition(":")
    if not name.strip():
        raise ValueError(f"Guest needs a name: {value!r}")
    return Person(name=name.strip(), cc=cc.strip() or None)


def _build_update(args: argparse.Namespace) -> RegistrationUpdate:
    fields: dict[str, Any] = {}
    if args.name is not None or args.cc is not None or args.guest:
        driver = Person(name=args.name, cc=args.cc)
        fields["people"] = [driver, *(_parse_guest(guest) for guest in args.guest)]
    if args.phone is not None:
        fields["phone_number"] = args.phone
    if args.plate is not None or args.make is not None:
        fields["vehicle"] = Vehicle(plate=args.plate, make=args.make)
    if args.payment_file is not None:
        fields["payment_file"] = args.payment_file
    if args.comment is not None:
        fields["comment"] = args.comment
    elif args.clear_comment:
        fields["comment"] = None
    if args.vehicle_type is not None:
        fields["vehicle_type"] = args.vehicle_type
    if args.paid is not None:
        fields["paid"] = args.paid
    if not fields:
        raise ValueError("Nothing to update")
    return RegistrationUpdate(**fields)


def _read_submission(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _registration_payload(registration: Registration) -> dict[str, Any]:
    return registration.model_dump(mode="json", by_alias=True, exclude_none=True)


def _emit(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def _run(args: argparse.Namespace) -> None:
    async with open_register() as register:
        await _dispatch(register, args)


async def _dispatch(register: EventRegister, args: argparse.Namespace) -> None:
    service = register.service
    if args.command == "show":
        if args.phone is not None:
            found = await service.find_by_phone(args.event, args.phone)
            _emit(_registration_payload(found) if found is not None else None)
        else:
            _emit(_registration_payload(await service.get(args.event, args.participant)))
    elif args.command == "counters":
        _emit((await service.counters(args.event)).to_payload())
    elif args.command == "register":
        registration = await register.register_submission(args.event, _read_submission(args.file))
        _emit(_registration_payload(registration))
    elif args.command == "check-in":
        _emit(_registration_payload(await service.check_in(args.event, args.participant, args.by)))
    elif args.command == "cancel-check-in":
        registration = await service.cancel_check_in(args.event, args.participant, args.by)
        _emit(_registration_payload(registration))
    elif args.command == "pay":
        payment = PaymentConfirmation(
            amount=_parse_amount(args.amount),
            by_who=args.by,
            payment_file=args.payment_file,
        )
        registration = await service.confirm_payment(args.event, args.participant, payment)
        _emit(_registration_payload(registration))
    elif args.command == "update":
        registration = await service.update(args.event, args.participant, _build_update(args))
        _emit(_registration_payload(registration))
    elif args.command == "reconcile":
        _emit((await register.reconcile(args.event)).to_payload())
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        asyncio.run(_run(parsed_args))
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)
    except RegistrationError as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)
