"""Operator commands, available through ``flask <command>``."""

from __future__ import annotations

import sys

import click
from flask.cli import with_appcontext

from errors import LedgerError, NotFoundError
from models import TX_PACK_PURCHASE
from services.audit import log_action
from services.invitations import expire_stale_invitations
from services.uow import run_in_transaction


@click.command("expire-invitations")
@with_appcontext
def expire_invitations_command():
    """Mark pending invitations past their expiry date as expired."""
    count = expire_stale_invitations()
    click.echo(f"Expired {count} invitation(s).")


@click.command("grant-credits")
@click.argument("email")
@click.argument("amount", type=click.IntRange(min=1))
@with_appcontext
def grant_credits_command(email: str, amount: int):
    """Add AMOUNT credits to the global wallet of the user with EMAIL."""

    def work(store):
        user = store.get_user_by_email(email, for_update=True)
        if user is None:
            raise NotFoundError(f"no user with email {email}")
        tx = store.append_credit_transaction(
            user.id, amount, TX_PACK_PURCHASE, "Granted by operator"
        )
        log_action(store, None, "grant_credits", "credit_transaction", tx.id,
                   f"user={user.id} amount={amount}")
        return store.credit_balance(user.id)

    try:
        balance = run_in_transaction(work)
    except LedgerError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    click.echo(f"Granted {amount} credit(s) to {email}; balance is now {balance}.")


def register_commands(app):
    """Attach operator commands to *app*'s CLI."""
    app.cli.add_command(expire_invitations_command)
    app.cli.add_command(grant_credits_command)
