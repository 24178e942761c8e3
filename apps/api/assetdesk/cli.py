"""CLI tools for Asset Desk administration."""

import click

from assetdesk.db.session import SessionLocal
from assetdesk.schemas.company import CompanyCreate
from assetdesk.services import (
    attestation_scheduler,
    company_service,
    directory_service,
    ownership_service,
)
from assetdesk.services.notification_service import EmailNotifier


@click.group()
def cli():
    """Asset Desk CLI tools."""
    pass


@cli.command()
@click.option("--name", required=True, help="Company name")
@click.option("--description", default=None, help="Optional description")
def create_company(name: str, description: str | None):
    """
    Create a company that assets can be assigned to.

    Example:
        assetdesk-cli create-company --name "Acme Corp"
    """
    db = SessionLocal()
    try:
        company = company_service.create_company(
            db, CompanyCreate(name=name, description=description), actor_email="cli"
        )
        click.echo(f"✓ Created company: {company.name} (id={company.id})")
    except company_service.CompanyConflictError as e:
        click.echo(f"❌ {e}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


@cli.command()
@click.option("--email", default=None, help="Only sync this user (default: every user)")
def sync_ownership(email: str | None):
    """
    Backfill owner/manager links on assets for registered users.

    Safe to re-run; already-linked assets are never touched.
    """
    db = SessionLocal()
    try:
        if email:
            users = [directory_service.get_user_by_email(db, email)]
            if users[0] is None:
                click.echo(f"❌ No user registered with {email}")
                return
        else:
            users = directory_service.list_users(db)

        owner_total = manager_total = 0
        for user in users:
            result = ownership_service.sync_ownership(db, user.email)
            owner_total += result.owner_updates
            manager_total += result.manager_updates
        db.commit()
        click.echo(
            f"✓ Synced {len(users)} user(s): {owner_total} owner link(s), "
            f"{manager_total} manager link(s)"
        )
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


@cli.command()
def promote_managers():
    """Promote every user who is named as someone's manager."""
    db = SessionLocal()
    try:
        promoted = [
            user.email
            for user in directory_service.list_users(db)
            if ownership_service.promote_to_manager_if_needed(db, user.email, actor_email="cli")
        ]
        db.commit()
        click.echo(f"✓ Promoted {len(promoted)} user(s) to manager")
        for email in promoted:
            click.echo(f"  - {email}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


@cli.command()
def run_scheduler():
    """Run one attestation scheduler pass (reminders, escalations, auto-close)."""
    db = SessionLocal()
    try:
        summary = attestation_scheduler.run_scheduled_tasks(db, EmailNotifier())
        click.echo(
            f"✓ Reminders: {summary['reminders_sent']}, "
            f"escalations: {summary['escalations_sent']}, "
            f"unregistered reminders: {summary['unregistered_reminders_sent']}, "
            f"unregistered escalations: {summary['unregistered_escalations_sent']}, "
            f"closed: {summary['campaigns_closed']}"
        )
        for error in summary["errors"]:
            click.echo(f"❌ {error['pass']} item {error['item_id']}: {error['error']}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
