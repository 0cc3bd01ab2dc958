import argparse
import logging
import os
import sys
from pathlib import Path

from promptshop.adapters.clock import SystemClock
from promptshop.adapters.dev_email import DevEmailAdapter
from promptshop.adapters.resend_email import ResendEmailAdapter
from promptshop.adapters.sqlite.migrator import SQLiteMigrator
from promptshop.adapters.sqlite.repos import SQLiteStore, SQLiteUserRepo
from promptshop.components.accounts import GrantRoleInput, run_grant_role
from promptshop.components.subscription import SubscriptionService
from promptshop.core.ports.email import EmailPort
from promptshop.rules.loader import load_rules
from promptshop.rules.models import Rules

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("cli")

DB_NAME = "promptshop.db"
MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


def get_rules(args: argparse.Namespace) -> Rules:
    rules_path = Path(args.rules)
    if not rules_path.exists():
        logger.error("Rules file %s not found.", rules_path)
        sys.exit(1)
    return load_rules(rules_path)


def db_path(args: argparse.Namespace) -> str:
    data_dir = Path(args.data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    return str(data_dir / DB_NAME)


def get_email_adapter(rules: Rules) -> EmailPort:
    api_key = os.environ.get("RESEND_API_KEY", "")
    if api_key:
        return ResendEmailAdapter(api_key=api_key, default_sender=rules.reminders.sender)
    return DevEmailAdapter()


def subscription_service(args: argparse.Namespace) -> SubscriptionService:
    rules = get_rules(args)
    return SubscriptionService(
        SQLiteStore(db_path(args)), get_email_adapter(rules), rules, clock=SystemClock()
    )


def handle_migrate(args: argparse.Namespace) -> None:
    applied = SQLiteMigrator(db_path(args), args.migrations_dir).run_migrations()
    if applied:
        print(f"Applied {len(applied)} migration(s): {', '.join(applied)}")
    else:
        print("Database is up to date.")


def handle_expire(args: argparse.Namespace) -> None:
    result = subscription_service(args).expire_lapsed()
    print(
        f"Downgraded {result.downgraded} subscription(s), "
        f"revoked agency access for {result.agency_revoked} profile(s)."
    )


def handle_remind(args: argparse.Namespace) -> None:
    result = subscription_service(args).send_reminders()
    print(f"Reminders: {result.sent} sent, {result.skipped} skipped, {result.failed} failed.")
    for failure in result.failures:
        print(f"  failed: {failure}")
    if result.failed:
        sys.exit(2)


def handle_grant_admin(args: argparse.Namespace) -> None:
    out = run_grant_role(
        GrantRoleInput(email=args.email, role=args.role), SQLiteUserRepo(db_path(args))
    )
    if not out.success:
        logger.error("Could not grant role: %s", out.error)
        sys.exit(1)
    print(f"Granted '{args.role}' to {args.email}.")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="promptshop CLI")
    parser.add_argument(
        "--data-dir",
        default=os.environ.get("PROMPTSHOP_DATA_DIR", "./data"),
        help="Directory holding the SQLite database",
    )
    parser.add_argument(
        "--rules",
        default=os.environ.get("PROMPTSHOP_RULES_PATH", "rules.yaml"),
        help="Path to rules.yaml",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate_parser = subparsers.add_parser("migrate", help="Apply pending migrations")
    migrate_parser.add_argument("--migrations-dir", default=str(MIGRATIONS_DIR))

    # Run `remind` before `expire`: expired-day reminders need the paid tier still set
    subparsers.add_parser("expire", help="Downgrade lapsed subscriptions and agency access")
    subparsers.add_parser("remind", help="Send subscription expiry reminders")

    grant_parser = subparsers.add_parser("grant-admin", help="Grant a role to a user")
    grant_parser.add_argument("--email", required=True, help="Email of the user")
    grant_parser.add_argument("--role", default="admin", help="Role to grant (admin, moderator)")

    args = parser.parse_args(argv)

    if args.command == "migrate":
        handle_migrate(args)
    elif args.command == "expire":
        handle_expire(args)
    elif args.command == "remind":
        handle_remind(args)
    elif args.command == "grant-admin":
        handle_grant_admin(args)


if __name__ == "__main__":
    main()
