"""
Command-line interface for the Jira to Trello migration tool.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import jira_utils as jiu
from . import trello_utils as tru
from .config import DEFAULT_PAGE_SIZE, DEFAULT_QUEUE_CAPACITY, MigrationConfig
from .exceptions import MigrationAbortedError
from .orchestrator import Migrator
from .reconciler import sync_epics
from .utils import setup_logging

logger: logging.Logger = logging.getLogger(__name__)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Migrate Jira issues, epics and comments to a Trello board")
    _ = parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Increase console verbosity (-v for info, -vv for debug)",
    )

    common = argparse.ArgumentParser(add_help=False)
    _ = common.add_argument("--host", required=True, help="Jira host name (e.g. example.atlassian.net)")
    _ = common.add_argument("--board", required=True, help="Trello board id")
    _ = common.add_argument(
        "--epic-field", default="component", help="Trello custom field holding epic names (default: component)"
    )
    _ = common.add_argument(
        "--page-size", type=int, default=DEFAULT_PAGE_SIZE, help="Number of issues to fetch per page"
    )
    _ = common.add_argument("--jira-user-pass", help="Path for the Jira user in pass (default: jira/cli/user)")
    _ = common.add_argument("--jira-token-pass", help="Path for the Jira API token in pass (default: jira/cli/token)")
    _ = common.add_argument("--trello-key-pass", help="Path for the Trello API key in pass (default: trello/cli/key)")
    _ = common.add_argument(
        "--trello-token-pass", help="Path for the Trello token in pass (default: trello/cli/token)"
    )
    _ = common.add_argument(
        "--diagnostics",
        type=Path,
        default=jiu.DEFAULT_DIAGNOSTICS_PATH,
        help="File receiving undecodable Jira responses (default: dodgy.json)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    _ = subparsers.add_parser(
        "sync-epics", parents=[common], help="Create or extend the epic custom field from Jira epics"
    )

    migrate = subparsers.add_parser("migrate", parents=[common], help="Migrate issues to cards")
    _ = migrate.add_argument("--list", dest="target_list", default="To Do", help="Trello list receiving new cards")
    _ = migrate.add_argument("--priority-field", default="Priority", help="Trello custom field holding priorities")
    _ = migrate.add_argument("--no-priority", action="store_true", help="Do not set the priority field")
    _ = migrate.add_argument("--identity-field", default="Jira Key", help="Trello text field receiving the Jira key")
    _ = migrate.add_argument("--no-identity", action="store_true", help="Do not set the identity field")
    _ = migrate.add_argument("--top", action="store_true", help="Put new cards at the top of the list")
    _ = migrate.add_argument(
        "--queue-capacity", type=int, default=DEFAULT_QUEUE_CAPACITY, help="Records buffered ahead of migration"
    )
    _ = migrate.add_argument(
        "--continue-on-error", action="store_true", help="Skip failed issues instead of aborting the run"
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> MigrationConfig:
    """Build the run configuration from parsed arguments."""
    if args.command == "sync-epics":
        return MigrationConfig(
            jira_host=args.host,
            board_id=args.board,
            epic_field_name=args.epic_field,
            page_size=args.page_size,
        )
    return MigrationConfig(
        jira_host=args.host,
        board_id=args.board,
        target_list=args.target_list,
        epic_field_name=args.epic_field,
        priority_field_name=None if args.no_priority else args.priority_field,
        identity_field_name=None if args.no_identity else args.identity_field,
        page_size=args.page_size,
        queue_capacity=args.queue_capacity,
        put_at_top=args.top,
        fail_fast=not args.continue_on_error,
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(verbosity=args.verbose)

    try:
        config = build_config(args)

        jira_user, jira_token = jiu.get_credentials(args.jira_user_pass, args.jira_token_pass)
        trello_key, trello_token = tru.get_credentials(args.trello_key_pass, args.trello_token_pass)

        source = jiu.JiraSource(
            jiu.get_session(jira_user, jira_token), config.jira_host, diagnostics_path=args.diagnostics
        )
        sink = tru.TrelloSink(tru.get_session(), api_key=trello_key, token=trello_token)

        if args.command == "sync-epics":
            field = sync_epics(source, sink, config)
            print(f"Updated custom field '{field.name}' on board '{config.board_id}' with {len(field.options)} options")
            sys.exit(0)

        result = Migrator(source, sink, config).migrate()
        print(
            f"Migrated {result.migrated} issues ({result.skipped} skipped, {result.failed} failed) "
            f"to board '{config.board_id}'"
        )
        sys.exit(0 if result.success else 1)

    except MigrationAbortedError as e:
        where = e.record_key or "the record stream"
        logger.exception(f"Migration aborted at {where}")
        print(f"Migration aborted at {where}: {e.cause}", file=sys.stderr)
        print(f"{e.result.migrated} issues were fully migrated before the abort", file=sys.stderr)
        sys.exit(1)
    except Exception:
        logger.exception("Migration failed")
        sys.exit(1)
