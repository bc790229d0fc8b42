import argparse
import json
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional

import tqdm

from config import load_config
from errors import TransportError, TrelloError
from trello_api_client import TrelloAPIClient
from utils import write_json_atomic

logger = logging.getLogger(__name__)
log_level = logging.DEBUG if os.getenv("DEBUG") else logging.INFO


class Suppress404Filter(logging.Filter):
    """Filters out HTTP 404 error logs from trello_api_client unless in debug mode."""

    def filter(self, record: logging.LogRecord) -> bool:
        if log_level == logging.DEBUG:
            return True
        return not ("trello_api_client" in record.name and "HTTP error: 404" in record.getMessage())


def configure_logging() -> None:
    # stdout carries command output, so logs go to stderr.
    logging.basicConfig(level=log_level, stream=sys.stderr)
    logging.getLogger("trello_api_client").addFilter(Suppress404Filter())


def dump_board(client: TrelloAPIClient, output_file: str, max_workers: int = 4) -> Dict[str, Any]:
    """Fetches every list of the board with its cards and writes them to JSON.

    Cards are fetched concurrently; all workers share the client's rate
    limiter, so the quota holds regardless of ``max_workers``.

    Args:
        client: Client for the board to dump.
        output_file: Path of the JSON snapshot.
        max_workers: Number of threads fetching cards.

    Returns:
        The snapshot that was written.
    """
    lists = client.get_lists() or []
    cards_by_list: Dict[str, List[Dict]] = {}

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_map = {executor.submit(client.get_cards_by_list, lst["id"]): lst["id"] for lst in lists}
        for fut in tqdm.tqdm(
            as_completed(future_map),
            total=len(future_map),
            desc="Fetching cards",
            unit="list",
            dynamic_ncols=True,
            disable=not future_map,
        ):
            cards_by_list[future_map[fut]] = fut.result() or []

    snapshot = {
        "board_id": client.config.board_id,
        "lists": [dict(lst, cards=cards_by_list.get(lst["id"], [])) for lst in lists],
    }
    write_json_atomic(output_file, snapshot)
    logger.info("Wrote %d lists to %s", len(lists), output_file)
    return snapshot


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rate-limited Trello board client"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("lists", help="Show the lists of the board")

    cards = sub.add_parser("cards", help="Show the cards of a list")
    cards.add_argument("list_id", help="List ID")

    activity = sub.add_parser("activity", help="Show recent board activity")
    activity.add_argument("--limit", type=int, default=10, help="Number of actions")

    sub.add_parser("my-cards", help="Show cards assigned to you")

    add_card = sub.add_parser("add-card", help="Create a card")
    add_card.add_argument("list_id", help="List ID")
    add_card.add_argument("name", help="Card title")
    add_card.add_argument("--description", help="Card description")
    add_card.add_argument("--due-date", help="Due date (ISO 8601)")
    add_card.add_argument("--labels", nargs="+", help="Label IDs")

    update_card = sub.add_parser("update-card", help="Update a card")
    update_card.add_argument("card_id", help="Card ID")
    update_card.add_argument("--name", help="New title")
    update_card.add_argument("--description", help="New description")
    update_card.add_argument("--due-date", help="New due date (ISO 8601)")
    update_card.add_argument("--labels", nargs="+", help="New label IDs")

    archive_card = sub.add_parser("archive-card", help="Archive a card")
    archive_card.add_argument("card_id", help="Card ID")

    add_list = sub.add_parser("add-list", help="Create a list on the board")
    add_list.add_argument("name", help="List name")

    archive_list = sub.add_parser("archive-list", help="Archive a list")
    archive_list.add_argument("list_id", help="List ID")

    dump = sub.add_parser("dump-board", help="Write all lists and cards to a JSON file")
    dump.add_argument("--output", default="board.json", help="Output file for the snapshot")
    dump.add_argument("--max-workers", type=int, default=4, help="Concurrent card fetches")

    return parser


def run_command(client: TrelloAPIClient, args: argparse.Namespace) -> Any:
    """Dispatches parsed arguments to the matching client operation."""
    if args.command == "lists":
        return client.get_lists()
    if args.command == "cards":
        return client.get_cards_by_list(args.list_id)
    if args.command == "activity":
        return client.get_recent_activity(limit=args.limit)
    if args.command == "my-cards":
        return client.get_my_cards()
    if args.command == "add-card":
        return client.add_card(args.list_id, args.name, description=args.description,
                               due_date=args.due_date, labels=args.labels)
    if args.command == "update-card":
        return client.update_card(args.card_id, name=args.name, description=args.description,
                                  due_date=args.due_date, labels=args.labels)
    if args.command == "archive-card":
        return client.archive_card(args.card_id)
    if args.command == "add-list":
        return client.add_list(args.name)
    if args.command == "archive-list":
        return client.archive_list(args.list_id)
    if args.command == "dump-board":
        dump_board(client, args.output, max_workers=args.max_workers)
        return None
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the trello-client command.

    Reads credentials from TRELLO_API_KEY, TRELLO_TOKEN and TRELLO_BOARD_ID,
    runs one command and prints its JSON result to stdout.
    """
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        client = TrelloAPIClient(load_config())
        result = run_command(client, args)
    except (TrelloError, TransportError) as e:
        print(str(e), file=sys.stderr)
        return 1

    if result is not None:
        print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
