"""Command-line front end for managing and querying a knowledge base."""

import argparse
import asyncio
import logging
import sys
import uuid

from qnakb.core.qna_service import QnAService
from qnakb.lib.config import ConfigLoader
from qnakb.lib.errors import QnAError
from qnakb.lib.logger import setup_logging
from qnakb.tools.qna_file import load_csv

logger = logging.getLogger(__name__)


def _print_outcome(state, error) -> None:
    print(f"Operation state: {state.value}")
    if error:
        print(f"Error: {error}")


async def run_command(args: argparse.Namespace, service: QnAService) -> int:
    """Dispatch one subcommand; returns the process exit code."""
    if args.command == "create":
        name = args.name or f"{uuid.uuid4()} KB"
        state, kb_id = await service.create_knowledge_base(name, load_csv(args.file))
        print(f"Operation state: {state.value}")
        print(f"Knowledge base id: {kb_id}")

    elif args.command == "add":
        _print_outcome(*await service.add_entries(load_csv(args.file), published=args.published))

    elif args.command == "update":
        _print_outcome(*await service.update_entries(load_csv(args.file), published=args.published))

    elif args.command == "delete-entries":
        _print_outcome(*await service.delete_entries(args.ids))

    elif args.command == "ask":
        result = await service.ask(args.question, published=args.published, top=args.top)
        if not result.answers:
            print("No answer found.")
        for answer in result.answers:
            print(f"[{answer.score:.1f}] {answer.answer}")
            for question in answer.questions:
                print(f"    - {question}")

    elif args.command == "train":
        records = await service.train(load_csv(args.file), published=args.published)
        print(f"Sent {len(records)} feedback records")

    elif args.command == "publish":
        await service.publish()
        print("Published")

    elif args.command == "delete-kb":
        await service.delete_knowledge_base()
        print("Deleted")

    return 0


async def main(args: argparse.Namespace) -> int:
    config = ConfigLoader(config_dir=args.config_dir, env_file=args.env_file)
    service = QnAService.from_config(config)
    if args.kb_id:
        service.knowledge_base_id = args.kb_id

    try:
        return await run_command(args, service)
    except (QnAError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await service.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="qnakb - manage and query a hosted QnA knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  qnakb create faq.csv --name "Store FAQ"
  qnakb --kb-id <id> add more-faq.csv
  qnakb ask "How do I change my shipping address?" --published
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config-dir", help="Directory containing qna.yaml (default: ./config)")
    parser.add_argument("--env-file", help="Path to .env file (default: ./.env)")
    parser.add_argument("--kb-id", help="Knowledge base id (overrides configuration)")

    # Shared by subcommands that read test or published content
    env_parent = argparse.ArgumentParser(add_help=False)
    env_parent.add_argument(
        "--published", action="store_true", help="Use the published version instead of test"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create", help="Create a knowledge base from a CSV file")
    create.add_argument("file")
    create.add_argument("--name", help="Knowledge base name")

    add = sub.add_parser("add", parents=[env_parent], help="Add entries, merging questions")
    add.add_argument("file")

    update = sub.add_parser("update", parents=[env_parent], help="Add entries, replacing questions")
    update.add_argument("file")

    delete_entries = sub.add_parser("delete-entries", help="Delete entries by id")
    delete_entries.add_argument("ids", type=int, nargs="+")

    ask = sub.add_parser("ask", parents=[env_parent], help="Ask a question")
    ask.add_argument("question")
    ask.add_argument("--top", type=int, default=1, help="Number of answers to return")

    train = sub.add_parser("train", parents=[env_parent], help="Send question/answer feedback")
    train.add_argument("file")

    sub.add_parser("publish", help="Publish the test version")
    sub.add_parser("delete-kb", help="Delete the knowledge base")

    return parser


def run() -> None:
    args = build_parser().parse_args()
    setup_logging(log_level="DEBUG" if args.debug else "INFO", quiet=not args.debug)
    sys.exit(asyncio.run(main(args)))


if __name__ == "__main__":
    run()
