import argparse
import dataclasses
import json
import sys

from app.config.settings import Settings
from app.database.connection import close_pool, init_pool
from app.database.models import ProcessingState
from app.logging.logger import Log
from app.reconciliation.filters import CreatedWindow, Page, RecordFilter, Scope
from app.service.document_service import DocumentService, build_document_service
from app.service.models import Principal


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docrecon",
        description="Reconcile extraction job state and report on documents.",
    )
    parser.add_argument("command", choices=["list", "stats"])
    parser.add_argument("--principal", type=int, required=True)
    parser.add_argument("--role", default="user")
    parser.add_argument("--scope", choices=[s.value for s in Scope], default=Scope.OWNED.value)
    parser.add_argument("--state", choices=[s.value for s in ProcessingState])
    parser.add_argument("--category")
    parser.add_argument("--window", choices=[w.value for w in CreatedWindow])
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--limit", type=int)
    return parser


def run(
    args: argparse.Namespace, service: DocumentService, settings: Settings
) -> dict[str, object]:
    """Execute one CLI command and return a JSON-ready payload."""
    principal = Principal(id=args.principal, role=args.role)
    scope = Scope(args.scope)
    record_filter = RecordFilter(
        state=ProcessingState(args.state) if args.state else None,
        category=args.category,
        created_window=CreatedWindow(args.window) if args.window else None,
    )
    if args.command == "stats":
        report = service.dashboard(principal, scope, record_filter)
        return dataclasses.asdict(report)

    page = Page(page=args.page, limit=args.limit or settings.default_page_size)
    listing = service.list_with_reconciliation(principal, scope, record_filter, page)
    return dataclasses.asdict(listing)


def main(argv: list[str] | None = None) -> None:
    """Entry point: parse args -> initialize pool -> run one command -> print JSON."""
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    service: DocumentService | None = None
    try:
        service = build_document_service(settings)
        payload = run(args, service, settings)
        json.dump(payload, sys.stdout, default=str, indent=2)
        sys.stdout.write("\n")
    finally:
        if service is not None:
            service.close()
        close_pool()


if __name__ == "__main__":
    main()
