"""
Mileage Tracker — Entry Point.

`python main.py` loads config, weeks and the selected week (cache first,
then network) and prints a summary. `python main.py add 3.5` adds an entry
for the selected person and day.
"""

import argparse
import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from mileage.adapters.console_view import ConsoleView
from mileage.adapters.store_factory import create_key_value_store
from mileage.core.tracker_service import TrackerService
from mileage.data.cache import CacheStore
from mileage.integrations.endpoint_dispatcher import EndpointDispatcher


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Weekly mileage tracker")
    parser.add_argument("--person", help="select a person before acting")
    parser.add_argument("--week", help="select a week id before acting")
    parser.add_argument("--day", help="select a day (YYYY-MM-DD) of the week")
    parser.add_argument("--category", help="entry category")
    parser.add_argument("--refresh", action="store_true", help="force a reload from the server")

    sub = parser.add_subparsers(dest="command")
    add = sub.add_parser("add", help="add a mileage entry")
    add.add_argument("miles", help="miles to add, e.g. 2.5")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    view = ConsoleView()
    service = TrackerService(
        api=EndpointDispatcher(),
        cache=CacheStore(create_key_value_store()),
        view=view,
    )
    exit_code = 0
    try:
        await service.start()

        if args.refresh:
            await service.refresh()
        if args.person:
            await service.select_person(args.person)
        if args.week:
            await service.select_week(args.week)
        if args.day:
            service.select_day(args.day)
        if args.category:
            service.select_category(args.category)

        if args.command == "add":
            result = await service.add_entry(args.miles)
            exit_code = 0 if result.success else 1
    finally:
        await service.close()

    view.render(service.state)
    return exit_code


def main() -> None:
    raise SystemExit(asyncio.run(run(_parse_args())))


if __name__ == "__main__":
    main()
