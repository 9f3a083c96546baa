import argparse
import dataclasses
import logging
import os
import sys
import threading
from pathlib import Path

from recap.adapters.auth.static import StaticAuthProvider
from recap.app_shell.context import ServiceContext
from recap.components.aggregator import (
    AllTutorialsInput,
    TutorialStatsInput,
    run_all_tutorials,
    run_tutorial_stats,
)
from recap.components.recorder import (
    RebuildSummariesInput,
    TickOutput,
    WatchView,
    WatchViewError,
    run_rebuild_summaries,
)
from recap.core.ports.auth import Identity
from recap.rules.loader import load_rules

logger = logging.getLogger("cli")

RULES_PATH = os.environ.get("RECAP_RULES_PATH", "rules.yaml")
DATA_DIR = os.environ.get("RECAP_DATA_DIR", "./data")


def get_context() -> ServiceContext:
    if not Path(RULES_PATH).exists():
        logger.error("Rules file %s not found.", RULES_PATH)
        sys.exit(1)

    rules = load_rules(Path(RULES_PATH))
    data_dir = Path(DATA_DIR)
    if rules.store.backend == "sqlite":
        data_dir.mkdir(parents=True, exist_ok=True)
    return ServiceContext.create(rules, data_dir)


def handle_report(ctx: ServiceContext, args: argparse.Namespace) -> None:
    if args.tutorial:
        output = run_tutorial_stats(
            TutorialStatsInput(tutorial_id=args.tutorial),
            aggregator=ctx.aggregator,
            config=ctx.aggregator_config,
        )
        if not output.success or output.stats is None:
            print(f"Error: {output.errors[0].message}")
            sys.exit(1)

        stats = output.stats
        print(f"{stats.tutorial_title} ({stats.tutorial_id})")
        print(
            f"Viewers: {stats.total_viewers}  Minutes: {stats.total_minutes}  "
            f"Average: {stats.average_minutes}  Best: {stats.max_minutes}"
        )
        for row in stats.students:
            label = row.student.display_name or row.student.email or row.student.user_id
            print(
                f"{row.rank:>3}. {label:<30} {row.student.total_minutes_watched:>5} min "
                f"{row.percentage_of_average:>4}%  {row.engagement_level}"
            )
        if output.skipped_users:
            print(f"Skipped (unreadable): {', '.join(output.skipped_users)}")
        return

    overview = run_all_tutorials(
        AllTutorialsInput(),
        aggregator=ctx.aggregator,
        config=ctx.aggregator_config,
    )
    if not overview.success:
        print(f"Error: {overview.errors[0].message}")
        sys.exit(1)

    if not overview.tutorials:
        print("No watch time recorded yet.")
        return
    for summary in overview.tutorials:
        print(
            f"{summary.tutorial_title:<40} viewers={summary.total_viewers:<4} "
            f"minutes={summary.total_view_minutes:<6} average={summary.average_watch_time}"
        )
    if overview.skipped_users:
        print(f"Skipped (unreadable): {', '.join(overview.skipped_users)}")


def handle_watch(ctx: ServiceContext, args: argparse.Namespace) -> None:
    auth = StaticAuthProvider(Identity(id=args.user, email=args.email, display_name=args.name))
    config = ctx.recorder_config
    if args.interval is not None:
        config = dataclasses.replace(config, interval_seconds=args.interval)

    done = threading.Event()
    ticks = 0

    def on_tick(result: TickOutput) -> None:
        nonlocal ticks
        ticks += 1
        if result.total_minutes_watched is None:
            print(f"Tick {ticks}: failed ({result.errors[0].message})")
        else:
            print(f"Tick {ticks}: {result.total_minutes_watched} minutes watched")
        if ticks >= args.ticks:
            done.set()

    view = WatchView(ctx.store, auth, args.tutorial_id, config=config, time_port=ctx.clock, on_tick=on_tick)
    try:
        with view:
            print(f"Watching {view.tutorial.tutorial.title}: {view.tutorial.embed_url}")  # type: ignore[union-attr]
            done.wait()
    except WatchViewError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("Stopped.")

    print(f"Total: {view.minutes_watched} minutes")


def handle_rebuild_summaries(ctx: ServiceContext, args: argparse.Namespace) -> None:
    output = run_rebuild_summaries(
        RebuildSummariesInput(tutorial_id=args.tutorial),
        store=ctx.store,
        time_port=ctx.clock,
    )
    if not output.success:
        print(f"Error: {output.errors[0].message}")
        sys.exit(1)

    for summary in output.summaries:
        print(
            f"{summary.tutorial_id:<30} viewers={summary.total_viewers:<4} "
            f"minutes={summary.total_view_minutes}"
        )
    if output.skipped_users:
        print(f"Skipped (invalid counter): {', '.join(output.skipped_users)}")
    print(f"Rebuilt {len(output.summaries)} summaries.")


def main() -> None:
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Recap engagement CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # report
    report_parser = subparsers.add_parser("report", help="Print engagement statistics")
    report_parser.add_argument("--tutorial", help="Tutorial id for the per-student ranking")

    # watch
    watch_parser = subparsers.add_parser("watch", help="Record watch time for a tutorial")
    watch_parser.add_argument("tutorial_id", help="Tutorial to watch")
    watch_parser.add_argument("--user", required=True, help="Student user id")
    watch_parser.add_argument("--email", help="Student email")
    watch_parser.add_argument("--name", help="Student display name")
    watch_parser.add_argument("--ticks", type=int, default=1, help="Stop after this many ticks")
    watch_parser.add_argument("--interval", type=float, help="Seconds between ticks (overrides rules)")

    # rebuild-summaries
    rebuild_parser = subparsers.add_parser(
        "rebuild-summaries", help="Recount materialized engagement summaries"
    )
    rebuild_parser.add_argument("--tutorial", help="Only this tutorial")

    args = parser.parse_args()

    ctx = get_context()

    if args.command == "report":
        handle_report(ctx, args)
    elif args.command == "watch":
        handle_watch(ctx, args)
    elif args.command == "rebuild-summaries":
        handle_rebuild_summaries(ctx, args)


if __name__ == "__main__":
    main()
