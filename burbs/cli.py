import argparse
import json
import logging
import sys


def _setup_logging(args):
    level = logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _store(config):
    from burbs.db import ActivityStore

    return ActivityStore.from_config(config)


def cmd_db_init(args):
    from burbs.db import init_db
    from burbs.config import load_config

    try:
        config = load_config()
    except FileNotFoundError:
        config = None
    path = init_db(config)
    print(f"Database initialized at {path}")


def cmd_sync(args):
    from burbs.config import load_config
    from burbs.db import StoreError
    from burbs.ingest.strava_client import CredentialError, StravaCredentials, StravaFetchError
    from burbs.ingest.strava_sync import sync_strava

    config = load_config()
    store = _store(config)

    try:
        credentials = StravaCredentials.from_config(config)
        result = sync_strava(config, store, credentials)
    except StravaFetchError as e:
        print(f"Fetch failed (retry later): {e}")
        sys.exit(2)
    except CredentialError as e:
        print(f"Credential refresh failed: {e}")
        sys.exit(1)
    except StoreError as e:
        print(f"Store write failed, previous data kept: {e}")
        sys.exit(1)

    _print_sync_summary(result)


def _print_sync_summary(result):
    print("\nStrava sync complete:")
    print(f"  Fetched:         {result.fetched}")
    print(f"  New:             {result.new}")
    print(f"  Duplicates:      {result.duplicates_removed}")
    print(f"  Previously held: {result.previously_stored}")
    print(f"  Total stored:    {result.total_stored}")
    print(f"  Synced at:       {result.last_sync}")


def cmd_dates_list(args):
    from burbs.config import load_config
    from burbs.reconcile.dates import get_activity_dates

    dates = get_activity_dates(_store(load_config()))
    if not dates:
        print("No date overrides.")
        return
    for activity_id, date in sorted(dates.items(), key=lambda kv: kv[1]):
        print(f"  {date}  {activity_id}")


def cmd_dates_set(args):
    from burbs.config import load_config
    from burbs.reconcile.dates import InvalidDateError, save_activity_date

    try:
        save_activity_date(_store(load_config()), args.activity_id, args.date)
    except InvalidDateError as e:
        print(str(e))
        sys.exit(1)
    print(f"Activity {args.activity_id} dated {args.date}")


def cmd_dates_delete(args):
    from burbs.config import load_config
    from burbs.reconcile.dates import delete_activity_date

    if delete_activity_date(_store(load_config()), args.activity_id):
        print(f"Override removed for {args.activity_id}")
    else:
        print(f"No override for {args.activity_id}")


def cmd_dashboard(args):
    from burbs.analysis.aggregate import ScoringWindow, build_dashboard
    from burbs.analysis.teams import TeamMembership
    from burbs.config import challenge_settings, load_config

    config = load_config()
    store = _store(config)
    challenge = challenge_settings(config)
    dashboard = build_dashboard(
        store.load_activities(),
        TeamMembership.from_config(config),
        ScoringWindow(challenge["month"]),
        overrides=store.load_date_overrides(),
        seed=challenge.get("daily_seed"),
        last_sync=store.last_sync(),
    )

    if args.json:
        print(json.dumps(dashboard.to_dict(), indent=2))
        return
    _print_dashboard(dashboard, challenge["month"])


def _print_dashboard(dashboard, month):
    teams = dashboard.teams
    width = max(len(t) for t in teams) if teams else 10

    print(f"\nScoreboard ({month}):")
    header = "".join(f"{t:>{width + 2}}" for t in teams)
    print(f"  {'':12s}{header}")
    for row in dashboard.scoreboard:
        cells = "".join(f"{row.points[t]:>{width + 2}}" for t in teams)
        print(f"  {row.activity:12s}{cells}")
    cells = "".join(f"{dashboard.totals[t]:>{width + 2}}" for t in teams)
    print(f"  {'Total':12s}{cells}")

    if dashboard.individuals:
        print("\nIndividuals:")
        for i, ind in enumerate(dashboard.individuals, start=1):
            print(f"  {i:2d}. {ind.name:20s} {ind.team:{width}s} {ind.total_points:5d}")

    if dashboard.activities_needing_dates:
        print(f"\n{dashboard.activities_needing_dates} activities without a date. "
              f"Use 'burbs dates set <id> <YYYY-MM-DD>'.")
    if dashboard.last_sync:
        print(f"\nLast sync: {dashboard.last_sync}")


def cmd_serve(args):
    from burbs.review.app import create_app

    app = create_app()
    app.run(host=args.host, port=args.port, debug=args.debug)


def main():
    parser = argparse.ArgumentParser(prog="burbs", description="Burbs Challenge: Strava club scoring")
    subparsers = parser.add_subparsers(dest="command")

    # db subcommand with its own subcommands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_init = db_sub.add_parser("init", help="Initialize the database schema")
    db_init.set_defaults(func=cmd_db_init)

    sync_parser = subparsers.add_parser("sync", help="Sync the Strava club feed")
    sync_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    sync_parser.set_defaults(func=cmd_sync)

    # dates subcommand: manual date corrections
    dates_parser = subparsers.add_parser("dates", help="Manual activity date corrections")
    dates_sub = dates_parser.add_subparsers(dest="dates_command")
    dates_list = dates_sub.add_parser("list", help="List date overrides")
    dates_list.set_defaults(func=cmd_dates_list)
    dates_set = dates_sub.add_parser("set", help="Set the date for an activity")
    dates_set.add_argument("activity_id")
    dates_set.add_argument("date", help="YYYY-MM-DD")
    dates_set.set_defaults(func=cmd_dates_set)
    dates_delete = dates_sub.add_parser("delete", help="Remove a date override")
    dates_delete.add_argument("activity_id")
    dates_delete.set_defaults(func=cmd_dates_delete)

    dashboard_parser = subparsers.add_parser("dashboard", help="Show scoreboard and leaderboard")
    dashboard_parser.add_argument("--json", action="store_true", help="Print the full dashboard as JSON")
    dashboard_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    dashboard_parser.set_defaults(func=cmd_dashboard)

    serve_parser = subparsers.add_parser("serve", help="Run the JSON API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=5000)
    serve_parser.add_argument("--debug", action="store_true")
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)
    if args.command == "db" and not getattr(args, "db_command", None):
        db_parser.print_help()
        sys.exit(1)
    if args.command == "dates" and not getattr(args, "dates_command", None):
        dates_parser.print_help()
        sys.exit(1)
    _setup_logging(args)
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
