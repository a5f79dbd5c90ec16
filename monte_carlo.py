#!/usr/bin/env python3
"""
Monte Carlo driver script for NuGenX

Examples:
    python monte_carlo.py --probe nu_mu --energy 1.0 --target 6,12 --events 1000
    python monte_carlo.py --probe 14 --energy 3.0 --target 1,1 --channel QEL --seed 42 --output qel.csv
"""

import argparse
import csv
import json
import logging
from pathlib import Path

from nugenx.config import DB_PATH
from nugenx.event_generator import run_batch
from nugenx.events import EventDB
from nugenx.exceptions import ConfigurationError
from nugenx.interaction import Target
from nugenx.particles import PDGLibrary, is_neutrino, is_anti_neutrino
from nugenx.pipeline import STAGE_REGISTRY

logger = logging.getLogger("nugenx.monte_carlo")


def parse_probe(value: str) -> int:
    try:
        pdg = int(value)
    except ValueError:
        pdg = PDGLibrary.by_name(value).pdg
    if not (is_neutrino(pdg) or is_anti_neutrino(pdg)):
        raise argparse.ArgumentTypeError(f"{value} is not a neutrino")
    return pdg


def parse_target(value: str) -> Target:
    try:
        Z, A = (int(v) for v in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Target must be given as Z,A (got '{value}')") from None
    if A < 1 or Z < 0 or Z > A:
        raise argparse.ArgumentTypeError(f"Invalid target Z={Z}, A={A}")
    return Target(Z, A)


def load_overrides(path, transparent):
    overrides = {}
    if path:
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Configuration file '{path}' does not exist")
        with open(path, "r", encoding="utf-8") as f:
            try:
                overrides = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    if transparent:
        overrides.setdefault("IntranuclearCascade", {})["transparent"] = True
    return overrides


def print_event_stats(db: EventDB):
    stats = db.stats()
    print("\n📊 Database Statistics")
    print("=" * 60)
    print(f"Total events stored          : {stats['total_events']}")
    print("\nEvents by channel:")
    for channel, count in sorted(stats["by_channel"].items()):
        print(f"  • {channel:12s}: {count:6d} events")
    print(f"\nAverage Q2                   : {stats['average_Q2']:.4f} GeV^2")
    print(f"4-momentum conserved         : {stats['four_momentum_conserved']}/{stats['total_events']}")
    print(f"Charge conserved             : {stats['charge_conserved']}/{stats['total_events']}")
    print("=" * 60 + "\n")


def export_events_to_csv(db: EventDB, event_ids, filename):
    """Export the final state of selected events to CSV."""
    rows_written = 0
    with open(filename, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["event_id", "channel", "index", "pdg", "status", "parent", "E", "px", "py", "pz"])
        for eid in event_ids:
            event = db.parse_event(eid)
            if event is None:
                continue
            for i, p in enumerate(event["particles"]):
                p4 = p["momentum"]
                writer.writerow([eid, event["channel"], i, p["pdg"], p["status"].name, p["parent"],
                                 p4.E, p4.px, p4.py, p4.pz])
                rows_written += 1
    print(f"📄 Exported {len(event_ids)} events ({rows_written} rows) to {filename}")


def build_parser():
    return argparse.ArgumentParser(
        description="NuGenX Neutrino Event Generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  python monte_carlo.py --probe nu_mu --energy 1.0 --target 1,1 --events 1000
  python monte_carlo.py --probe nu_mu_bar --energy 2.0 --target 6,12 --channel QEL --channel RES
  python monte_carlo.py --probe 14 --energy 5.0 --target 26,56 --workers 4 --transparent --stats"""
    )


def main(argv=None):
    parser = build_parser()
    parser.add_argument("--probe", type=parse_probe, default=14, help="Neutrino PDG code or name (default nu_mu)")
    parser.add_argument("--energy", type=float, required=True, help="Probe energy in GeV")
    parser.add_argument("--target", type=parse_target, default=Target(6, 12), help="Target as Z,A (default 6,12)")
    parser.add_argument("--channel", action="append", choices=sorted(STAGE_REGISTRY),
                        help="Restrict to channel (repeatable, default all)")
    parser.add_argument("--no-nc", action="store_true", help="Charged-current interactions only")
    parser.add_argument("--events", type=int, default=10, help="Number of events (default 10)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed (optional)")
    parser.add_argument("--workers", type=int, default=1, help="Worker threads (default 1)")
    parser.add_argument("--transparent", action="store_true", help="Switch off hadron rescattering")
    parser.add_argument("--config", type=str, help="JSON file with configuration overrides")
    parser.add_argument("--db", type=str, default=str(DB_PATH), help="SQLite file for generated events")
    parser.add_argument("--verbose", action="store_true", help="Show progress output")
    parser.add_argument("--stats", action="store_true", help="Print DB statistics after generation")
    parser.add_argument("--output", type=str, help="Export generated events to CSV file")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("\n" + "=" * 60)
    print("🔥 NuGenX Neutrino Event Generator")
    print("=" * 60)
    print(f"Probe            : {PDGLibrary.lookup(args.probe).name} ({args.probe})")
    print(f"Energy           : {args.energy} GeV")
    print(f"Target           : Z={args.target.Z}, A={args.target.A}")
    print(f"Channels         : {', '.join(args.channel) if args.channel else 'all'}")
    print(f"Number of Events : {args.events}")
    print(f"Random Seed      : {args.seed if args.seed is not None else 'None'}")
    print(f"Workers          : {args.workers}")
    print(f"Transparent      : {args.transparent}")
    if args.output:
        print(f"CSV Output       : {args.output}")
    print("=" * 60 + "\n")

    try:
        overrides = load_overrides(args.config, args.transparent)
        results = run_batch(
            n_events=args.events,
            probe_pdg=args.probe,
            energy=args.energy,
            target=args.target,
            channels=args.channel,
            seed=args.seed,
            workers=args.workers,
            overrides=overrides,
            include_nc=not args.no_nc,
        )
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 2
    except ValueError as e:
        logger.error(f"❌ {e}")
        return 1

    db = EventDB(Path(args.db))
    event_ids = db.store_records(results["records"])

    print("\n" + "=" * 60)
    print("✅ Generation Complete")
    print("=" * 60)
    print(f"Successful events : {results['success']}/{results['total']}")
    print(f"Failed events     : {results['failed']}")
    print(f"Success rate      : {results['success_rate']:.2%}")
    print(f"Total attempts    : {results['attempts']}")
    if results["failures"]:
        print("Failed attempts by kind:")
        for kind, n in sorted(results["failures"].items()):
            print(f"  • {kind:24s}: {n}")
    if event_ids:
        print(f"Event ID range    : {min(event_ids)} - {max(event_ids)}")
    else:
        print("No events generated.")
    print("=" * 60 + "\n")

    if args.output:
        export_events_to_csv(db, event_ids, args.output)

    if args.stats and results["success"] > 0:
        print_event_stats(db)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
