import argparse

from nugenx.events import EventDB
from nugenx.particles import PDGLibrary


def print_event(db, event_id):
    event = db.parse_event(event_id)
    if event is None:
        print(f"❌ Event {event_id} not found")
        return
    print(f"=== Event {event['event_id']} ({event['channel']}) ===")
    print(event["interaction"])
    print(f"Q2={event['Q2']}  W={event['W']}  flags={event['flags']}")
    for i, p in enumerate(event["particles"]):
        species = PDGLibrary.find(p["pdg"])
        name = species.name if species is not None else str(p["pdg"])
        p4 = p["momentum"]
        print(f"  [{i:3d}] {name:<14s} {p['status'].name:<20s} parent={p['parent']:3d} "
              f"E={p4.E:9.5f} px={p4.px:9.5f} py={p4.py:9.5f} pz={p4.pz:9.5f}")
    ok = event["energy_conserved"] and event["momentum_conserved"] and event["charge_conserved"]
    print("✅ conserved" if ok else "⚠️ conservation violated")


def main():
    parser = argparse.ArgumentParser(description="Inspect stored NuGenX events")
    parser.add_argument("event_ids", type=int, nargs="*", help="Events to print (default: latest)")
    parser.add_argument("--limit", type=int, default=5)
    parser.add_argument("--channel", default=None)
    args = parser.parse_args()

    db = EventDB()
    ids = args.event_ids or [row["event_id"] for row in db.list_events(args.limit, args.channel)]
    for event_id in ids:
        print_event(db, event_id)


if __name__ == "__main__":
    main()
