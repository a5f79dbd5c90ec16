import sqlite3
import json
from pathlib import Path
from datetime import datetime
from typing import List, Optional, Dict, Any
from contextlib import contextmanager

from .config import DB_PATH
from .conservation import check_record_conservation
from .event_record import EventRecord, Status
from .kinematics import FourVector


class EventDB:
    """
    Handles storage of generated neutrino events in nugenx.db.
    Each event stores the interaction summary, the full particle listing
    with 4-vectors, status codes and parents, and the result of the
    conservation check of initial against final state.
    """

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = db_path
        self.create_table()

    @contextmanager
    def get_connection(self):
        """Context manager for safe DB access."""
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def create_table(self):
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    event_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    channel TEXT,
                    interaction TEXT,
                    probe_pdg INTEGER,
                    probe_energy REAL,
                    target_pdg INTEGER,
                    pdg_codes TEXT,
                    status_codes TEXT,
                    parents TEXT,
                    E_values TEXT,
                    px_values TEXT,
                    py_values TEXT,
                    pz_values TEXT,
                    flags TEXT,
                    diff_xsec REAL,
                    weight REAL,
                    Q2 REAL,
                    W REAL,
                    energy_conserved INTEGER,
                    momentum_conserved INTEGER,
                    charge_conserved INTEGER,
                    timestamp TEXT
                )
            """)

    def store_record(self, record: EventRecord, tolerance: float = 1e-6) -> int:
        """
        Store one event record with automatic conservation validation.
        Returns the new event_id.
        """
        interaction = record.interaction
        entries = list(record)
        check = check_record_conservation(record, tolerance)
        energy_conserved = abs(check["deltaE"]) < tolerance
        momentum_conserved = all(abs(check[k]) < tolerance for k in ("deltaPx", "deltaPy", "deltaPz"))

        selected = interaction.kine.selected
        q2 = selected.get("Q2")
        w = selected.get("W")

        with self.get_connection() as conn:
            cur = conn.execute("""
                INSERT INTO events (
                    channel, interaction, probe_pdg, probe_energy, target_pdg,
                    pdg_codes, status_codes, parents, E_values, px_values, py_values, pz_values,
                    flags, diff_xsec, weight, Q2, W,
                    energy_conserved, momentum_conserved, charge_conserved, timestamp
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                interaction.channel, interaction.as_string(), interaction.probe_pdg,
                interaction.probe_energy, interaction.target.pdg,
                json.dumps([p.pdg for p in entries]),
                json.dumps([int(p.status) for p in entries]),
                json.dumps([p.parent for p in entries]),
                json.dumps([p.momentum.E for p in entries]),
                json.dumps([p.momentum.px for p in entries]),
                json.dumps([p.momentum.py for p in entries]),
                json.dumps([p.momentum.pz for p in entries]),
                json.dumps(sorted(f.value for f in record.flags)),
                record.diff_xsec, record.weight, q2, w,
                int(energy_conserved), int(momentum_conserved), int(check["charge_conserved"]),
                datetime.now().isoformat(timespec="seconds")
            ))
            return cur.lastrowid

    def store_records(self, records: List[EventRecord], tolerance: float = 1e-6) -> List[int]:
        return [self.store_record(r, tolerance) for r in records]

    def parse_event(self, event_id: int) -> Optional[Dict[str, Any]]:
        """
        Reconstruct an event's particle listing with FourVector objects.
        Returns None if event_id not found.
        """
        with self.get_connection() as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.cursor()
            cur.execute("SELECT * FROM events WHERE event_id = ?", (event_id,))
            row = cur.fetchone()

        if not row:
            return None

        pdgs = json.loads(row["pdg_codes"])
        statuses = json.loads(row["status_codes"])
        parents = json.loads(row["parents"])
        momenta = [
            FourVector(E, px, py, pz)
            for E, px, py, pz in zip(json.loads(row["E_values"]), json.loads(row["px_values"]),
                                     json.loads(row["py_values"]), json.loads(row["pz_values"]))
        ]
        particles = [
            {"pdg": pdg, "status": Status(status), "parent": parent, "momentum": p4}
            for pdg, status, parent, p4 in zip(pdgs, statuses, parents, momenta)
        ]

        return {
            "event_id": row["event_id"],
            "channel": row["channel"],
            "interaction": row["interaction"],
            "probe_pdg": row["probe_pdg"],
            "probe_energy": row["probe_energy"],
            "target_pdg": row["target_pdg"],
            "particles": particles,
            "flags": json.loads(row["flags"]),
            "diff_xsec": row["diff_xsec"],
            "weight": row["weight"],
            "Q2": row["Q2"],
            "W": row["W"],
            "energy_conserved": bool(row["energy_conserved"]),
            "momentum_conserved": bool(row["momentum_conserved"]),
            "charge_conserved": bool(row["charge_conserved"]),
            "timestamp": row["timestamp"]
        }

    def list_events(
        self,
        limit: int = 10,
        channel: Optional[str] = None,
        conserved_only: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Return recent events, optionally filtered.

        Args:
            limit: Max number of events to return
            channel: Filter by channel (e.g., "QEL")
            conserved_only: Only return events with perfect conservation
        """
        with self.get_connection() as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.cursor()

            query = "SELECT * FROM events WHERE 1=1"
            params: List[Any] = []

            if channel:
                query += " AND channel = ?"
                params.append(channel)

            if conserved_only:
                query += " AND energy_conserved = 1 AND momentum_conserved = 1 AND charge_conserved = 1"

            query += " ORDER BY event_id DESC LIMIT ?"
            params.append(limit)

            cur.execute(query, params)
            return [dict(row) for row in cur.fetchall()]

    def q2_values(self, channel: Optional[str] = None) -> List[float]:
        with self.get_connection() as conn:
            query = "SELECT Q2 FROM events WHERE Q2 IS NOT NULL"
            params: List[Any] = []
            if channel:
                query += " AND channel = ?"
                params.append(channel)
            return [row[0] for row in conn.execute(query, params).fetchall()]

    def stats(self) -> Dict[str, Any]:
        """Get summary statistics."""
        with self.get_connection() as conn:
            cur = conn.cursor()

            cur.execute("SELECT COUNT(*) FROM events")
            total = cur.fetchone()[0]

            cur.execute("SELECT COUNT(*) FROM events WHERE energy_conserved = 1 AND momentum_conserved = 1")
            p4_conserved = cur.fetchone()[0]

            cur.execute("SELECT COUNT(*) FROM events WHERE charge_conserved = 1")
            q_conserved = cur.fetchone()[0]

            cur.execute("SELECT channel, COUNT(*) FROM events GROUP BY channel")
            by_channel = {channel: n for channel, n in cur.fetchall()}

            cur.execute("SELECT AVG(Q2) FROM events WHERE Q2 IS NOT NULL")
            avg_q2 = cur.fetchone()[0] or 0.0

        return {
            "total_events": total,
            "four_momentum_conserved": p4_conserved,
            "charge_conserved": q_conserved,
            "by_channel": by_channel,
            "average_Q2": avg_q2,
            "conservation_rate": p4_conserved / total if total > 0 else 0.0
        }

    def clear_events(self):
        """Delete all events (use with caution!)."""
        with self.get_connection() as conn:
            conn.execute("DELETE FROM events")
