# pump_store.py
import copy
import json
import logging
import os
import sqlite3
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from hydraulics import MeasurementReading, SystemConfiguration, parse_number

logger = logging.getLogger(__name__)

# =========================
# Paths & constants
# =========================
APP_ROOT = Path(__file__).resolve().parent
DB_PATH = Path(os.environ.get("PUMP_EFFICIENCY_DB", APP_ROOT / "database" / "pump_efficiency.db"))
STORAGE_SLOT = "pump-efficiency-storage"

DEFAULT_FORM = {
    "nmotor": "0.85",
    "length_of_pipe": "",
    "dia_of_pipe": "",
    "depth_of_water_table": "",
    "draw_down": "",
    "pmotor_input_power": "",
    "power_factor": "",
    "q": "",
    "pressure_gauge_value": "",
    "k1": "",
    "k2": "",
    "k3": "",
    "k4": "",
    "k5": "",
    "k6": "",
}

READING_FIELDS = ["motor_input_power", "flow_rate", "gauge_pressure"]
READING_COLUMNS = ["reading_id"] + READING_FIELDS


def form_to_configuration(form: Dict[str, str]) -> SystemConfiguration:
    return SystemConfiguration(
        pipe_length=parse_number(form.get("length_of_pipe")),
        pipe_diameter=parse_number(form.get("dia_of_pipe")),
        static_suction_depth=parse_number(form.get("depth_of_water_table")),
        draw_down=parse_number(form.get("draw_down")),
        motor_efficiency=parse_number(form.get("nmotor")),
        flow_rate=parse_number(form.get("q")),
        k=tuple(parse_number(form.get(f"k{i}")) for i in range(1, 7)),
    )


def form_to_reading(form: Dict[str, str]) -> MeasurementReading:
    return MeasurementReading(
        motor_input_power=parse_number(form.get("pmotor_input_power")),
        flow_rate=parse_number(form.get("q")),
        gauge_pressure=parse_number(form.get("pressure_gauge_value")),
    )


def row_to_reading(row: Dict) -> MeasurementReading:
    return MeasurementReading(**{f: parse_number(row.get(f)) for f in READING_FIELDS})


@dataclass
class PumpState:
    """Form values (as typed) plus the saved reading log."""
    form: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FORM))
    readings: List[Dict] = field(default_factory=list)
    next_seq: int = 1

    # ---- form ----
    def update_field(self, name: str, value) -> None:
        if name not in DEFAULT_FORM:
            raise KeyError(f"Unknown form field: {name}")
        self.form[name] = "" if value is None else str(value)

    def reset_form(self) -> None:
        self.form = dict(DEFAULT_FORM)

    def configuration(self) -> SystemConfiguration:
        return form_to_configuration(self.form)

    def live_reading(self) -> MeasurementReading:
        return form_to_reading(self.form)

    # ---- reading log ----
    def _index_of(self, reading_id: str) -> int:
        for i, row in enumerate(self.readings):
            if row["reading_id"] == reading_id:
                return i
        raise KeyError(f"Reading not found: {reading_id}")

    def add_reading(self, reading: MeasurementReading) -> str:
        """Append a reading; ids come from a counter that never goes back."""
        reading_id = f"RD-{self.next_seq:04d}"
        self.next_seq += 1
        self.readings.append({"reading_id": reading_id, **asdict(reading)})
        return reading_id

    def update_reading(self, reading_id: str, **values) -> None:
        unknown = set(values) - set(READING_FIELDS)
        if unknown:
            raise KeyError(f"Unknown reading field(s): {', '.join(sorted(unknown))}")
        row = self.readings[self._index_of(reading_id)]
        for name, val in values.items():
            row[name] = parse_number(val)

    def delete_reading(self, reading_id: str) -> None:
        del self.readings[self._index_of(reading_id)]

    def clear_readings(self) -> None:
        self.readings = []

    def get_reading(self, reading_id: str) -> MeasurementReading:
        return row_to_reading(self.readings[self._index_of(reading_id)])

    def logged_readings(self) -> List[MeasurementReading]:
        return [row_to_reading(r) for r in self.readings]

    def readings_frame(self) -> pd.DataFrame:
        if not self.readings:
            return pd.DataFrame(columns=READING_COLUMNS)
        return pd.DataFrame(self.readings, columns=READING_COLUMNS)

    # ---- serialization ----
    def to_json(self) -> str:
        return json.dumps({"form": self.form, "readings": self.readings, "next_seq": self.next_seq})

    @classmethod
    def from_json(cls, payload: str) -> "PumpState":
        data = json.loads(payload)
        form = dict(DEFAULT_FORM)
        form.update({k: str(v) for k, v in data.get("form", {}).items() if k in DEFAULT_FORM})
        readings = []
        for row in data.get("readings", []):
            readings.append({
                "reading_id": str(row["reading_id"]),
                **{f: parse_number(row.get(f)) for f in READING_FIELDS},
            })
        next_seq = int(data.get("next_seq", len(readings) + 1))
        return cls(form=form, readings=readings, next_seq=next_seq)


# =========================
# DB helpers
# =========================
def get_connection(db_path: Optional[Path] = None):
    path = Path(db_path or DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(path, check_same_thread=False)


def init_db(db_path: Optional[Path] = None):
    with get_connection(db_path) as conn:
        conn.execute("""
        CREATE TABLE IF NOT EXISTS app_state (
            slot TEXT PRIMARY KEY,
            payload TEXT,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)
        conn.commit()


def load_state(slot: str = STORAGE_SLOT, db_path: Optional[Path] = None) -> PumpState:
    """Load the state in ``slot``; empty or corrupt slots give defaults."""
    init_db(db_path)
    with get_connection(db_path) as conn:
        row = conn.execute("SELECT payload FROM app_state WHERE slot=?", (slot,)).fetchone()
    if row is None or not row[0]:
        return PumpState()
    try:
        return PumpState.from_json(row[0])
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning("Stored state in slot %r is unreadable, using defaults: %s", slot, e)
        return PumpState()


def save_state(state: PumpState, slot: str = STORAGE_SLOT, db_path: Optional[Path] = None) -> None:
    init_db(db_path)
    with get_connection(db_path) as conn:
        conn.execute("""
        INSERT INTO app_state (slot, payload, updated_at)
        VALUES (?, ?, CURRENT_TIMESTAMP)
        ON CONFLICT(slot) DO UPDATE SET
          payload=excluded.payload,
          updated_at=excluded.updated_at
        """, (slot, state.to_json()))
        conn.commit()
    logger.debug("Saved state to slot %r (%d readings)", slot, len(state.readings))


def commit(state: PumpState, change, *args, slot: str = STORAGE_SLOT, db_path: Optional[Path] = None, **kwargs):
    """
    Apply ``change`` (a bound PumpState method) and save the result.

    If the save fails, ``state`` is restored to what it was before the change
    and the ``sqlite3.Error`` is re-raised, so memory never holds unsaved edits.
    """
    before = (dict(state.form), copy.deepcopy(state.readings), state.next_seq)
    result = change(*args, **kwargs)
    try:
        save_state(state, slot, db_path)
    except sqlite3.Error:
        state.form, state.readings, state.next_seq = before
        logger.warning("Save to slot %r failed; change rolled back", slot)
        raise
    return result


def reset_state(slot: str = STORAGE_SLOT, db_path: Optional[Path] = None) -> PumpState:
    state = PumpState()
    save_state(state, slot, db_path)
    logger.info("Reset slot %r to defaults", slot)
    return state
