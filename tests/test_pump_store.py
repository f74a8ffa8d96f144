import sqlite3

import pytest

from hydraulics import MeasurementReading, calculate
from pump_store import (
    DEFAULT_FORM,
    STORAGE_SLOT,
    PumpState,
    commit,
    load_state,
    reset_state,
    save_state,
)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "database" / "pump_efficiency.db"


@pytest.fixture
def filled_state():
    state = PumpState()
    for name, value in {
        "length_of_pipe": "50",
        "dia_of_pipe": "0.1",
        "depth_of_water_table": "5",
        "draw_down": "2",
        "pmotor_input_power": "10",
        "q": "36",
        "pressure_gauge_value": "20",
    }.items():
        state.update_field(name, value)
    return state


def test_default_form():
    state = PumpState()
    assert state.form == DEFAULT_FORM
    assert state.form["nmotor"] == "0.85"
    assert state.configuration().motor_efficiency == 0.85
    assert state.configuration().pipe_diameter == 0.0
    assert state.readings == []


def test_update_field_keeps_text_and_parses_to_zero(filled_state):
    filled_state.update_field("k1", "two")
    assert filled_state.form["k1"] == "two"
    assert filled_state.configuration().k[0] == 0.0


def test_update_unknown_field():
    with pytest.raises(KeyError):
        PumpState().update_field("viscosity", "1")


def test_live_reading_matches_form(filled_state):
    reading = filled_state.live_reading()
    assert reading == MeasurementReading(motor_input_power=10, flow_rate=36, gauge_pressure=20)
    assert filled_state.configuration().flow_rate == 36


def test_reset_form_keeps_log(filled_state):
    filled_state.add_reading(filled_state.live_reading())
    filled_state.reset_form()
    assert filled_state.form == DEFAULT_FORM
    assert len(filled_state.readings) == 1


def test_ids_never_reused():
    state = PumpState()
    first = state.add_reading(MeasurementReading(1, 1, 1))
    second = state.add_reading(MeasurementReading(2, 2, 2))
    assert (first, second) == ("RD-0001", "RD-0002")
    state.delete_reading(second)
    third = state.add_reading(MeasurementReading(3, 3, 3))
    assert third == "RD-0003"
    state.clear_readings()
    assert state.add_reading(MeasurementReading()) == "RD-0004"


def test_update_reading_only_touches_target():
    state = PumpState()
    a = state.add_reading(MeasurementReading(10, 36, 20))
    b = state.add_reading(MeasurementReading(12, 40, 25))
    state.update_reading(b, flow_rate="45", gauge_pressure="bad")
    assert state.get_reading(a) == MeasurementReading(10, 36, 20)
    assert state.get_reading(b) == MeasurementReading(12, 45, 0)
    assert [r["reading_id"] for r in state.readings] == [a, b]


def test_update_reading_errors():
    state = PumpState()
    rid = state.add_reading(MeasurementReading())
    with pytest.raises(KeyError):
        state.update_reading("RD-9999", flow_rate=1)
    with pytest.raises(KeyError):
        state.update_reading(rid, head=1)


def test_delete_unknown_reading():
    with pytest.raises(KeyError):
        PumpState().delete_reading("RD-0001")


def test_clear_keeps_configuration(filled_state):
    filled_state.add_reading(MeasurementReading(1, 1, 1))
    form = dict(filled_state.form)
    filled_state.clear_readings()
    assert filled_state.readings == []
    assert filled_state.form == form


def test_readings_frame():
    state = PumpState()
    assert list(state.readings_frame().columns) == ["reading_id", "motor_input_power", "flow_rate", "gauge_pressure"]
    state.add_reading(MeasurementReading(10, 36, 20))
    df = state.readings_frame()
    assert df.loc[0, "reading_id"] == "RD-0001"
    assert df.loc[0, "flow_rate"] == 36


def test_logged_reading_uses_shared_configuration(filled_state):
    rid = filled_state.add_reading(MeasurementReading(10, 72, 20))
    live = calculate(filled_state.configuration(), filled_state.live_reading())
    logged = calculate(filled_state.configuration(), filled_state.get_reading(rid))
    assert logged.velocity == live.velocity
    assert logged.friction_head_loss == live.friction_head_loss
    assert logged.hydraulic_power == pytest.approx(2 * live.hydraulic_power)


def test_save_and_load_round_trip(db_path, filled_state):
    filled_state.add_reading(MeasurementReading(10, 36, 20))
    filled_state.add_reading(MeasurementReading(9, 30, 22))
    filled_state.delete_reading("RD-0001")
    save_state(filled_state, db_path=db_path)

    loaded = load_state(db_path=db_path)
    assert loaded.form == filled_state.form
    assert loaded.readings == filled_state.readings
    assert loaded.add_reading(MeasurementReading()) == "RD-0003"


def test_load_empty_slot_gives_defaults(db_path):
    state = load_state(db_path=db_path)
    assert state.form == DEFAULT_FORM
    assert state.readings == []
    assert state.next_seq == 1


def test_last_write_wins(db_path):
    first = PumpState()
    first.update_field("q", "10")
    save_state(first, db_path=db_path)
    second = PumpState()
    second.update_field("q", "20")
    save_state(second, db_path=db_path)
    assert load_state(db_path=db_path).form["q"] == "20"


def test_corrupt_slot_falls_back_to_defaults(db_path, caplog):
    save_state(PumpState(), db_path=db_path)
    with sqlite3.connect(db_path) as conn:
        conn.execute("UPDATE app_state SET payload=? WHERE slot=?", ("{not json", STORAGE_SLOT))
        conn.commit()
    state = load_state(db_path=db_path)
    assert state.form == DEFAULT_FORM
    assert "unreadable" in caplog.text


def test_reset_state_overwrites_slot(db_path, filled_state):
    filled_state.add_reading(MeasurementReading(1, 1, 1))
    save_state(filled_state, db_path=db_path)
    reset_state(db_path=db_path)
    loaded = load_state(db_path=db_path)
    assert loaded.form == DEFAULT_FORM
    assert loaded.readings == []


def test_slots_are_independent(db_path, filled_state):
    save_state(filled_state, slot="site-a", db_path=db_path)
    assert load_state(slot="site-b", db_path=db_path).form == DEFAULT_FORM
    assert load_state(slot="site-a", db_path=db_path).form["q"] == "36"


def _failing_save(*args, **kwargs):
    raise sqlite3.OperationalError("database is locked")


def test_commit_saves_change(db_path):
    state = PumpState()
    rid = commit(state, state.add_reading, MeasurementReading(10, 36, 20), db_path=db_path)
    assert rid == "RD-0001"
    assert load_state(db_path=db_path).readings == state.readings


@pytest.mark.parametrize("action", ["add", "update", "delete", "clear", "reset_form"])
def test_commit_rolls_back_when_save_fails(monkeypatch, db_path, filled_state, action):
    filled_state.add_reading(MeasurementReading(10, 36, 20))
    before = filled_state.to_json()
    monkeypatch.setattr("pump_store.save_state", _failing_save)

    change, args, kwargs = {
        "add": (filled_state.add_reading, (MeasurementReading(1, 2, 3),), {}),
        "update": (filled_state.update_reading, ("RD-0001",), {"flow_rate": "99"}),
        "delete": (filled_state.delete_reading, ("RD-0001",), {}),
        "clear": (filled_state.clear_readings, (), {}),
        "reset_form": (filled_state.reset_form, (), {}),
    }[action]
    with pytest.raises(sqlite3.OperationalError):
        commit(filled_state, change, *args, db_path=db_path, **kwargs)

    assert filled_state.to_json() == before


def test_id_not_consumed_by_failed_add(monkeypatch, db_path):
    state = PumpState()
    monkeypatch.setattr("pump_store.save_state", _failing_save)
    with pytest.raises(sqlite3.Error):
        commit(state, state.add_reading, MeasurementReading(), db_path=db_path)
    monkeypatch.undo()
    assert commit(state, state.add_reading, MeasurementReading(), db_path=db_path) == "RD-0001"
