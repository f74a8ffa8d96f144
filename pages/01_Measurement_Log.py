# pages/01_Measurement_Log.py
import sqlite3
from datetime import datetime
from pathlib import Path

import pandas as pd
import plotly.express as px
import streamlit as st

from hydraulics import calculate, head_flow_series
from pump_store import APP_ROOT, READING_FIELDS, commit, load_state, row_to_reading

st.set_page_config(page_title="Measurement Log", page_icon="📋", layout="wide")

# ---------------------------
# Paths & constants
# ---------------------------
EXPORTS_DIR = APP_ROOT / "exports"
EXPORTS_DIR.mkdir(parents=True, exist_ok=True)

FIELD_LABELS = {
    "motor_input_power": "Motor input power (kW)",
    "flow_rate": "Flow rate (m³/h)",
    "gauge_pressure": "Gauge pressure (psi)",
}


def results_table(state) -> pd.DataFrame:
    """Saved readings with their computed results (shared form configuration)."""
    config = state.configuration()
    rows = []
    for row in state.readings_frame().to_dict("records"):
        r = calculate(config, row_to_reading(row))
        rows.append({
            "Reading": row["reading_id"],
            FIELD_LABELS["motor_input_power"]: row["motor_input_power"],
            FIELD_LABELS["flow_rate"]: row["flow_rate"],
            FIELD_LABELS["gauge_pressure"]: row["gauge_pressure"],
            "Pressure head (m)": round(r.pressure_head, 4),
            "Total head (m)": round(r.total_head, 4),
            "Hydraulic power (kW)": round(r.hydraulic_power, 4),
            "Shaft power (kW)": round(r.shaft_power, 4),
            "Overall eff. (%)": round(r.overall_efficiency, 2),
            "Pump eff. (%)": round(r.pump_efficiency, 2),
        })
    return pd.DataFrame(rows)


def persist(change, *args, message: str = "", **kwargs) -> bool:
    """Apply a change to the log and save it; False (with the error shown) if saving failed."""
    try:
        commit(state, change, *args, **kwargs)
    except sqlite3.Error as e:
        st.error(f"Failed to save log, change not applied: {e}")
        return False
    if message:
        st.session_state.flash = message
    return True


# ---------------------------
# Page title & KPIs
# ---------------------------
st.title("📋 Measurement Log")

if "pump_state" not in st.session_state:
    st.session_state.pump_state = load_state()
state = st.session_state.pump_state

if "flash" in st.session_state:
    st.toast(st.session_state.pop("flash"))

df_results = results_table(state)
k1, k2, k3 = st.columns(3)
k1.metric("Saved readings", len(state.readings))
k2.metric("Best pump eff.", f"{df_results['Pump eff. (%)'].max():.2f} %" if not df_results.empty else "—")
k3.metric("Avg total head", f"{df_results['Total head (m)'].mean():.2f} m" if not df_results.empty else "—")

st.caption("Velocity, Reynolds number and losses use the flow rate on the main form; "
           "head, power and efficiencies use each reading's own values.")

st.divider()

left, right = st.columns([2, 2])

# -------- LEFT: add / edit / delete --------
with left:
    st.subheader("Add / Edit Reading")

    ids = [r["reading_id"] for r in state.readings]
    edit_id = st.selectbox("Reading", options=["-- New --"] + ids, index=0, key="log_select")
    editing = edit_id != "-- New --"
    current = state.get_reading(edit_id) if editing else None

    c1, c2, c3 = st.columns(3)
    values = {}
    for col, name in zip((c1, c2, c3), READING_FIELDS):
        with col:
            default = "" if current is None else str(getattr(current, name))
            values[name] = st.text_input(FIELD_LABELS[name], value=default, key=f"log_{name}_{edit_id}")

    b1, b2 = st.columns(2)
    with b1:
        if st.button("💾 Save / Update", use_container_width=True, key="log_save"):
            if editing:
                ok = persist(state.update_reading, edit_id, message=f"Updated {edit_id}", **values)
            else:
                ok = persist(state.add_reading, row_to_reading(values), message="Reading added")
            if ok:
                st.rerun()
    with b2:
        if st.button("🗑️ Delete", use_container_width=True, disabled=not editing, key="log_delete"):
            if persist(state.delete_reading, edit_id, message=f"Deleted {edit_id}"):
                st.rerun()

    st.markdown("**Danger zone**")
    confirm = st.checkbox("I want to clear all saved readings", key="log_confirm_clear")
    if st.button("🧹 Clear log", disabled=not confirm, key="log_clear"):
        if persist(state.clear_readings, message="Log cleared."):
            st.rerun()

# -------- RIGHT: table + chart + exports --------
with right:
    st.subheader("Saved Readings")
    if df_results.empty:
        st.info("No readings saved yet. Use the form here or **Save reading to log** on the main page.")
    else:
        st.dataframe(df_results, use_container_width=True, hide_index=True)

        series = head_flow_series(state.configuration(), state.logged_readings())
        fig = px.line(series, x="Flow (L/min)", y="Head (m)", title="Head vs Flow", markers=True)
        st.plotly_chart(fig, use_container_width=True)

        if st.button("⬇️ Export log (Excel & CSV)"):
            ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            xlsx_path = EXPORTS_DIR / f"pump_log_{ts}.xlsx"
            csv_path = EXPORTS_DIR / f"pump_log_{ts}.csv"
            try:
                with pd.ExcelWriter(xlsx_path, engine="openpyxl") as xw:
                    df_results.to_excel(xw, index=False, sheet_name="readings")
                    pd.DataFrame([state.form]).to_excel(xw, index=False, sheet_name="configuration")
                df_results.to_csv(csv_path, index=False)
                with open(xlsx_path, "rb") as fx:
                    st.download_button("Download Excel", data=fx.read(), file_name=Path(xlsx_path).name, key="exp_xlsx")
                with open(csv_path, "rb") as fc:
                    st.download_button("Download CSV", data=fc.read(), file_name=Path(csv_path).name, key="exp_csv")
                st.success("Exported successfully.")
            except PermissionError:
                st.error("Cannot write export files (permission denied). Close any open files and try again.")
            except OSError as e:
                st.error(f"Export failed: {e}")
