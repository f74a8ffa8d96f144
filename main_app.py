import logging
import sqlite3

import streamlit as st

from hydraulics import (
    EFFICIENCY_GUIDELINES,
    PIPING_CONSTANTS,
    PIPING_LABELS,
    calculate,
    efficiency_rating,
    format_result,
)
from pump_store import DEFAULT_FORM, commit, load_state, reset_state, save_state

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# ------------------------------------------------------
# Page Configuration
# ------------------------------------------------------
st.set_page_config(
    page_title="Pump Efficiency Calculator",
    page_icon="💧",
    layout="wide"
)

# ------------------------------------------------------
# Header Section
# ------------------------------------------------------
st.title("💧 Pump Efficiency Calculator")
st.markdown("""
Enter the installation and field measurements below. Results update as you type.
Blank or invalid entries count as **0**.
""")

st.divider()

if "pump_state" not in st.session_state:
    st.session_state.pump_state = load_state()
state = st.session_state.pump_state

if "flash" in st.session_state:
    st.toast(st.session_state.pop("flash"))


def clear_form_widgets():
    """Drop widget values so inputs pick up the stored form on the next run."""
    for name in DEFAULT_FORM:
        st.session_state.pop(f"form_{name}", None)


def field_input(label: str, name: str, placeholder: str = "", container=st):
    """Text input bound to a persisted form field (kept exactly as typed)."""
    val = container.text_input(label, value=state.form[name], placeholder=placeholder, key=f"form_{name}")
    if val != state.form[name]:
        state.update_field(name, val)
        st.session_state.form_dirty = True


# ------------------------------------------------------
# Layout: left inputs / right results
# ------------------------------------------------------
left, right = st.columns([2, 2])

with left:
    st.subheader("⚙️ Pump & Pipe Parameters")
    c1, c2 = st.columns(2)
    with c1:
        field_input("Motor efficiency ηmotor (fraction)", "nmotor", "0.85", c1)
        field_input("Length of pipe L (m)", "length_of_pipe", "e.g. 50", c1)
        field_input("Diameter of pipe d (m)", "dia_of_pipe", "e.g. 0.1", c1)
        field_input("Depth of water table (m)", "depth_of_water_table", "e.g. 5", c1)
        field_input("Draw down (m)", "draw_down", "e.g. 2", c1)
    with c2:
        field_input("Motor input power P (kW)", "pmotor_input_power", "e.g. 10", c2)
        field_input("Power factor", "power_factor", "e.g. 0.8", c2)
        field_input("Flow rate Q (m³/h)", "q", "e.g. 36", c2)
        field_input("Pressure gauge value (psi)", "pressure_gauge_value", "e.g. 20", c2)

    st.markdown("**Piping Network** (number of fittings / multiplier)")
    kcols = st.columns(3)
    for i, key in enumerate(PIPING_CONSTANTS):
        col = kcols[i % 3]
        field_input(f"{PIPING_LABELS[key]} · K={PIPING_CONSTANTS[key]}", key.lower(), "0", col)

    if st.session_state.pop("form_dirty", False):
        try:
            save_state(state)
        except sqlite3.Error as e:
            st.error(f"Failed to save form: {e}")

    b1, b2 = st.columns(2)
    with b1:
        if st.button("💾 Save reading to log", use_container_width=True, key="save_reading"):
            try:
                reading_id = commit(state, state.add_reading, state.live_reading())
                st.success(f"Saved {reading_id}. See the Measurement Log page.")
            except sqlite3.Error as e:
                st.error(f"Failed to save reading: {e}")
    with b2:
        if st.button("🧹 Reset form", use_container_width=True, key="reset_form"):
            try:
                commit(state, state.reset_form)
            except sqlite3.Error as e:
                st.error(f"Failed to reset form: {e}")
            else:
                clear_form_widgets()
                st.session_state.flash = "Form reset to defaults."
                st.rerun()

    with st.expander("Reset all (form and measurement log)"):
        confirm_all = st.checkbox("I want to erase the form and every saved reading", key="confirm_reset_all")
        if st.button("⚠️ Reset all", disabled=not confirm_all, key="reset_all"):
            try:
                st.session_state.pump_state = reset_state()
            except sqlite3.Error as e:
                st.error(f"Failed to reset saved data: {e}")
            else:
                clear_form_widgets()
                st.session_state.flash = "Form and measurement log cleared."
                st.rerun()

# ------------------------------------------------------
# Results
# ------------------------------------------------------
result = calculate(state.configuration(), state.live_reading())
shown = format_result(result)

with right:
    st.subheader("📊 Results")
    m1, m2, m3 = st.columns(3)
    m1.metric("Pump efficiency", shown["Pump efficiency"] if result.pump_efficiency else "---")
    m2.metric("Overall efficiency", shown["Overall efficiency"] if result.overall_efficiency else "---")
    m3.metric("Total head", shown["Total head"])

    if result.pump_efficiency:
        rating = efficiency_rating(result.pump_efficiency)
        msg = next(g["advice"] for g in EFFICIENCY_GUIDELINES if g["rating"] == rating)
        if rating == "Good":
            st.success(f"{rating} efficiency — {msg}")
        elif rating == "Fair":
            st.warning(f"{rating} efficiency — {msg}")
        else:
            st.error(f"{rating} efficiency — {msg}")

    st.write(f"- Total loss coefficient ΣK = **{result.k_total:.3f}**")
    st.write(f"- Flow rate Q = **{result.flow_rate_m3s:.6f} m³/s**")
    for label, text in shown.items():
        st.write(f"- {label} = **{text}**")

    with st.expander("Formulas used"):
        st.markdown(
            "- v = 4Q / (π d²), π = 3.1416\n"
            "- Re = 10⁶ · v · d; laminar if Re < 2000 (f = 64/Re), else f = 0.3164 · Re^-0.25\n"
            "- h_f = f (L/d) v² / 2g, h_minor = ΣK v² / 2g, g = 9.81 m/s²\n"
            "- Pressure head = 0.7032 × psi\n"
            "- H = depth of water table + draw down + h_f + h_minor + pressure head\n"
            "- P_hyd = ρ g Q H / 1000 (kW)\n"
            "- η_overall = P_hyd / P_in × 100; η_pump = η_overall / η_motor; P_shaft = P_hyd / (η_pump/100)"
        )

st.divider()
st.caption("Saved readings, head vs flow chart and exports are on the **Measurement Log** page.")
