# pages/02_Quick_Efficiency.py
import streamlit as st

from hydraulics import EFFICIENCY_GUIDELINES, efficiency_rating, quick_efficiency

st.set_page_config(page_title="Quick Efficiency", page_icon="⚡", layout="wide")

st.title("⚡ Quick Pump Efficiency")
st.markdown("Single-point check when head is already known:\n\n"
            "`P_out = (Q × H × ρ × g) / 1000 (kW)` · `η = (P_out / P_in) × 100 %`")

st.divider()

left, right = st.columns([2, 2])

with left:
    st.subheader("Pump Parameters")
    flow = st.text_input("Flow rate (Q) - m³/s", placeholder="Enter flow rate", key="qe_flow")
    head = st.text_input("Head (H) - meters", placeholder="Enter head", key="qe_head")
    p_in = st.text_input("Power input (P_in) - kW", placeholder="Enter power input", key="qe_pin")
    density = st.text_input("Fluid density (ρ) - kg/m³", value="1000", key="qe_rho")

with right:
    st.subheader("Results")
    out = quick_efficiency(flow, head, p_in, density)
    r1, r2 = st.columns(2)
    r1.metric("Pump efficiency", f"{out['efficiency']:.2f}%" if out else "---")
    r2.metric("Power output", f"{out['power_output']:.2f} kW" if out else "---")
    if out:
        st.info(f"Rating: **{efficiency_rating(out['efficiency'])}**")
    st.caption("Where: Q = flow rate (m³/s), H = head (m), ρ = density (kg/m³), g = 9.81 m/s²")

st.divider()

st.subheader("Pump Efficiency Guidelines")
cols = st.columns(len(EFFICIENCY_GUIDELINES))
for col, g in zip(cols, EFFICIENCY_GUIDELINES):
    with col:
        st.markdown(f"**{g['rating']} Efficiency**  \n{g['range']}")
        st.caption(g["advice"])
