# hydraulics.py
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

# -------------------------
# Constants
# -------------------------
PI = 3.1416          # kept at 4 dp so results match the field sheets
G = 9.81             # gravity m/s^2
WATER_DENSITY = 1000.0
RE_SCALE = 1e6       # Re = 1e6 * v * d (water, fixed kinematic viscosity)
LAMINAR_LIMIT = 2000.0
PSI_TO_M_HEAD = 0.7032
LPM_PER_M3H = 16.67

# Piping network fitting constants (K values)
PIPING_CONSTANTS = {
    "K1": 0.6,    # 90° elbow
    "K2": 0.15,   # gate valve (open)
    "K3": 4.0,    # foot valve
    "K4": 2.0,    # swing check valve
    "K5": 0.5,    # entrance (sharp)
    "K6": 1.0,    # exit
}

PIPING_LABELS = {
    "K1": "K1 (90° elbow)",
    "K2": "K2 (gate valve)(open)",
    "K3": "K3 (foot valve)",
    "K4": "K4 (swing check valve)",
    "K5": "K5 Entrance (sharp)",
    "K6": "K6 (exit)",
}


def parse_number(value) -> float:
    """Return a float from user input; blank, bad or non-finite values give 0."""
    if value is None:
        return 0.0
    try:
        # float() syntax: "1_000" is 1000, "1e3" is 1000, "infinity" is dropped below
        num = float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0
    return num if math.isfinite(num) else 0.0


# -------------------------
# Data model
# -------------------------
@dataclass(frozen=True)
class SystemConfiguration:
    pipe_length: float = 0.0
    pipe_diameter: float = 0.0
    static_suction_depth: float = 0.0
    draw_down: float = 0.0
    motor_efficiency: float = 0.85
    flow_rate: float = 0.0          # m3/h from the form, drives v / Re / losses
    k: tuple = (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class MeasurementReading:
    motor_input_power: float = 0.0  # kW
    flow_rate: float = 0.0          # m3/h
    gauge_pressure: float = 0.0     # psi


@dataclass(frozen=True)
class CalculationResult:
    flow_rate_m3s: float
    k_total: float
    velocity: float
    reynolds_number: float
    friction_factor: float
    flow_regime: str
    friction_head_loss: float
    minor_head_loss: float
    pressure_head: float
    total_head: float
    hydraulic_power: float
    shaft_power: float
    overall_efficiency: float
    pump_efficiency: float


# -------------------------
# Engine
# -------------------------
def net_loss_coefficients(configuration: SystemConfiguration) -> Dict[str, float]:
    """Net K per fitting: fixed fitting constant times the user multiplier."""
    return {
        key: const * configuration.k[i]
        for i, (key, const) in enumerate(PIPING_CONSTANTS.items())
    }


def total_loss_coefficient(configuration: SystemConfiguration) -> float:
    return sum(net_loss_coefficients(configuration).values())


def flow_velocity(flow_m3s: float, diameter: float) -> float:
    # area can underflow to 0 (or overflow to inf) for extreme diameters
    area = PI * diameter * diameter
    if diameter > 0 and area > 0:
        return (4 * flow_m3s) / area
    return 0.0


def reynolds_number(velocity: float, diameter: float) -> float:
    return RE_SCALE * velocity * diameter


def flow_regime(re: float) -> str:
    return "Laminar" if re < LAMINAR_LIMIT else "Turbulent"


def friction_factor(re: float) -> float:
    if re < LAMINAR_LIMIT:
        return 64.0 / re if re > 0 else 0.0
    # Blasius, smooth pipe
    return 0.3164 * re ** -0.25


def calculate(configuration: SystemConfiguration, reading: MeasurementReading) -> CalculationResult:
    """
    Compute pump hydraulics for one reading.

    Velocity, Reynolds number, friction factor and both head losses come from
    the configuration's own flow rate. Pressure head, total head, hydraulic
    power, efficiencies and shaft power come from ``reading``. Zero
    denominators resolve to 0; nothing is raised.
    """
    k_total = total_loss_coefficient(configuration)
    d = configuration.pipe_diameter

    # shared terms (form flow rate)
    q_form_m3s = configuration.flow_rate / 3600.0
    v = flow_velocity(q_form_m3s, d)
    re = reynolds_number(v, d)
    f = friction_factor(re)
    hf = f * (configuration.pipe_length / d) * v * v / (2 * G) if d > 0 and v != 0 else 0.0
    h_minor = k_total * v * v / (2 * G)

    # per-reading terms
    q_m3s = reading.flow_rate / 3600.0
    pressure_head = PSI_TO_M_HEAD * reading.gauge_pressure
    total_head = (
        configuration.static_suction_depth
        + configuration.draw_down
        + hf
        + h_minor
        + pressure_head
    )
    p_hyd = (WATER_DENSITY * G * q_m3s * total_head) / 1000.0
    eta_overall = (p_hyd / reading.motor_input_power) * 100.0 if reading.motor_input_power > 0 else 0.0
    # overall % over a fractional motor efficiency, as on the original sheet
    eta_pump = eta_overall / configuration.motor_efficiency if configuration.motor_efficiency > 0 else 0.0
    p_shaft = p_hyd / (eta_pump / 100.0) if eta_pump > 0 else 0.0

    return CalculationResult(
        flow_rate_m3s=q_m3s,
        k_total=k_total,
        velocity=v,
        reynolds_number=re,
        friction_factor=f,
        flow_regime=flow_regime(re),
        friction_head_loss=hf,
        minor_head_loss=h_minor,
        pressure_head=pressure_head,
        total_head=total_head,
        hydraulic_power=p_hyd,
        shaft_power=p_shaft,
        overall_efficiency=eta_overall,
        pump_efficiency=eta_pump,
    )


# -------------------------
# Display helpers
# -------------------------
RESULT_FORMATS = [
    # (attribute, label, unit, decimals)
    ("velocity", "Flow velocity", "m/s", 3),
    ("reynolds_number", "Reynolds number", "", 0),
    ("friction_factor", "Friction factor", "", 6),
    ("friction_head_loss", "Friction head loss", "m", 4),
    ("minor_head_loss", "Minor head loss", "m", 4),
    ("pressure_head", "Pressure head", "m", 4),
    ("total_head", "Total head", "m", 4),
    ("hydraulic_power", "Hydraulic power", "kW", 4),
    ("shaft_power", "Shaft power", "kW", 4),
    ("overall_efficiency", "Overall efficiency", "%", 2),
    ("pump_efficiency", "Pump efficiency", "%", 2),
]


def format_result(result: CalculationResult) -> Dict[str, str]:
    out = {}
    for attr, label, unit, decimals in RESULT_FORMATS:
        text = f"{getattr(result, attr):.{decimals}f}"
        out[label] = f"{text} {unit}".strip()
    out["Flow regime"] = result.flow_regime
    return out


def head_flow_series(configuration: SystemConfiguration,
                     readings: Iterable[MeasurementReading]) -> pd.DataFrame:
    """Head vs flow points (flow in L/min), highest flow first."""
    readings = list(readings)
    heads = [calculate(configuration, r).total_head for r in readings]
    flows_lpm = np.asarray([r.flow_rate for r in readings], dtype=float) * LPM_PER_M3H
    df = pd.DataFrame({"Flow (L/min)": flows_lpm, "Head (m)": heads})
    return df.sort_values(by="Flow (L/min)", ascending=False, kind="mergesort").reset_index(drop=True)


def efficiency_rating(efficiency_pct: float) -> str:
    if efficiency_pct < 60:
        return "Poor"
    if efficiency_pct <= 80:
        return "Fair"
    return "Good"


EFFICIENCY_GUIDELINES: List[Dict[str, str]] = [
    {"rating": "Poor", "range": "< 60%", "advice": "Consider pump replacement or maintenance"},
    {"rating": "Fair", "range": "60% - 80%", "advice": "Monitor performance and consider optimization"},
    {"rating": "Good", "range": "> 80%", "advice": "Excellent pump performance"},
]


def quick_efficiency(flow_m3s, head_m, power_input_kw, density=WATER_DENSITY) -> Optional[Dict[str, float]]:
    """
    Single-point efficiency: P_out = Q * H * rho * g / 1000 (kW), eta = P_out / P_in * 100.
    Returns None unless all four inputs are non-zero.
    """
    q = parse_number(flow_m3s)
    h = parse_number(head_m)
    p_in = parse_number(power_input_kw)
    rho = parse_number(density)
    if not (q and h and p_in and rho):
        return None
    p_out = (q * h * rho * G) / 1000.0
    return {"power_output": p_out, "efficiency": (p_out / p_in) * 100.0}
