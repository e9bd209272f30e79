"""
Pharmacokinetic model equations.

Closed-form concentration-time curves for first-order absorption models.
All functions accept a scalar or an array of times and return the same
shape (a float for scalar input).
"""

from typing import Sequence, Union
import numpy as np
import pandas as pd


ArrayLike = Union[float, Sequence[float], np.ndarray]

# Sampling schedule (hours) used by the simulated PK study
DEFAULT_TIME_POINTS = [0.0, 0.5, 1.0, 2.0, 4.0, 6.0, 8.0, 12.0, 24.0, 48.0, 72.0]


def _as_time_array(t: ArrayLike):
    t_arr = np.asarray(t, dtype=float)
    return np.atleast_1d(t_arr), t_arr.ndim == 0


def _rates_equal(a: float, b: float) -> bool:
    return bool(np.isclose(a, b, rtol=1e-9, atol=0.0))


def one_compartment_concentration(t: ArrayLike, dose: float, ka: float, ke: float, vd: float):
    """
    One-compartment model with first-order absorption and elimination.

        C(t) = Dose*Ka / (Vd*(Ka-Ke)) * (exp(-Ke*t) - exp(-Ka*t))

    Concentrations are 0 for t <= 0 and floored at 0. When Ka == Ke the
    limit Dose*k*t*exp(-k*t)/Vd is used.

    Args:
        t: Time point(s)
        dose: Administered dose
        ka: Absorption rate constant (1/h)
        ke: Elimination rate constant (1/h)
        vd: Volume of distribution

    Returns:
        Concentration(s) with the shape of ``t``
    """
    if vd <= 0:
        raise ValueError(f"Volume of distribution must be positive, got {vd}")

    times, scalar = _as_time_array(t)
    conc = np.zeros_like(times)
    pos = times > 0
    tp = times[pos]

    if _rates_equal(ka, ke):
        conc[pos] = dose * ke * tp * np.exp(-ke * tp) / vd
    else:
        conc[pos] = (dose * ka) / (vd * (ka - ke)) * (np.exp(-ke * tp) - np.exp(-ka * tp))

    conc = np.maximum(conc, 0.0)
    return float(conc[0]) if scalar else conc


def two_compartment_concentration(
    t: ArrayLike,
    dose: float,
    ka: float,
    ke: float,
    vd: float,
    v2: float,
    q12: float,
):
    """
    Two-compartment model with first-order absorption.

    ``ke`` is the elimination rate from the central compartment (volume
    ``vd``), ``v2`` the peripheral volume and ``q12`` the intercompartmental
    clearance. Disposition follows the hybrid rate constants alpha > beta.
    """
    if vd <= 0 or v2 <= 0:
        raise ValueError("Compartment volumes must be positive")

    k12 = q12 / vd
    k21 = q12 / v2
    total = ke + k12 + k21
    root = np.sqrt(total ** 2 - 4.0 * ke * k21)
    alpha = (total + root) / 2.0
    beta = (total - root) / 2.0
    if _rates_equal(ka, alpha) or _rates_equal(ka, beta) or _rates_equal(alpha, beta):
        raise ValueError("Absorption rate coincides with a disposition rate constant")

    times, scalar = _as_time_array(t)
    conc = np.zeros_like(times)
    pos = times > 0
    tp = times[pos]

    a = (k21 - alpha) / ((ka - alpha) * (beta - alpha))
    b = (k21 - beta) / ((ka - beta) * (alpha - beta))
    c = (k21 - ka) / ((alpha - ka) * (beta - ka))
    conc[pos] = (ka * dose / vd) * (a * np.exp(-alpha * tp) + b * np.exp(-beta * tp) + c * np.exp(-ka * tp))

    conc = np.maximum(conc, 0.0)
    return float(conc[0]) if scalar else conc


def analytic_tmax(ka: ArrayLike, ke: ArrayLike):
    """Time of peak concentration for the one-compartment model."""
    ka_arr = np.asarray(ka, dtype=float)
    ke_arr = np.asarray(ke, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        tmax = np.where(
            np.isclose(ka_arr, ke_arr, rtol=1e-9, atol=0.0),
            1.0 / ke_arr,
            np.log(ka_arr / ke_arr) / (ka_arr - ke_arr),
        )
    return float(tmax) if tmax.ndim == 0 else tmax


def concentration_profile(
    times: Sequence[float],
    dose: float,
    ka: float,
    ke: float,
    vd: float,
) -> pd.DataFrame:
    times_arr = np.asarray(list(times), dtype=float)
    return pd.DataFrame({
        "TIME": times_arr,
        "CONC": one_compartment_concentration(times_arr, dose, ka, ke, vd),
    })
