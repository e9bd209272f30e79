"""
Tests for PD models, dose-exposure simulation and predictive checks.
"""

import numpy as np
import pandas as pd
import pytest

from pharmadash.pkpd import (
    emax_effect,
    indirect_response,
    recommended_dose,
    simulate_dose_exposure,
    vpc_summary,
)


class TestEmax:
    def test_half_effect_at_ec50(self):
        assert emax_effect(5.0, emax=100.0, ec50=5.0, baseline=10.0) == pytest.approx(60.0)

    def test_zero_concentration_gives_baseline(self):
        assert emax_effect(0.0, emax=100.0, ec50=5.0, baseline=3.0) == pytest.approx(3.0)

    def test_array_input_saturates(self):
        e = emax_effect(np.array([0.0, 1.0, 1e6]), emax=80.0, ec50=2.0, hill=2.0)
        assert isinstance(e, np.ndarray)
        assert np.all(np.diff(e) > 0)
        assert e[-1] == pytest.approx(80.0, rel=1e-6)


class TestIndirectResponse:
    def test_no_drug_stays_at_baseline(self):
        t = np.linspace(0, 24, 49)
        r = indirect_response(t, np.zeros_like(t), kin=10.0, kout=0.5, emax=1.0, ec50=1.0)
        np.testing.assert_allclose(r, 20.0)

    def test_inhibition_lowers_and_stimulation_raises(self):
        t = np.linspace(0, 24, 97)
        c = np.full_like(t, 5.0)
        inhibited = indirect_response(t, c, kin=10.0, kout=0.5, emax=0.8, ec50=1.0, inhibition=True)
        stimulated = indirect_response(t, c, kin=10.0, kout=0.5, emax=0.8, ec50=1.0, inhibition=False)
        assert inhibited[-1] < 20.0 < stimulated[-1]

    def test_invalid_kout_raises(self):
        with pytest.raises(ValueError, match="kout"):
            indirect_response([0, 1], [0, 1], kin=1.0, kout=0.0, emax=1.0, ec50=1.0)


class TestDoseExposure:
    def test_one_row_per_dose(self):
        res = simulate_dose_exposure(2.5, 50.0, 40.0, doses=[25, 50, 100], n_simulations=200, seed=1)
        assert res["dose"].tolist() == [25.0, 50.0, 100.0]
        assert set(res.columns) == {
            "dose", "n_simulations", "mean_exposure", "median_exposure", "cv_exposure",
            "prob_achieving_target", "p25_exposure", "p75_exposure",
        }
        assert res["prob_achieving_target"].between(0, 1).all()
        assert (res["p25_exposure"] <= res["p75_exposure"]).all()

    def test_target_attainment_extremes(self):
        res = simulate_dose_exposure(2.5, 50.0, 40.0, doses=[1, 10000], n_simulations=500, seed=3)
        assert res["prob_achieving_target"].tolist() == [0.0, 1.0]

    def test_auc_scales_with_dose(self):
        res = simulate_dose_exposure(2.5, 50.0, 40.0, doses=[100], n_simulations=5000, seed=5)
        # median of dose / lognormal(CL) is dose / CL
        assert res["median_exposure"].iloc[0] == pytest.approx(100.0 / 2.5, rel=0.05)

    def test_cmax_metric(self):
        res = simulate_dose_exposure(2.5, 50.0, 1.0, doses=[50, 100], target_exposure="Cmax", n_simulations=300, seed=2)
        assert np.isfinite(res["mean_exposure"]).all()
        assert (res["mean_exposure"] > 0).all()

    def test_reproducible_with_seed(self):
        a = simulate_dose_exposure(2.5, 50.0, 40.0, doses=[50, 100], n_simulations=100, seed=9)
        b = simulate_dose_exposure(2.5, 50.0, 40.0, doses=[50, 100], n_simulations=100, seed=9)
        pd.testing.assert_frame_equal(a, b)

    def test_invalid_inputs(self):
        with pytest.raises(ValueError, match="Unknown exposure metric"):
            simulate_dose_exposure(2.5, 50.0, 40.0, target_exposure="Cmin")
        with pytest.raises(ValueError):
            simulate_dose_exposure(0.0, 50.0, 40.0)

    def test_recommended_dose(self):
        res = pd.DataFrame({"dose": [25.0, 50.0, 100.0], "prob_achieving_target": [0.2, 0.92, 0.99]})
        assert recommended_dose(res) == 50.0
        assert recommended_dose(res, min_probability=0.999) is None


class TestVPC:
    def test_percentiles_per_time(self):
        observed = pd.DataFrame({"TIME": [1, 1, 1, 2, 2, 2], "CONC": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]})
        simulated = pd.DataFrame({"TIME": [1] * 5 + [2] * 5, "CONC": [1, 2, 3, 4, 5, 2, 4, 6, 8, 10]})
        vpc = vpc_summary(observed, simulated)
        assert vpc["TIME"].tolist() == [1, 2]
        assert vpc["obs_median"].tolist() == [2.0, 5.0]
        assert vpc["sim_median"].tolist() == [3.0, 6.0]
        assert vpc["n_obs"].tolist() == [3, 3]
        assert (vpc["sim_p5"] <= vpc["sim_median"]).all()
        assert (vpc["sim_median"] <= vpc["sim_p95"]).all()

    def test_unsimulated_time_is_nan(self):
        observed = pd.DataFrame({"TIME": [1, 3], "CONC": [1.0, 2.0]})
        simulated = pd.DataFrame({"TIME": [1, 1], "CONC": [1.0, 2.0]})
        vpc = vpc_summary(observed, simulated)
        assert np.isnan(vpc.loc[vpc["TIME"] == 3, "sim_median"]).all()

    def test_missing_columns_raise(self):
        with pytest.raises(ValueError, match="simulated"):
            vpc_summary(pd.DataFrame({"TIME": [1], "CONC": [1.0]}), pd.DataFrame({"TIME": [1]}))
