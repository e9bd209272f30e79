import os

import pandas as pd

from pharmadash import plotting
from pharmadash.clinical import change_from_baseline, subjects_by_site, vitals_by_visit
from pharmadash.integration import generate_storage
from pharmadash.pkpd import simulate_dose_exposure, vpc_summary
from pharmadash.regulatory import completion_by_assignee, gantt_table, submission_timeline
from pharmadash.simulate import mean_profiles
from pharmadash.tables import count_by


class TestCharts:
    def test_pk_charts(self, pk_study, tmp_path):
        out = str(tmp_path)
        assert os.path.exists(plotting.plot_pk_profiles(mean_profiles(pk_study["pk_data"]), out))
        res = simulate_dose_exposure(2.5, 50.0, 40.0, doses=[25, 50, 100], n_simulations=50, seed=1)
        for p in plotting.plot_dose_exposure(res, 40.0, out):
            assert os.path.exists(p)
        vpc = vpc_summary(pk_study["pk_data"], pk_study["pk_data"])
        assert os.path.exists(plotting.plot_vpc(vpc, out))

    def test_clinical_charts(self, clinical_data, tmp_path):
        out = str(tmp_path)
        dm, vs = clinical_data["dm"], clinical_data["vs"]
        assert os.path.exists(plotting.plot_age_distribution(dm, out))
        assert os.path.exists(plotting.plot_demographics(dm, out))
        assert os.path.exists(plotting.plot_site_distribution(subjects_by_site(dm), out))
        assert os.path.exists(plotting.plot_vitals_over_time(vitals_by_visit(vs, "Heart Rate"), "Heart Rate", out))
        assert os.path.exists(plotting.plot_change_from_baseline(change_from_baseline(vs, "Heart Rate"), "Heart Rate", out))
        p = plotting.plot_count_bar(count_by(clinical_data["ae"], "SEVERITY"), "SEVERITY", str(tmp_path / "sub" / "sev.png"))
        assert p.endswith("sev.png") and os.path.exists(p)

    def test_tracker_charts(self, regulatory_data, tmp_path):
        out = str(tmp_path)
        assert os.path.exists(plotting.plot_submission_timeline(submission_timeline(regulatory_data["submissions"]), out))
        assert os.path.exists(plotting.plot_completion_by_assignee(completion_by_assignee(regulatory_data["tasks"]), out))
        assert os.path.exists(plotting.plot_gantt(gantt_table(regulatory_data["tasks"]), out))

    def test_storage_usage(self, tmp_path):
        assert os.path.exists(plotting.plot_storage_usage(generate_storage(), str(tmp_path)))

    def test_grouped_bars(self, tmp_path):
        long = pd.DataFrame({"Node": ["n1", "n1", "n2", "n2"], "Resource": ["CPU", "GPU"] * 2, "Usage": [50, 20, 70, 10]})
        p = plotting.plot_grouped_bars(long, "Node", "Usage", "Resource", str(tmp_path / "bars.png"), "Usage")
        assert os.path.exists(p)
