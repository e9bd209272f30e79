from pharmadash.integration import (
    ADAM_DATASETS,
    JOB_STATUSES,
    PARTITIONS,
    SAS_PROGRAMS,
    generate_adam_inventory,
    generate_hpc_jobs,
    generate_hpc_nodes,
    generate_sas_migration,
    generate_storage,
    hpc_summary,
    hpc_utilization_long,
    hub_overview,
    job_summary,
    migration_lines_long,
    storage_summary,
)

import pandas as pd
import pytest


class TestGenerators:
    def test_sas_migration(self):
        sas = generate_sas_migration()
        assert len(sas) == len(SAS_PROGRAMS)
        assert sas["SAS_Program"].str.endswith(".sas").all()
        assert sas["R_Script"].str.endswith(".R").all()
        assert sas["Lines_SAS"].between(100, 500).all()
        assert sas["Lines_R"].between(80, 400).all()

    def test_adam_inventory(self):
        adam = generate_adam_inventory()
        assert adam["Dataset"].tolist() == ADAM_DATASETS
        assert (adam["Package"] == "admiral").all()

    def test_hpc_nodes(self):
        hpc = generate_hpc_nodes(n_nodes=6)
        assert hpc["Node"].tolist() == [f"node{i}" for i in range(1, 7)]
        assert hpc["CPU_Usage"].between(30, 90).all()
        assert hpc["GPU_Usage"].between(0, 100).all()
        with pytest.raises(ValueError):
            generate_hpc_nodes(n_nodes=0)

    def test_seeded_defaults_are_stable(self):
        pd.testing.assert_frame_equal(generate_sas_migration(), generate_sas_migration())


class TestSummaries:
    def test_hub_overview(self):
        sas = pd.DataFrame({"Status": ["Completed", "Completed", "Pending", "In Progress"]})
        hpc = pd.DataFrame({"CPU_Usage": [40, 60]})
        ov = hub_overview(sas, hpc)
        assert ov == {"total_projects": 4, "migration_pct_complete": 50, "avg_cpu_usage": 50}

    def test_hpc_summary(self):
        hpc = pd.DataFrame({
            "Status": ["Active", "Idle", "Active"],
            "CPU_Usage": [50, 20, 80],
            "Jobs_Running": [3, 0, 4],
        })
        assert hpc_summary(hpc) == {"active_nodes": 2, "avg_cpu_usage": 50, "running_jobs": 7}

    def test_long_forms(self):
        sas = generate_sas_migration()
        long = migration_lines_long(sas)
        assert set(long["Language"]) == {"Lines_SAS", "Lines_R"}
        assert len(long) == 2 * len(sas)
        hpc = generate_hpc_nodes(n_nodes=3)
        assert len(hpc_utilization_long(hpc)) == 9


class TestJobsAndStorage:
    @pytest.fixture
    def jobs(self):
        return generate_hpc_jobs(generate_hpc_nodes(n_nodes=4), n_jobs=200, seed=3, as_of="2024-06-01 12:00")

    def test_job_columns_and_domains(self, jobs):
        assert len(jobs) == 200
        assert jobs["Job_ID"].is_unique
        assert set(jobs["Status"]) <= set(JOB_STATUSES)
        assert set(jobs["Partition"]) <= set(PARTITIONS)
        assert set(jobs["Node"]) <= {f"node{i}" for i in range(1, 5)}

    def test_job_timing_is_consistent(self, jobs):
        as_of = pd.Timestamp("2024-06-01 12:00")
        assert (jobs["Submit_Time"] < as_of).all()
        assert (jobs["Submit_Time"] >= as_of - pd.Timedelta(days=7)).all()
        waiting = jobs["Status"].isin(["Queued", "Held"])
        assert jobs.loc[waiting, "Start_Time"].isna().all()
        assert (jobs.loc[waiting, "Walltime_Used"] == 0).all()
        started = jobs[~waiting]
        assert (started["Start_Time"] >= started["Submit_Time"]).all()
        assert (started["Start_Time"] <= as_of).all()
        assert (started["Walltime_Used"] <= started["Walltime_Limit"]).all()
        done = jobs["Status"] == "Completed"
        assert jobs.loc[~done, "Completion_Time"].isna().all()
        finished = jobs[done]
        assert (finished["Completion_Time"] <= as_of).all()
        assert (
            finished["Completion_Time"] - finished["Start_Time"]
            == pd.to_timedelta(finished["Walltime_Used"], unit="s")
        ).all()

    def test_jobs_reproducible_and_validated(self):
        nodes = generate_hpc_nodes(n_nodes=2)
        pd.testing.assert_frame_equal(
            generate_hpc_jobs(nodes, n_jobs=10, as_of="2024-01-01"),
            generate_hpc_jobs(nodes, n_jobs=10, as_of="2024-01-01"),
        )
        with pytest.raises(ValueError):
            generate_hpc_jobs(nodes, n_jobs=0)
        with pytest.raises(ValueError):
            generate_hpc_jobs(nodes.iloc[0:0], n_jobs=5)

    def test_job_summary(self):
        jobs = pd.DataFrame({
            "Status": ["Running", "Queued", "Completed", "Completed"],
            "Partition": ["short", "short", "gpu", "long"],
            "Walltime_Used": [3600, 0, 5400, 1800],
        })
        summary = job_summary(jobs)
        assert summary["total_jobs"] == 4
        assert summary["by_status"] == {"Running": 1, "Queued": 1, "Completed": 2, "Failed": 0, "Held": 0}
        assert summary["by_partition"] == {"short": 2, "medium": 0, "long": 1, "gpu": 1}
        assert summary["walltime_used_hours"] == 3.0

    def test_storage(self):
        storage = generate_storage()
        assert storage["Storage_ID"].tolist() == [f"storage{i:02d}" for i in range(1, 6)]
        assert (storage["Available_TB"] == storage["Total_TB"] - storage["Used_TB"]).all()
        assert storage["Usage_Pct"].tolist() == [70.0, 80.0, 80.0, 20.0, 25.0]
        summary = storage_summary(storage)
        assert summary["total_tb"] == 3610.0
        assert summary["used_tb"] == 1138.0
        assert summary["usage_pct"] == 31.5
        assert summary["needs_attention"] == ["storage02", "storage03", "storage04"]
        assert storage_summary(storage, usage_threshold=90.0)["needs_attention"] == ["storage04"]
