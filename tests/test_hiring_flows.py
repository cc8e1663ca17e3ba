"""Tests for versioned hiring flows."""

from peopleos.db.postgres import get_db_session
from peopleos.models import JobCandidate
from peopleos.services.hiring_flow_service import stage_diff
from tests.conftest import create_candidate, create_job

STAGES = ["Applied", "Screen", "Onsite", "Offer"]


def _create_flow(client, headers, name="Engineering", stages=STAGES, is_default=False):
    resp = client.post(
        "/api/hiring-flows",
        json={"name": name, "stages": stages, "is_default": is_default},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreateFlow:

    def test_create_writes_version_one(self, client, hr_headers):
        flow = _create_flow(client, hr_headers)
        assert [s["version"] for s in flow["snapshots"]] == [1]
        assert flow["snapshots"][0]["stages"] == STAGES

    def test_duplicate_name_is_409(self, client, hr_headers):
        _create_flow(client, hr_headers)
        resp = client.post(
            "/api/hiring-flows", json={"name": "engineering ", "stages": STAGES}, headers=hr_headers
        )
        assert resp.status_code == 409

    def test_needs_two_stages(self, client, hr_headers):
        resp = client.post("/api/hiring-flows", json={"name": "Tiny", "stages": ["Only"]}, headers=hr_headers)
        assert resp.status_code == 422

    def test_single_default(self, client, hr_headers):
        first = _create_flow(client, hr_headers, name="First", is_default=True)
        second = _create_flow(client, hr_headers, name="Second", is_default=True)

        default = client.get("/api/hiring-flows/default", headers=hr_headers).json()
        assert default["id"] == second["id"]
        listed = client.get("/api/hiring-flows", headers=hr_headers).json()
        assert [f["is_default"] for f in listed if f["id"] == first["id"]] == [False]

    def test_employee_cannot_create(self, client, employee_headers):
        resp = client.post("/api/hiring-flows", json={"name": "Nope", "stages": STAGES}, headers=employee_headers)
        assert resp.status_code == 403


class TestUpdateFlow:

    def test_stage_change_adds_version(self, client, hr_headers):
        flow = _create_flow(client, hr_headers)
        resp = client.put(
            f"/api/hiring-flows/{flow['id']}",
            json={"stages": ["Applied", "Screen", "Offer"]},
            headers=hr_headers,
        )
        assert resp.status_code == 200
        assert [s["version"] for s in resp.json()["snapshots"]] == [2, 1]

        diff = client.get(f"/api/hiring-flows/{flow['id']}/diff", headers=hr_headers).json()
        assert diff["removed"] == ["Onsite"]
        assert diff["from_version"] == 1
        assert diff["to_version"] == 2

    def test_same_stages_do_not_add_version(self, client, hr_headers):
        flow = _create_flow(client, hr_headers)
        resp = client.put(f"/api/hiring-flows/{flow['id']}", json={"stages": STAGES}, headers=hr_headers)
        assert len(resp.json()["snapshots"]) == 1

    def test_stage_mapping_migrates_jobs(self, client, hr_headers):
        flow = _create_flow(client, hr_headers)
        job_id = create_job(hiring_flow_snapshot_id=flow["snapshots"][0]["id"])
        renamed = create_candidate(job_id, custom_stage_name="Onsite")
        dropped = create_candidate(job_id, email="other@example.com", custom_stage_name="Screen")

        resp = client.put(
            f"/api/hiring-flows/{flow['id']}",
            json={
                "stages": ["Applied", "Final Round", "Offer"],
                "stage_mapping": {"Onsite": "Final Round", "Screen": None},
            },
            headers=hr_headers,
        )
        assert resp.status_code == 200

        with get_db_session() as db:
            assert db.get(JobCandidate, renamed).custom_stage_name == "Final Round"
            assert db.get(JobCandidate, dropped).custom_stage_name == "Legacy: Screen"

        outdated = client.get("/api/hiring-flows/outdated-jobs", headers=hr_headers).json()
        assert outdated == []


class TestOutdatedJobs:

    def test_job_on_old_version_is_outdated_until_upgraded(self, client, hr_headers):
        flow = _create_flow(client, hr_headers)
        job_id = create_job(hiring_flow_snapshot_id=flow["snapshots"][0]["id"])
        client.put(f"/api/hiring-flows/{flow['id']}", json={"stages": ["A", "B"]}, headers=hr_headers)

        outdated = client.get("/api/hiring-flows/outdated-jobs", headers=hr_headers).json()
        assert [j["id"] for j in outdated] == [job_id]
        assert outdated[0]["snapshot_version"] == 1

        upgraded = client.post(f"/api/hiring-flows/jobs/{job_id}/upgrade", headers=hr_headers).json()
        assert upgraded["version"] == 2
        assert client.get("/api/hiring-flows/outdated-jobs", headers=hr_headers).json() == []

    def test_upgrade_without_flow_is_412(self, client, hr_headers, job_id):
        resp = client.post(f"/api/hiring-flows/jobs/{job_id}/upgrade", headers=hr_headers)
        assert resp.status_code == 412


class TestDeleteFlow:

    def test_flow_in_use_cannot_be_deleted(self, client, hr_headers):
        flow = _create_flow(client, hr_headers)
        create_job(hiring_flow_snapshot_id=flow["snapshots"][0]["id"])
        resp = client.delete(f"/api/hiring-flows/{flow['id']}", headers=hr_headers)
        assert resp.status_code == 412
        assert "1 job(s)" in resp.json()["detail"]

    def test_soft_delete_hides_flow(self, client, hr_headers):
        flow = _create_flow(client, hr_headers)
        assert client.delete(f"/api/hiring-flows/{flow['id']}", headers=hr_headers).status_code == 200
        assert client.get(f"/api/hiring-flows/{flow['id']}", headers=hr_headers).status_code == 404
        # the name is free again
        _create_flow(client, hr_headers)


class TestStageDiff:

    def test_added_removed_unchanged(self):
        diff = stage_diff(["A", "B", "C"], ["A", "C", "D"])
        assert diff == {"added": ["D"], "removed": ["B"], "unchanged": ["A", "C"]}
