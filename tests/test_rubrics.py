"""Tests for hiring rubric endpoints."""

import pytest

CRITERIA = [
    {"name": "Problem solving", "weight": 3},
    {"name": "Communication", "description": "Clear and concise", "weight": 2},
]


@pytest.fixture
def rubric(client, hr_headers):
    resp = client.post(
        "/api/rubrics",
        json={"name": "Engineering", "description": "Default bar", "criteria": CRITERIA},
        headers=hr_headers,
    )
    assert resp.status_code == 201
    return resp.json()


class TestCreateRubric:

    def test_criteria_keep_order(self, rubric):
        assert rubric["version"] == 1
        assert [(c["name"], c["sort_order"]) for c in rubric["criteria"]] == [
            ("Problem solving", 0),
            ("Communication", 1),
        ]

    def test_weight_out_of_range(self, client, hr_headers):
        resp = client.post(
            "/api/rubrics",
            json={"name": "Bad", "criteria": [{"name": "X", "weight": 9}]},
            headers=hr_headers,
        )
        assert resp.status_code == 422

    def test_requires_hr(self, client, employee_headers):
        resp = client.post("/api/rubrics", json={"name": "Nope"}, headers=employee_headers)
        assert resp.status_code == 403


class TestUpdateRubric:

    def test_new_criteria_bump_version(self, client, hr_headers, rubric):
        resp = client.put(
            f"/api/rubrics/{rubric['id']}",
            json={"criteria": [{"name": "Ownership", "weight": 5}]},
            headers=hr_headers,
        )
        data = resp.json()
        assert data["version"] == 2
        assert [c["name"] for c in data["criteria"]] == ["Ownership"]

    def test_rename_keeps_version(self, client, hr_headers, rubric):
        data = client.put(f"/api/rubrics/{rubric['id']}", json={"name": "Eng v2"}, headers=hr_headers).json()
        assert data["name"] == "Eng v2"
        assert data["version"] == 1
        assert len(data["criteria"]) == 2


class TestDeleteAndDuplicate:

    def test_soft_delete_hides_rubric(self, client, hr_headers, rubric):
        assert client.delete(f"/api/rubrics/{rubric['id']}", headers=hr_headers).status_code == 200
        assert client.get(f"/api/rubrics/{rubric['id']}", headers=hr_headers).status_code == 404
        assert client.get("/api/rubrics", headers=hr_headers).json() == []

    def test_duplicate(self, client, hr_headers, rubric):
        resp = client.post(f"/api/rubrics/{rubric['id']}/duplicate", headers=hr_headers)
        assert resp.status_code == 201
        copy = resp.json()
        assert copy["name"] == "Engineering (Copy)"
        assert copy["id"] != rubric["id"]
        assert [c["weight"] for c in copy["criteria"]] == [3, 2]

    def test_select_options(self, client, hr_headers, rubric):
        options = client.get("/api/rubrics/select", headers=hr_headers).json()
        assert options == [{"id": rubric["id"], "name": "Engineering"}]
