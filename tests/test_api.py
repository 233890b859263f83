"""
Bonus Tax Planner - API Tests
=============================
Smoke tests for the FastAPI layer.
"""

import pytest
from fastapi.testclient import TestClient

from main import app
from tax_constants import MAX_AMOUNT, MAX_BATCH_ROWS


@pytest.fixture
def client():
    return TestClient(app)


class TestReferenceEndpoints:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert "plan_optimizer" in response.json()["components"]

    def test_brackets(self, client):
        data = client.get("/api/reference/brackets").json()
        assert data["basic_allowance"] == 60000
        assert data["annual"][-1]["limit"] == "unlimited"
        assert data["monthly"][0]["limit"] == 3000

    def test_cliffs(self, client):
        data = client.get("/api/reference/cliffs").json()
        assert len(data) == 6
        assert data[0]["lower_bound"] == 36000

    def test_deduction_amounts(self, client):
        data = client.get("/api/reference/deductions").json()
        assert data["amounts"]["housing_loan_interest"] == 12000
        assert data["housing_rent"]["large"] == 18000
        assert data["elderly_care"]["only_child"] == 36000
        assert data["continuing_education"]["certificate"] == 3600


class TestCalculationEndpoints:

    def test_bonus_tax(self, client):
        response = client.post("/api/tax/bonus", json={"amount": 36001})
        assert response.status_code == 200
        assert response.json()["tax"] == pytest.approx(3390.1)

    def test_annual_tax(self, client):
        response = client.post("/api/tax/annual", json={"amount": 180000})
        assert response.json()["tax"] == pytest.approx(19080)

    def test_cliff(self, client):
        data = client.post("/api/cliff", json={"amount": 36001}).json()
        assert data["in_cliff"] is True
        assert data["interval"]["lower_bound"] == 36000

    def test_negative_amount_rejected(self, client):
        response = client.post("/api/tax/bonus", json={"amount": -1})
        assert response.status_code == 422

    def test_separate_scenario(self, client):
        data = client.post("/api/scenarios/separate", json={"salary": 240000, "bonus": 36000}).json()
        assert data["total_tax"] == pytest.approx(20160)
        assert data["gross_income"] == 276000
        assert data["calculation"]["salary_steps"][1]["kind"] == "reduction"

    def test_negative_salary_rejected(self, client):
        response = client.post("/api/scenarios/combined", json={"salary": -5})
        assert response.status_code == 422


class TestPlanEndpoints:

    def test_optimal_plan(self, client):
        data = client.post("/api/plans/optimal", json={"salary": 240000, "bonus": 36000}).json()
        assert data["optimal"]["scenario_type"] == "separate"
        assert data["tax_saving"] == pytest.approx(6120)

    def test_chart(self, client):
        data = client.post("/api/plans/chart", json={"salary": 240000, "bonus": 36000}).json()
        assert len(data) == 21

    def test_reverse_plan_zero_income(self, client):
        data = client.post("/api/plans/reverse", json={"total_income": 0}).json()
        assert data["plan"]["total_tax"] == 0
        assert data["deductions"] == []
        assert data["advice"]

    def test_reverse_plan_with_deductions(self, client):
        data = client.post("/api/plans/reverse", json={
            "total_income": 276000,
            "deductions": {"children_education": 2, "housing_loan": True},
        }).json()
        assert data["plan"]["special_deduction"] == 60000
        assert len(data["deductions"]) == 2

    def test_split_and_estimate(self, client):
        split = client.post("/api/plans/split", json={"total_income": 276000}).json()
        estimate = client.post("/api/plans/quick-estimate", json={"total_income": 276000}).json()
        assert split["optimal_bonus"] == 72000
        assert estimate["bonus"] == 27600
        assert split["total_tax"] <= estimate["total_tax"]

    def test_year_end(self, client):
        data = client.post("/api/plans/year-end", json={
            "prior_salary": 88000,
            "december_salary": 8000,
            "year_end_bonus": 100000,
        }).json()
        assert data["optimal"]["plan_type"] == "partial"
        assert data["scenario"]["annual_salary"] == 96000

    def test_deductions(self, client):
        data = client.post("/api/deductions", json={"children_education": 2, "housing_loan": True}).json()
        assert data["total"] == 60000


class TestBatchEndpoint:

    def test_optimal_batch(self, client):
        response = client.post("/api/batch/optimal", json={"rows": [
            {"name": "Alice", "salary": 240000, "bonus": 36000},
            {"name": "Bob", "salary": 240000, "bonus": 36001},
        ]})
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["results"][1]["cliff_warning"]

    def test_unknown_kind(self, client):
        response = client.post("/api/batch/monthly", json={"rows": []})
        assert response.status_code == 400

    def test_invalid_row(self, client):
        response = client.post("/api/batch/optimal", json={"rows": [{"name": "Bad", "salary": -1}]})
        assert response.status_code == 422


class TestInputBounds:
    """Amounts must be finite, non-negative and at most MAX_AMOUNT."""

    @pytest.mark.parametrize("path, body", [
        ("/api/plans/split", {"total_income": "inf"}),
        ("/api/plans/reverse", {"total_income": "inf"}),
        ("/api/plans/year-end", {"year_end_bonus": "-inf"}),
        ("/api/scenarios/separate", {"salary": "inf", "bonus": 1000}),
        ("/api/tax/bonus", {"amount": "nan"}),
        ("/api/deductions", {"medical_expenses": "inf"}),
    ])
    def test_non_finite_rejected(self, client, path, body):
        assert client.post(path, json=body).status_code == 422

    @pytest.mark.parametrize("path, body", [
        ("/api/plans/split", {"total_income": MAX_AMOUNT + 1}),
        ("/api/plans/reverse", {"total_income": MAX_AMOUNT + 1}),
        ("/api/plans/optimal", {"salary": 1e12}),
    ])
    def test_oversized_rejected(self, client, path, body):
        assert client.post(path, json=body).status_code == 422

    def test_cap_is_inclusive(self, client):
        response = client.post("/api/tax/annual", json={"amount": MAX_AMOUNT})
        assert response.status_code == 200

    def test_non_finite_batch_row(self, client):
        response = client.post("/api/batch/split", json={"rows": [{"name": "Inf", "total_income": "inf"}]})
        assert response.status_code == 422

    def test_too_many_batch_rows(self, client):
        rows = [{"name": f"E{i}"} for i in range(MAX_BATCH_ROWS + 1)]
        response = client.post("/api/batch/separate", json={"rows": rows})
        assert response.status_code == 422
