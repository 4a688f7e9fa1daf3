from datetime import datetime, timezone

import pytest

from app.cms import create_app
from app.cms.modules.unit_economics.calculator import (
    BasicInputs,
    CalculatorInputError,
    UnitInputs,
    build_report,
    calculate_basic_metrics,
    calculate_unit_economics,
    commission_range,
    estimate_improvement,
    round_half_up,
)


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY", "USE_MOCK_DATA"):
        monkeypatch.delenv(k, raising=False)

    # Calculator endpoints never touch the database.
    app = create_app()
    return app.test_client()


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(18.75, 1) == 18.8
    assert round_half_up(-0.4) == 0
    # Halves go toward +infinity, negatives included.
    assert round_half_up(-2.5) == -2
    assert round_half_up(-88.25, 1) == -88.2


def test_unit_economics_defaults():
    r = calculate_unit_economics(UnitInputs())
    assert r["total_costs"] == 94
    assert r["profit"] == 6
    assert r["margin"] == 6.0
    assert r["roi"] == 6.4
    assert r["optimized_costs"]["marketplace_commission"] == 10.8
    assert r["optimized_costs"]["advertising"] == 12
    assert r["optimized_costs"]["returns"] == 3.5
    assert r["optimized_costs"]["fulfillment"] == 7.6
    assert r["optimized_costs"]["cogs"] == 45
    assert r["optimized_total_costs"] == 87.9
    assert r["optimized_profit"] == 12.1
    assert r["optimized_margin"] == 12.1
    assert r["improvement"] == 6.1
    assert r["improvement_percent"] == 102
    assert r["roas"] == 6.67
    assert r["optimized_roas"] == 8.33


def test_unit_economics_simple_case():
    inputs = UnitInputs(
        revenue=100,
        cogs=30,
        marketplace_commission=10,
        fulfillment=5,
        advertising=5,
        returns=0,
        storage=0,
        payment=2,
        packaging=3,
        other=0,
    )
    r = calculate_unit_economics(inputs)
    assert r["total_costs"] == 55
    assert r["profit"] == 45
    assert r["margin"] == 45.0


def test_unit_economics_edge_cases():
    no_ads = calculate_unit_economics(UnitInputs(advertising=0))
    assert no_ads["roas"] is None
    assert no_ads["optimized_roas"] is None

    break_even = calculate_unit_economics(UnitInputs(revenue=94))
    assert break_even["profit"] == 0
    assert break_even["improvement_percent"] is None

    loss = calculate_unit_economics(UnitInputs(revenue=50))
    assert loss["profit"] == -44
    assert loss["margin"] == -88.0

    with pytest.raises(CalculatorInputError):
        calculate_unit_economics(UnitInputs(revenue=0))


def test_unit_inputs_from_mapping():
    inputs = UnitInputs.from_mapping({"revenue": "200", "ozonCommission": 20, "packaging": ""})
    assert inputs.revenue == 200
    assert inputs.marketplace_commission == 20
    assert inputs.packaging == 3

    with pytest.raises(CalculatorInputError) as exc:
        UnitInputs.from_mapping({"revenue": "lots", "cogs": True})
    assert exc.value.errors == ["revenue must be a number.", "cogs must be a number."]

    with pytest.raises(CalculatorInputError) as exc:
        UnitInputs.from_mapping({"revenue": -1, "returns": -5})
    assert exc.value.errors == ["revenue must be greater than 0.", "returns must not be negative."]


def test_basic_metrics():
    r = calculate_basic_metrics(BasicInputs())
    assert r == {
        "current_profit": 7500,
        "potential_improvement": 1875,
        "optimized_margin": 18.8,
        "break_even_price": 88.24,
        "annual_potential": 22500,
    }

    inputs = BasicInputs.from_mapping({"monthlyRevenue": 100000, "currentMargin": 20})
    assert calculate_basic_metrics(inputs)["current_profit"] == 20000

    with pytest.raises(CalculatorInputError):
        BasicInputs.from_mapping({"current_margin": 100})


def test_estimate_improvement():
    assert estimate_improvement() == 1875
    assert estimate_improvement("100000", "20") == 5000
    assert estimate_improvement(0, 0) == 0
    with pytest.raises(CalculatorInputError):
        estimate_improvement("abc", None)
    with pytest.raises(CalculatorInputError):
        estimate_improvement(1000, 150)


def test_commission_range():
    assert commission_range("Electronics") == {"category": "electronics", "min": 8, "max": 15}
    with pytest.raises(CalculatorInputError):
        commission_range("groceries")


def test_build_report():
    now = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)
    report = build_report(currency="usd", category="books", basic=BasicInputs(), unit=UnitInputs(), now=now)
    assert report["filename"] == "unit-economics-report-2025-03-14.json"
    assert report["timestamp"] == "2025-03-14T12:00:00+00:00"
    assert report["currency"] == "USD"
    assert report["commission_range"] == {"category": "books", "min": 5, "max": 8}
    assert report["basic_data"]["monthly_revenue"] == 50000
    assert report["unit_economics"]["cogs"] == 45
    assert report["calculations"]["unit"]["profit"] == 6

    with pytest.raises(CalculatorInputError) as exc:
        build_report(currency="GBP", category="toys", basic=BasicInputs(), unit=UnitInputs())
    assert len(exc.value.errors) == 2


def test_unit_economics_endpoint(client):
    r = client.post("/api/calculator/unit-economics", json={"unitEconomics": {"revenue": 100, "advertising": 0}})
    assert r.status_code == 200
    assert r.json["inputs"]["advertising"] == 0
    assert r.json["result"]["roas"] is None
    assert r.json["result"]["profit"] == 21

    r = client.post("/api/calculator/unit-economics", json={"revenue": 0})
    assert r.status_code == 400
    assert r.json["message"] == "Invalid data"
    assert r.json["errors"] == ["revenue must be greater than 0."]


def test_basic_endpoint(client):
    r = client.post("/api/calculator/basic", json={})
    assert r.status_code == 200
    assert r.json["result"]["annual_potential"] == 22500
    assert r.json["inputs"]["conversion_rate"] == 2.5


def test_report_endpoint(client):
    r = client.post(
        "/api/calculator/report",
        json={"currency": "RUB", "category": "cosmetics", "basicData": {"monthlyRevenue": 1000}},
    )
    assert r.status_code == 200
    assert r.json["currency"] == "RUB"
    assert r.json["basic_data"]["monthly_revenue"] == 1000
    assert r.headers["Content-Disposition"].startswith('attachment; filename="unit-economics-report-')

    r = client.post("/api/calculator/report", json={"currency": "GBP"})
    assert r.status_code == 400


def test_report_rejects_non_object_sections(client):
    r = client.post("/api/calculator/report", json={"basicData": [1, 2]})
    assert r.status_code == 400
    assert r.json["errors"] == ["basic_data must be an object."]

    r = client.post("/api/calculator/report", json={"unit_economics": "revenue=100"})
    assert r.status_code == 400
    assert r.json["errors"] == ["unit_economics must be an object."]


def test_categories_and_estimate_endpoints(client):
    r = client.get("/api/calculator/categories")
    assert r.json["currencies"] == ["EUR", "USD", "RUB"]
    assert {"category": "clothing", "min": 12, "max": 25} in r.json["categories"]

    assert client.get("/api/calculator/estimate").json == {"improvement": 1875}
    assert client.get("/api/calculator/estimate?revenue=100000&margin=20").json == {"improvement": 5000}
    assert client.get("/api/calculator/estimate?margin=abc").status_code == 400
