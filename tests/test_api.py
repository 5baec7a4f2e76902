import pytest
from fastapi.testclient import TestClient

# FastAPI app from main.py
from main import app

client = TestClient(app)


# ------------------------------------------------------------
# Helper: minimal seasonal request body
# ------------------------------------------------------------
def make_request():
    return {
        "config": {
            "num_years": 5,
            "new_solar_kw": 6.6,
            "new_battery_kwh": 10,
            "new_battery_inverter_kw": 5,
            "initial_system_cost": 12000,
            "loan_term": 3,
            "loan_amount": 6000,
            "loan_interest_rate": 0.07,
        },
        "seasonal": {
            "Q1_Summer": {"avg_peak": 8, "avg_shoulder": 5, "avg_off_peak": 7},
            "Q2_Autumn": {"avg_peak": 9, "avg_shoulder": 5, "avg_off_peak": 8},
            "Q3_Winter": {"avg_peak": 11, "avg_shoulder": 6, "avg_off_peak": 10},
            "Q4_Spring": {"avg_peak": 8.5, "avg_shoulder": 5, "avg_off_peak": 7.5},
        },
    }


def custom_provider():
    return {
        "id": "custom",
        "name": "Custom TOU",
        "daily_charge": 1.0,
        "import_rules": [
            {"type": "tou", "name": "Peak", "rate": 0.45, "hours": "4pm-9pm"},
            {"type": "flat", "name": "Anytime", "rate": 0.25},
        ],
        "export_rules": [
            {"type": "tiered", "name": "Bonus", "rate": 0.12, "limit": 8},
            {"type": "flat", "name": "Base", "rate": 0.03},
        ],
        "grid_charge": {"enabled": True, "start_hour": 23, "end_hour": 5},
        "special_conditions": [
            {
                "name": "Low usage credit",
                "metric": "net_grid_usage",
                "operator": "<",
                "value": 2,
                "action": "flat_credit",
                "amount": 0.5,
            }
        ],
    }


# ------------------------------------------------------------
# 1. Simulate with the default catalogue
# ------------------------------------------------------------
def test_simulate_default_providers():
    response = client.post("/simulate", json=make_request())
    assert response.status_code == 200

    data = response.json()

    # Outputstructure
    assert "financials" in data
    assert "raw_year1_data" in data
    assert len(data["financials"]["baseline_costs"]) == 5

    providers = data["financials"]["providers"]
    assert set(providers) == {"Origin", "GloBird", "Amber", "AGL"}
    assert len(providers["Origin"]["years"]) == 5

    # loan repayment is taken off the savings within the term only
    year1 = providers["Origin"]["years"][0]
    year4 = providers["Origin"]["years"][3]
    assert year1["net_cash_flow"] < year1["savings"]
    assert year4["net_cash_flow"] == pytest.approx(year4["savings"])

    assert set(data["diagnostics"]["average_soc_at_6am"]) == set(providers)


# ------------------------------------------------------------
# 2. Simulate with a custom provider and historical days
# ------------------------------------------------------------
def test_simulate_custom_provider_historical():
    body = {
        "config": {"num_years": 2, "new_battery_kwh": 5, "new_battery_inverter_kw": 2.5},
        "providers": [custom_provider()],
        "days": [
            {"date": "2025-01-01", "consumption": [1.0] * 24, "feed_in": [0.0] * 24},
            {"date": "2025-07-01", "consumption": [1.5] * 24},
        ],
    }
    response = client.post("/simulate", json=body)
    assert response.status_code == 200

    data = response.json()
    assert list(data["financials"]["providers"]) == ["custom"]
    assert set(data["raw_year1_data"]["baseline"]) == {"Summer", "Winter"}
    assert "diagnostics" not in data


# ------------------------------------------------------------
# 3. Error mapping
# ------------------------------------------------------------
def test_simulate_both_data_modes_is_400():
    body = make_request()
    body["days"] = [{"date": "2025-01-01", "consumption": [1.0] * 24}]

    response = client.post("/simulate", json=body)
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_CONFIGURATION"


def test_simulate_empty_seasonal_is_422():
    body = make_request()
    body["seasonal"] = {}

    response = client.post("/simulate", json=body)
    assert response.status_code == 422
    assert response.json()["error"] == "MISSING_DATA"


def test_simulate_short_profile_is_400():
    body = {"days": [{"date": "2025-01-01", "consumption": [1.0] * 23}]}

    response = client.post("/simulate", json=body)
    assert response.status_code == 400
    assert response.json()["error"] == "CONTRACT_VIOLATION"


def test_unknown_rule_type_rejected():
    provider = custom_provider()
    provider["import_rules"] = [{"type": "dynamic", "rate": 0.3}]
    body = make_request()
    body["providers"] = [provider]

    response = client.post("/simulate", json=body)
    assert response.status_code == 422


# ------------------------------------------------------------
# 4. Sizing, providers, health
# ------------------------------------------------------------
def test_sizing_from_seasonal():
    body = {"coverage_target": 90, "seasonal": make_request()["seasonal"]}

    response = client.post("/sizing", json=body)
    assert response.status_code == 200

    data = response.json()
    assert data["heuristic"]["solar_kw"] == 5.0
    assert data["heuristic"]["battery_kwh"] == 13.5
    assert data["detailed"] is None


def test_sizing_from_days():
    body = {
        "days": [
            {"date": f"2025-01-{d:02d}", "consumption": [0.5 * d] * 24}
            for d in range(1, 11)
        ],
        "blackout_hours": 3,
        "blackout_coverage": 0.5,
    }

    response = client.post("/sizing", json=body)
    assert response.status_code == 200

    detailed = response.json()["detailed"]
    assert detailed["battery_kwh"] == 41.0
    assert detailed["total_days"] == 10
    assert detailed["blackout"]["practical_size_kwh"] == 49.0


def test_sizing_counts_load_behind_the_meter():
    # 2 kWh/h all day; from 9am to 3pm the panels make 3 kWh, cover the
    # house and export 1 kWh, so the meter sees no import
    consumption = [2.0] * 24
    feed_in = [0.0] * 24
    solar = [0.0] * 24
    for h in range(9, 15):
        consumption[h] = 0.0
        feed_in[h] = 1.0
        solar[h] = 3.0

    body = {
        "existing_solar_kw": 3.0,
        "days": [{"date": "2025-01-06", "consumption": consumption, "feed_in": feed_in}],
        "solar_days": [{"date": "2025-01-06", "hourly": solar}],
    }

    response = client.post("/sizing", json=body)
    assert response.status_code == 200

    detailed = response.json()["detailed"]
    # 9 peak hours (7am-10am, 4pm-10pm) at 2 kWh each, 9am included
    assert detailed["distributions"]["peak_period"][0] == pytest.approx(18.0)
    assert detailed["distributions"]["max_hourly"][0] == pytest.approx(2.0)
    assert detailed["battery_kwh"] == 18.0


def test_sizing_without_data_is_422():
    response = client.post("/sizing", json={"coverage_target": 90})
    assert response.status_code == 422
    assert response.json()["error"] == "MISSING_DATA"


def test_providers_endpoint():
    response = client.get("/providers")
    assert response.status_code == 200
    assert [p["id"] for p in response.json()["providers"]] == ["Origin", "GloBird", "Amber", "AGL"]


def test_health():
    assert client.get("/health").json() == {"status": "ok"}
