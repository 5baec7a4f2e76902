# ============================================================
# Solar ROI Engine — Backend API
# COMPLETE MAIN.PY (simulate + sizing + providers)
# ============================================================

import logging
from typing import Annotated, Dict, List, Literal, Optional, Union

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

# Engine imports
from solar_roi_engine.engine import SolarRoiEngine
from solar_roi_engine.errors import EngineError, MissingData
from solar_roi_engine.settings import (
    DEFAULT_BATTERY_DEGRADATION,
    DEFAULT_COVERAGE_TARGET,
    DEFAULT_FIT_DEGRADATION_END_YEAR,
    DEFAULT_FIT_DEGRADATION_START_YEAR,
    DEFAULT_FIT_MINIMUM_RATE,
    DEFAULT_GRID_CHARGE_THRESHOLD,
    DEFAULT_MANUAL_SOLAR_PROFILE,
    DEFAULT_SOC_CHARGE_TRIGGER,
    DEFAULT_SOLAR_DEGRADATION,
    DEFAULT_TARIFF_ESCALATION,
    settings,
)

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# ============================================================
# FASTAPI INIT
# ============================================================

app = FastAPI(title="Solar ROI Engine")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    status = 422 if isinstance(exc, MissingData) else 400
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc)
    return JSONResponse(status_code=status, content=exc.to_dict())


# ============================================================
# REQUEST MODELS — tariffs
# ============================================================

class TimeOfUseRuleModel(BaseModel):
    type: Literal["tou"]
    name: str = ""
    rate: float
    hours: str


class TieredRuleModel(BaseModel):
    type: Literal["tiered"]
    name: str = ""
    rate: float
    limit: float


class FlatRuleModel(BaseModel):
    type: Literal["flat"]
    name: str = ""
    rate: float


TariffRuleModel = Annotated[
    Union[TimeOfUseRuleModel, TieredRuleModel, FlatRuleModel],
    Field(discriminator="type"),
]


class GridChargeModel(BaseModel):
    enabled: bool = False
    start_hour: int = Field(23, ge=0, le=23)
    end_hour: int = Field(5, ge=0, le=23)


class SpecialConditionModel(BaseModel):
    name: str = ""
    months: List[int] = []
    metric: Literal["peak_import", "net_grid_usage", "import_in_window"]
    hours: str = ""
    operator: str
    value: float
    action: Literal["flat_credit", "flat_charge"]
    amount: float


class ProviderModel(BaseModel):
    id: str
    name: str = ""
    daily_charge: float = 0.0
    monthly_fee: float = 0.0
    rebate: float = 0.0
    import_rules: List[TariffRuleModel] = []
    export_rules: List[TariffRuleModel] = []
    grid_charge: GridChargeModel = GridChargeModel()
    special_conditions: List[SpecialConditionModel] = []


# ============================================================
# REQUEST MODELS — analysis & data
# ============================================================

class FitDegradationModel(BaseModel):
    start_year: float = DEFAULT_FIT_DEGRADATION_START_YEAR
    end_year: float = DEFAULT_FIT_DEGRADATION_END_YEAR
    minimum_rate: float = DEFAULT_FIT_MINIMUM_RATE


class AnalysisModel(BaseModel):
    num_years: int = Field(default_factory=lambda: settings.DEFAULT_YEARS, ge=1)

    solar_degradation: float = DEFAULT_SOLAR_DEGRADATION
    battery_degradation: float = DEFAULT_BATTERY_DEGRADATION
    tariff_escalation: float = DEFAULT_TARIFF_ESCALATION
    discount_rate: float = 0.0

    # LOAN
    loan_term: int = 0
    loan_amount: float = 0.0
    loan_interest_rate: float = 0.0
    annual_loan_repayment: float = 0.0
    initial_system_cost: float = 0.0

    fit_degradation: FitDegradationModel = FitDegradationModel()

    # SYSTEM
    existing_solar_kw: float = 0.0
    existing_system_age: int = 0
    existing_battery_kwh: float = 0.0
    new_solar_kw: float = 0.0
    new_battery_kwh: float = 0.0
    new_battery_inverter_kw: float = 0.0
    replace_existing_system: bool = False

    manual_solar_profile: float = DEFAULT_MANUAL_SOLAR_PROFILE
    grid_charge_threshold: float = DEFAULT_GRID_CHARGE_THRESHOLD
    soc_charge_trigger: float = DEFAULT_SOC_CHARGE_TRIGGER

    baseline_provider_id: Optional[str] = None


class SeasonalAverageModel(BaseModel):
    avg_peak: float = 0.0
    avg_shoulder: float = 0.0
    avg_off_peak: float = 0.0
    avg_solar: float = 0.0


class DayModel(BaseModel):
    date: str
    consumption: List[float]
    feed_in: Optional[List[float]] = None


class SolarDayModel(BaseModel):
    date: str
    hourly: List[float]


# ============================================================
# SIMULATE ENDPOINT
# ============================================================

class SimulateRequest(BaseModel):
    config: AnalysisModel = AnalysisModel()
    providers: Optional[List[ProviderModel]] = None

    # either seasonal averages or historical days
    seasonal: Optional[Dict[str, SeasonalAverageModel]] = None
    days: Optional[List[DayModel]] = None
    solar_days: Optional[List[SolarDayModel]] = None


@app.post("/simulate")
def simulate(req: SimulateRequest):
    return SolarRoiEngine.simulate(req.model_dump())


# ============================================================
# SIZING ENDPOINT
# ============================================================

class SizingRequest(BaseModel):
    coverage_target: float = DEFAULT_COVERAGE_TARGET
    existing_solar_kw: float = 0.0
    new_solar_kw: float = 0.0
    replace_existing_system: bool = False
    manual_solar_profile: float = 4.0
    provider: Optional[ProviderModel] = None

    seasonal: Optional[Dict[str, SeasonalAverageModel]] = None
    days: Optional[List[DayModel]] = None
    solar_days: Optional[List[SolarDayModel]] = None

    # BLACKOUT RESERVE
    blackout_hours: int = 0
    blackout_coverage: float = 0.0


@app.post("/sizing")
def sizing(req: SizingRequest):
    return SolarRoiEngine.size(req.model_dump())


# ============================================================
# PROVIDERS / HEALTH
# ============================================================

@app.get("/providers")
def providers():
    return {"providers": SolarRoiEngine.providers()}


@app.get("/health")
def health():
    return {"status": "ok"}
