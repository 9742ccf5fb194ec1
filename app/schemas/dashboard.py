from datetime import datetime

from app.schemas.common import CamelModel


class DashboardStats(CamelModel):
    total_links: int
    active_links: int
    signed_contracts: int
    today_activity: int
    signature_types: dict[str, int]


class DailyActivity(CamelModel):
    date: str
    count: int


class MonthlyContracts(CamelModel):
    month: str
    count: int


class TopInterpreter(CamelModel):
    interpreter_name: str
    contract_count: int
    last_signed: datetime | None = None


class DashboardAnalytics(CamelModel):
    daily_activity: list[DailyActivity]
    monthly_contracts: list[MonthlyContracts]
    top_interpreters: list[TopInterpreter]
