from typing import Optional, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class MachineRecord(BaseModel):
    row: Optional[int] = None
    code: Optional[str] = None
    model: Optional[str] = None
    serial: Optional[str] = None
    operator: Optional[str] = None
    chip: Optional[str] = None
    acquirer: Optional[str] = None
    status: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None
    event_id: Optional[str] = None
    event_name: Optional[str] = None
    producer: Optional[str] = None
    commercial: Optional[str] = None
    departure_date: Optional[str] = None
    return_date: Optional[str] = None
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None


class MovementRecord(BaseModel):
    date: Optional[str] = None
    serial: str
    action: str
    event_id: Optional[str] = None
    departure_date: Optional[str] = None
    return_date: Optional[str] = None
    status_after: Optional[str] = None
    actor: Optional[str] = None
    event_name: Optional[str] = None
    producer: Optional[str] = None
    commercial: Optional[str] = None
    location: Optional[str] = None
    note: Optional[str] = None


class EventInfo(BaseModel):
    event_id: str
    event_name: Optional[str] = None
    producer: Optional[str] = None
    commercial: Optional[str] = None


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class SerialRef(CamelModel):
    serial: str = ""
    row_hint: Optional[int] = None


class MovementRequest(CamelModel):
    action: str = ""
    event_id: Optional[str] = None
    departure_date: Optional[str] = None
    return_date: Optional[str] = None
    location: Optional[str] = None
    note: Optional[str] = None
    serials: list[Union[SerialRef, str, int]] = Field(default_factory=list)
    origin_note: Optional[str] = None


class StatusAdjustRequest(CamelModel):
    serial: str = ""
    status: str = ""
    event_id: Optional[str] = None
    location: Optional[str] = None
    note: Optional[str] = None


class MovementErrorOut(CamelModel):
    serial: Optional[str] = None
    step: str
    msg: Optional[str] = None


class MovementResultOut(CamelModel):
    ok: bool
    msg: Optional[str] = None
    needs_origin_prompt: bool = False
    serials: list[str] = Field(default_factory=list)
    applied: list[str] = Field(default_factory=list)
    errors: list[MovementErrorOut] = Field(default_factory=list)


class MachineOut(CamelModel):
    row: Optional[int] = None
    code: str = "-"
    model: str = "-"
    serial: str = "-"
    operator: str = "-"
    chip: str = "-"
    acquirer: str = "-"
    status: str = "-"
    location: str = "-"
    company: str = "-"
    event_id: str = "-"
    event_name: str = "-"
    producer: str = "-"
    commercial: str = "-"
    departure_date: str = "-"
    return_date: str = "-"
    updated_at: str = "-"
    updated_by: str = "-"


class MachineListOut(CamelModel):
    ok: bool
    machines: list[MachineOut]


class MovementOut(CamelModel):
    date: str = "-"
    serial: str = "-"
    action: str = "-"
    event_id: str = "-"
    departure_date: str = "-"
    return_date: str = "-"
    status_after: str = "-"
    actor: str = "-"
    event_name: str = "-"
    producer: str = "-"
    commercial: str = "-"
    location: str = "-"
    note: str = "-"


class MovementListOut(CamelModel):
    ok: bool
    history: list[MovementOut]


class CountItemOut(CamelModel):
    name: str
    qty: int


class TopEventOut(CamelModel):
    id: str
    name: str
    qty: int


class SendReturnSeriesOut(CamelModel):
    labels: list[str]
    sends: list[int]
    returns: list[int]


class DashboardSummaryOut(CamelModel):
    total: int
    available: int
    available_sp: int
    available_rj: int
    available_ura: int
    in_use: int
    fixed: int
    maintenance: int
    overdue: int


class DashboardOut(CamelModel):
    ok: bool
    summary: DashboardSummaryOut
    by_status: list[CountItemOut]
    by_location: list[CountItemOut]
    by_company: list[CountItemOut]
    top_events: list[TopEventOut]
    series: SendReturnSeriesOut
