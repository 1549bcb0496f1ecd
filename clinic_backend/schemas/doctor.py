from datetime import date

from pydantic import BaseModel, ConfigDict, field_validator

from clinic_backend.scheduling.availability import parse_availability


class DepartmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None


class DoctorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    specialization: str
    department_id: int | None = None
    email: str | None = None
    phone: str | None = None
    availability: dict[str, list[str]] = {}

    @field_validator('availability', mode='before')
    @classmethod
    def validate_availability(cls, value):
        return parse_availability(value)

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'


class DoctorDepartmentResponse(BaseModel):
    doctor_id: int
    department_id: int | None = None


class AvailableDatesResponse(BaseModel):
    doctor_id: int
    dates: list[date]


class SlotResponse(BaseModel):
    time: str
    time_24: str
    is_booked: bool


class DoctorSlotsResponse(BaseModel):
    doctor_id: int
    date: date
    slots: list[SlotResponse]
