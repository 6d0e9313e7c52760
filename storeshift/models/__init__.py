from storeshift.models.location import Location
from storeshift.models.employee import Employee, UnavailableWindow
from storeshift.models.shift import Shift, ShiftTemplate, TemplateBlueprint
from storeshift.models.store_hours import StoreSchedule, StoreException, HOLIDAY_DAY_INDEX
from storeshift.models.vacation import VacationRequest
from storeshift.models.audit import AuditLog

__all__ = [
    "Location",
    "Employee",
    "UnavailableWindow",
    "Shift",
    "ShiftTemplate",
    "TemplateBlueprint",
    "StoreSchedule",
    "StoreException",
    "HOLIDAY_DAY_INDEX",
    "VacationRequest",
    "AuditLog",
]
