from models.timeslot import Weekday, TimeSlot, WeeklySchedule
from models.class_definition import ClassDefinition, ClassStatus
from models.session import SessionInstance, SessionStatus, SessionAction, SessionHistoryEntry
from models.attendance import AttendanceRecord, AttendanceStatus, PartyRole
from models.reschedule import RescheduleRequest, RequestStatus, ResolveDecision
from models.party import Party, TeacherAvailability
from models.conflict import ConflictReport, AvailabilityIssue, ConflictCheckReport

__all__ = [
    "Weekday",
    "TimeSlot",
    "WeeklySchedule",
    "ClassDefinition",
    "ClassStatus",
    "SessionInstance",
    "SessionStatus",
    "SessionAction",
    "SessionHistoryEntry",
    "AttendanceRecord",
    "AttendanceStatus",
    "PartyRole",
    "RescheduleRequest",
    "RequestStatus",
    "ResolveDecision",
    "Party",
    "TeacherAvailability",
    "ConflictReport",
    "AvailabilityIssue",
    "ConflictCheckReport",
]
