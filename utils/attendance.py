"""
Attendance state transitions for a recognised employee.

Per (employee, local calendar date) the day moves through
NoRecord -> CheckedIn -> Complete. Scans in the Complete state never mutate
the stored record. Absence is never written here; it is derived at report
time by derive_absences().
"""
import sqlite3
from dataclasses import dataclass
from typing import Optional

import storage
from utils.helpers import date_key, format_time, is_late, to_local
from utils.logger import get_logger

logger = get_logger(__name__)

EVENT_CHECK_IN = "check_in"
EVENT_CHECK_OUT = "check_out"
EVENT_ALREADY_COMPLETE = "already_complete"

STATUS_PRESENT = "present"
STATUS_LATE = "late"


@dataclass
class AttendanceOutcome:
    event: str
    record: Optional[dict]

    @property
    def recorded(self):
        return self.event != EVENT_ALREADY_COMPLETE


def record_scan(db, employee_id, at, cutoff, tz=None, confidence=None):
    """
    Record a check-in or check-out for the employee's day.

    Args:
        db: sqlite3 connection
        employee_id: Resolved employee
        at: Scan timestamp (aware, or naive local time)
        cutoff: datetime.time after which a check-in is late
        tz: Deployment zone for the date key (None for system local)
        confidence: Match confidence stored with the check-in

    Returns:
        AttendanceOutcome with event check_in, check_out or already_complete
    """
    local = to_local(at, tz)
    day = date_key(local)
    stamp = format_time(local)

    existing = storage.get_attendance(db, employee_id, day)

    if existing is None:
        status = STATUS_LATE if is_late(local, cutoff) else STATUS_PRESENT
        try:
            record_id = storage.insert_check_in(db, employee_id, day, stamp, status, confidence)
        except sqlite3.IntegrityError:
            db.rollback()
            existing = storage.get_attendance(db, employee_id, day)
            if existing is None:
                raise
            # Another scan created the day first; report its check-in without writing
            logger.info(f"Concurrent check-in for employee {employee_id} on {day}, keeping existing record")
            return AttendanceOutcome(EVENT_CHECK_IN, storage.attendance_to_dict(existing))

        logger.info(f"Check-in recorded for employee {employee_id} on {day} at {stamp} ({status})")
        return AttendanceOutcome(EVENT_CHECK_IN, storage.attendance_to_dict(storage.get_attendance(db, employee_id, day)))

    if existing["check_out"] is None and storage.set_check_out(db, existing["id"], stamp):
        logger.info(f"Check-out recorded for employee {employee_id} on {day} at {stamp}")
        return AttendanceOutcome(EVENT_CHECK_OUT, storage.attendance_to_dict(storage.get_attendance(db, employee_id, day)))

    logger.info(f"Employee {employee_id} already checked in and out on {day}")
    return AttendanceOutcome(EVENT_ALREADY_COMPLETE, storage.attendance_to_dict(storage.get_attendance(db, employee_id, day)))


def derive_absences(employees, records):
    """
    Employees with no attendance row for the day.

    Args:
        employees: Employees expected at work (rows or dicts with an "id")
        records: Attendance rows for that same day

    Returns:
        list of the absent employees, in input order
    """
    attended = {record["employee_id"] for record in records}
    return [employee for employee in employees if employee["id"] not in attended]


def summarize_day(employees, records):
    """
    Counts for one day's dashboard.

    Returns:
        dict with present (on time), late, absent (derived) and
        on_time_percentage over everyone who showed up
    """
    present = sum(1 for record in records if record["status"] == STATUS_PRESENT)
    late = sum(1 for record in records if record["status"] == STATUS_LATE)
    attended = present + late
    return {
        "present": present,
        "late": late,
        "absent": len(derive_absences(employees, records)),
        "on_time_percentage": round(present / attended * 100) if attended else 0,
    }
