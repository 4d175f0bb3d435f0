"""
API blueprint for face recognition and attendance records
"""
import sqlite3
from datetime import datetime

from flask import Blueprint, current_app, request, jsonify

import face_utils
import storage
from blueprints.employees import enroll_face
from db import get_db
from utils.attendance import EVENT_ALREADY_COMPLETE, EVENT_CHECK_IN, record_scan
from utils.helpers import date_key, is_late, now_local
from utils.logger import get_logger
from utils.matcher import REASON_NO_ENROLLED, InvalidInput, match
from utils.validators import (
    MANUAL_ATTENDANCE_STATUSES,
    ValidationError,
    validate_date,
    validate_embedding,
    validate_integer,
    validate_json_object,
    validate_required,
    validate_time,
)

logger = get_logger(__name__)
api_bp = Blueprint('api', __name__, url_prefix='/api')

REJECTION_MESSAGES = {
    "no_face_detected": "No face could be matched. Make sure your face is visible and that employees are enrolled.",
    "not_recognized": "Face not recognized. Please ensure you are registered in the system.",
    "ambiguous_match": "Face matches more than one employee. Please contact the administrator.",
    "already_complete": "Check-in and check-out are already recorded for today.",
}


def _rejection(reason, **extra):
    return jsonify({"success": False, "reason": reason, "message": REJECTION_MESSAGES[reason], **extra})


def _probe_from_request(data):
    """
    Descriptor to identify: computed client-side, or embedded here from a photo.

    Returns:
        list of floats, or None when the photo contains no face
    """
    if data.get("descriptor") is not None:
        return validate_embedding(data.get("descriptor"), "Descriptor")
    if data.get("photo"):
        return face_utils.encode_face_from_base64(data.get("photo"))
    raise InvalidInput("A descriptor or a photo is required")


def _load_enrolled(db):
    cache = current_app.extensions['template_cache']
    return cache.get_or_load(lambda: storage.load_enrolled_templates(db))


@api_bp.route("/face/recognize", methods=["POST"])
def recognize_face():
    """Identify the employee from a face descriptor and record the scan"""
    db = get_db()

    try:
        probe = _probe_from_request(validate_json_object(request.get_json(silent=True)))
    except ValidationError as e:
        logger.warning(f"Face recognition called with invalid input: {str(e)}")
        return jsonify({"success": False, "reason": "invalid_input", "message": str(e)}), 400

    if probe is None:
        return _rejection(REASON_NO_ENROLLED)

    enrolled = _load_enrolled(db)
    try:
        result = match(
            probe,
            enrolled,
            current_app.config['FACE_MATCH_THRESHOLD'],
            current_app.config['FACE_MATCH_EPSILON'],
        )
    except InvalidInput as e:
        return jsonify({"success": False, "reason": "invalid_input", "message": str(e)}), 400

    if not result.ok:
        return _rejection(result.reason)

    employee = result.employee
    outcome = record_scan(
        db,
        employee["id"],
        now_local(current_app.config['TIMEZONE']),
        current_app.config['LATE_CUTOFF_TIME'],
        tz=current_app.config['TIMEZONE'],
        confidence=round(result.confidence, 4),
    )

    if outcome.event == EVENT_ALREADY_COMPLETE:
        return _rejection(EVENT_ALREADY_COMPLETE, employee=employee, attendance=outcome.record)

    record = outcome.record
    if outcome.event == EVENT_CHECK_IN:
        message = f"Check-in recorded at {record['check_in']}"
        if record["status"] == "late":
            message += " (Late)"
    else:
        message = f"Check-out recorded at {record['check_out']}. Have a great day!"

    return jsonify({
        "success": True,
        "employee": employee,
        "event": outcome.event,
        "confidence": result.confidence,
        "distance": result.distance,
        "attendance": record,
        "message": message,
    })


@api_bp.route("/face/embedding", methods=["POST"])
def face_embedding():
    """Enroll a face template for an existing employee"""
    try:
        data = validate_json_object(request.get_json(silent=True))
        employee_id = data.get("employeeId", data.get("employee_id"))
        employee_id = validate_integer(validate_required(employee_id, "Employee ID"), "Employee ID", min_value=1)
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    return enroll_face(employee_id, data)


@api_bp.route("/attendance", methods=["GET"])
def attendance_for_date():
    """Attendance records for a day (default: today)"""
    try:
        day = validate_date(request.args.get("date")) or date_key(now_local(current_app.config['TIMEZONE']))
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    records = storage.attendance_by_date(get_db(), day)
    return jsonify([storage.attendance_to_dict(row) for row in records])


@api_bp.route("/attendance/recent", methods=["GET"])
def recent_attendance():
    try:
        limit = validate_integer(request.args.get("limit"), "Limit", min_value=1, max_value=500) or 10
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    records = storage.recent_attendance(get_db(), limit)
    return jsonify([storage.attendance_to_dict(row) for row in records])


@api_bp.route("/attendance/range", methods=["GET"])
def attendance_range():
    try:
        start_date = validate_date(validate_required(request.args.get("startDate"), "Start date"), "Start date")
        end_date = validate_date(validate_required(request.args.get("endDate"), "End date"), "End date")
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    if start_date > end_date:
        return jsonify({"success": False, "message": "Start date must not be after end date"}), 400

    records = storage.attendance_by_range(get_db(), start_date, end_date)
    return jsonify([storage.attendance_to_dict(row) for row in records])


@api_bp.route("/attendance", methods=["POST"])
def create_attendance():
    """Manual attendance entry for a day without a face scan"""
    try:
        data = validate_json_object(request.get_json(silent=True))
        employee_id = validate_integer(validate_required(data.get("employee_id"), "Employee ID"), "Employee ID", min_value=1)
        day = validate_date(validate_required(data.get("date"), "Date"))
        check_in = validate_time(validate_required(data.get("check_in"), "Check-in"), "Check-in")
        check_out = validate_time(data.get("check_out"), "Check-out")
        if check_out and datetime.strptime(check_out, "%H:%M") < datetime.strptime(check_in, "%H:%M"):
            raise ValidationError("Check-out must not be before check-in")
        status = data.get("status")
        if status is not None and status not in MANUAL_ATTENDANCE_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(MANUAL_ATTENDANCE_STATUSES)}")
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400

    db = get_db()
    if storage.get_employee(db, employee_id) is None:
        return jsonify({"success": False, "message": "Employee not found"}), 404

    check_in_at = datetime.strptime(check_in, "%H:%M")
    if status is None:
        status = "late" if is_late(check_in_at, current_app.config['LATE_CUTOFF_TIME']) else "present"

    try:
        record_id = storage.insert_check_in(
            db, employee_id, day, check_in_at.strftime("%H:%M:%S"), status, method="manual"
        )
    except sqlite3.IntegrityError:
        db.rollback()
        return jsonify({"success": False, "message": "Attendance already recorded for that day"}), 409

    if check_out:
        storage.set_check_out(db, record_id, datetime.strptime(check_out, "%H:%M").strftime("%H:%M:%S"))

    logger.info(f"Manual attendance recorded for employee {employee_id} on {day} ({status})")
    return jsonify(storage.attendance_to_dict(storage.get_attendance_by_id(db, record_id))), 201
