"""
Reports blueprint: dashboard statistics and derived absences
"""
from datetime import timedelta

from flask import Blueprint, current_app, request, jsonify

import storage
from db import get_db
from utils.attendance import derive_absences, summarize_day
from utils.helpers import date_key, date_range, now_local
from utils.logger import get_logger
from utils.validators import ValidationError, validate_date

logger = get_logger(__name__)
reports_bp = Blueprint('reports', __name__, url_prefix='/api')


def _today():
    return now_local(current_app.config['TIMEZONE']).date()


def _daily_stats(days):
    """Per-day present/late/absent counts for the last ``days`` days, oldest first"""
    db = get_db()
    end = _today()
    start = end - timedelta(days=days - 1)

    employees = storage.list_employees(db, status="active")
    records = storage.attendance_by_range(db, start.isoformat(), end.isoformat())

    by_date = {}
    for record in records:
        by_date.setdefault(record["date"], []).append(record)

    stats = []
    for day in date_range(start, end):
        summary = summarize_day(employees, by_date.get(day, []))
        stats.append({
            "date": day,
            "present": summary["present"],
            "late": summary["late"],
            "absent": summary["absent"],
        })
    return stats


@reports_bp.route("/dashboard/stats")
def dashboard_stats():
    """Today's headline numbers; absences are derived, never stored"""
    db = get_db()
    day = date_key(now_local(current_app.config['TIMEZONE']))
    summary = summarize_day(storage.list_employees(db, status="active"), storage.attendance_by_date(db, day))

    return jsonify({
        "presentToday": summary["present"] + summary["late"],
        "lateArrivals": summary["late"],
        "absences": summary["absent"],
        "onTimePercentage": summary["on_time_percentage"],
    })


@reports_bp.route("/dashboard/weekly-stats")
def weekly_stats():
    return jsonify(_daily_stats(7))


@reports_bp.route("/dashboard/monthly-stats")
def monthly_stats():
    return jsonify(_daily_stats(30))


@reports_bp.route("/reports/absences")
def absences():
    """Active employees with no attendance row for the date (default: today)"""
    try:
        day = validate_date(request.args.get("date")) or _today().isoformat()
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400

    db = get_db()
    absent = derive_absences(storage.list_employees(db, status="active"), storage.attendance_by_date(db, day))
    logger.debug(f"{len(absent)} absences derived for {day}")
    return jsonify({
        "success": True,
        "date": day,
        "count": len(absent),
        "employees": [storage.employee_to_dict(row) for row in absent],
    })
