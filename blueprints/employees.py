"""
Employee directory blueprint: CRUD and face enrollment
"""
import sqlite3

from flask import Blueprint, current_app, request, jsonify

import face_utils
import storage
from db import get_db
from utils.logger import get_logger
from utils.validators import ValidationError, validate_embedding, validate_employee_data, validate_json_object

logger = get_logger(__name__)
employees_bp = Blueprint('employees', __name__, url_prefix='/api/employees')


def invalidate_templates():
    current_app.extensions['template_cache'].clear()


def template_from_request(data):
    """
    Extract an enrollment template from a request payload.

    Accepts either a client-computed ``descriptor`` or a base64 ``photo`` that is
    embedded server-side.

    Raises:
        ValidationError: If neither is usable or the template has the wrong length
    """
    dimension = current_app.config['FACE_EMBEDDING_DIMENSION']

    if data.get("descriptor") is not None:
        return validate_embedding(data.get("descriptor"), "Descriptor", dimension)

    if data.get("photo"):
        vector = face_utils.encode_face_from_base64(data.get("photo"))
        if vector is None:
            raise ValidationError("No face detected in photo")
        return validate_embedding(vector, "Descriptor", dimension)

    raise ValidationError("A descriptor or a photo is required")


def enroll_face(employee_id, data):
    """Store (or replace) an employee's face template; returns the response tuple"""
    db = get_db()
    if storage.get_employee(db, employee_id) is None:
        return jsonify({"success": False, "message": "Employee not found"}), 404

    try:
        vector = template_from_request(data)
    except ValidationError as e:
        logger.warning(f"Face enrollment rejected for employee {employee_id}: {str(e)}")
        return jsonify({"success": False, "message": str(e)}), 400

    storage.set_face_template(db, employee_id, vector, photo_url=data.get("photo_url"))
    invalidate_templates()
    logger.info(f"Face template enrolled for employee {employee_id} ({len(vector)} values)")

    return jsonify({
        "success": True,
        "employee": storage.employee_to_dict(storage.get_employee(db, employee_id)),
        "message": "Face template enrolled",
    }), 200


@employees_bp.route("", methods=["GET"])
def list_employees():
    status = request.args.get("status")
    employees = storage.list_employees(get_db(), status=status)
    return jsonify([storage.employee_to_dict(row) for row in employees])


@employees_bp.route("/<int:employee_id>", methods=["GET"])
def get_employee(employee_id):
    employee = storage.get_employee(get_db(), employee_id)
    if employee is None:
        return jsonify({"success": False, "message": "Employee not found"}), 404
    return jsonify(storage.employee_to_dict(employee))


@employees_bp.route("", methods=["POST"])
def create_employee():
    """Register a new employee, optionally enrolling a face template at once"""
    data = validate_json_object(request.get_json(silent=True))
    validated, errors = validate_employee_data(data)
    if errors:
        logger.warning(f"Employee registration validation errors: {errors}")
        return jsonify({"success": False, "message": "Invalid data", "errors": errors}), 400

    template = None
    if data.get("descriptor") is not None or data.get("photo"):
        try:
            template = template_from_request(data)
        except ValidationError as e:
            return jsonify({"success": False, "message": str(e), "errors": [str(e)]}), 400

    db = get_db()
    if storage.get_employee_by_email(db, validated["email"]):
        return jsonify({"success": False, "message": "An employee with that email already exists"}), 409

    try:
        employee_id = storage.create_employee(db, validated, template=template)
    except sqlite3.IntegrityError:
        db.rollback()
        return jsonify({"success": False, "message": "An employee with that email already exists"}), 409

    if template is not None:
        invalidate_templates()
    return jsonify(storage.employee_to_dict(storage.get_employee(db, employee_id))), 201


@employees_bp.route("/<int:employee_id>", methods=["PATCH"])
def update_employee(employee_id):
    data = validate_json_object(request.get_json(silent=True))
    validated, errors = validate_employee_data(data, partial=True)
    if errors:
        return jsonify({"success": False, "message": "Invalid data", "errors": errors}), 400

    db = get_db()
    if storage.get_employee(db, employee_id) is None:
        return jsonify({"success": False, "message": "Employee not found"}), 404

    if "email" in validated:
        existing = storage.get_employee_by_email(db, validated["email"])
        if existing and existing["id"] != employee_id:
            return jsonify({"success": False, "message": "An employee with that email already exists"}), 409

    try:
        storage.update_employee(db, employee_id, validated)
    except sqlite3.IntegrityError:
        db.rollback()
        return jsonify({"success": False, "message": "An employee with that email already exists"}), 409

    # Cached entries carry the profile returned by recognition
    invalidate_templates()
    logger.info(f"Employee {employee_id} updated: {sorted(validated)}")
    return jsonify(storage.employee_to_dict(storage.get_employee(db, employee_id)))


@employees_bp.route("/<int:employee_id>", methods=["DELETE"])
def delete_employee(employee_id):
    if not storage.delete_employee(get_db(), employee_id):
        return jsonify({"success": False, "message": "Employee not found"}), 404
    invalidate_templates()
    logger.info(f"Employee {employee_id} deleted with attendance history")
    return "", 204


@employees_bp.route("/<int:employee_id>/face", methods=["PUT"])
def put_face(employee_id):
    """Enroll or re-enroll the employee's face"""
    return enroll_face(employee_id, validate_json_object(request.get_json(silent=True)))


@employees_bp.route("/<int:employee_id>/face", methods=["DELETE"])
def delete_face(employee_id):
    if not storage.clear_face_template(get_db(), employee_id):
        return jsonify({"success": False, "message": "Employee not found"}), 404
    invalidate_templates()
    logger.info(f"Face template cleared for employee {employee_id}")
    return "", 204
