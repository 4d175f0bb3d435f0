"""
Profile and attendance store on top of SQLite.

Every function takes the connection explicitly; request handlers pass the one
from db.get_db(), scripts and tests pass their own.
"""
from face_utils import parse_template, serialize_template
from utils.db_helpers import db_query_with_retry
from utils.logger import get_logger

logger = get_logger(__name__)

EMPLOYEE_FIELDS = ('first_name', 'last_name', 'email', 'department', 'position', 'photo_url', 'status')

ATTENDANCE_WITH_EMPLOYEE = """
    SELECT a.id, a.employee_id, a.date, a.check_in, a.check_out, a.status,
           a.confidence, a.verification_method,
           e.first_name, e.last_name, e.email, e.department, e.position,
           e.photo_url, e.face_embedding, e.status AS employee_status
    FROM attendance_records a
    JOIN employees e ON a.employee_id = e.id
"""


# ================= SERIALIZATION =================
def employee_to_dict(row):
    """Public representation of an employee; the raw template is never exposed"""
    if row is None:
        return None
    return {
        "id": row["id"],
        "first_name": row["first_name"],
        "last_name": row["last_name"],
        "full_name": f"{row['first_name']} {row['last_name']}",
        "email": row["email"],
        "department": row["department"],
        "position": row["position"],
        "photo_url": row["photo_url"],
        "status": row["status"],
        "has_face_template": parse_template(row["face_embedding"]) is not None,
    }


def attendance_to_dict(row):
    if row is None:
        return None
    record = {
        "id": row["id"],
        "employee_id": row["employee_id"],
        "date": row["date"],
        "check_in": row["check_in"],
        "check_out": row["check_out"],
        "status": row["status"],
        "confidence": row["confidence"],
        "verification_method": row["verification_method"],
    }
    if "first_name" in row.keys():
        record["employee"] = employee_to_dict({
            "id": row["employee_id"],
            "first_name": row["first_name"],
            "last_name": row["last_name"],
            "email": row["email"],
            "department": row["department"],
            "position": row["position"],
            "photo_url": row["photo_url"],
            "status": row["employee_status"],
            "face_embedding": row["face_embedding"],
        })
    return record


# ================= USERS =================
def get_user_by_username(db, username):
    return db.execute("SELECT * FROM users WHERE username=?", (username,)).fetchone()


# ================= EMPLOYEES =================
def list_employees(db, status=None):
    if status:
        return db.execute(
            "SELECT * FROM employees WHERE status=? ORDER BY last_name, first_name", (status,)
        ).fetchall()
    return db.execute("SELECT * FROM employees ORDER BY last_name, first_name").fetchall()


def get_employee(db, employee_id):
    return db.execute("SELECT * FROM employees WHERE id=?", (employee_id,)).fetchone()


def get_employee_by_email(db, email):
    return db.execute("SELECT * FROM employees WHERE email=?", (email,)).fetchone()


@db_query_with_retry
def create_employee(db, data, template=None):
    """
    Insert an employee.

    Raises:
        sqlite3.IntegrityError: If the email is already taken
    """
    cur = db.execute("""
        INSERT INTO employees (first_name, last_name, email, department, position,
                               photo_url, face_embedding, status)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        data["first_name"],
        data["last_name"],
        data["email"],
        data["department"],
        data["position"],
        data.get("photo_url"),
        serialize_template(template) if template is not None else None,
        data.get("status", "active"),
    ))
    db.commit()
    logger.info(f"Employee created: ID={cur.lastrowid}, Email={data['email']}")
    return cur.lastrowid


@db_query_with_retry
def update_employee(db, employee_id, updates):
    """Update directory fields; returns False when the employee doesn't exist"""
    fields = [field for field in EMPLOYEE_FIELDS if field in updates]
    if not fields:
        return get_employee(db, employee_id) is not None

    placeholders = ', '.join(f"{field}=?" for field in fields)
    values = [updates[field] for field in fields] + [employee_id]
    cur = db.execute(f"UPDATE employees SET {placeholders} WHERE id=?", values)
    db.commit()
    return cur.rowcount > 0


@db_query_with_retry
def delete_employee(db, employee_id):
    """Delete an employee together with their attendance history"""
    db.execute("DELETE FROM attendance_records WHERE employee_id=?", (employee_id,))
    cur = db.execute("DELETE FROM employees WHERE id=?", (employee_id,))
    db.commit()
    return cur.rowcount > 0


@db_query_with_retry
def set_face_template(db, employee_id, vector, photo_url=None):
    """Enroll or re-enroll the employee's face template"""
    if photo_url:
        cur = db.execute(
            "UPDATE employees SET face_embedding=?, photo_url=? WHERE id=?",
            (serialize_template(vector), photo_url, employee_id),
        )
    else:
        cur = db.execute(
            "UPDATE employees SET face_embedding=? WHERE id=?",
            (serialize_template(vector), employee_id),
        )
    db.commit()
    return cur.rowcount > 0


@db_query_with_retry
def clear_face_template(db, employee_id):
    cur = db.execute("UPDATE employees SET face_embedding=NULL WHERE id=?", (employee_id,))
    db.commit()
    return cur.rowcount > 0


def load_enrolled_templates(db):
    """
    Load (employee, template) pairs for every active employee with a valid template.

    Stored values that aren't numeric templates are skipped.
    """
    rows = db.execute("""
        SELECT * FROM employees
        WHERE status='active' AND face_embedding IS NOT NULL
    """).fetchall()

    enrolled = []
    skipped = 0
    for row in rows:
        template = parse_template(row["face_embedding"])
        if template is None:
            skipped += 1
            continue
        enrolled.append((employee_to_dict(row), template))

    if skipped:
        logger.warning(f"Skipped {skipped} stored face embedding(s) that are not numeric templates")
    logger.debug(f"Loaded {len(enrolled)} enrolled face templates")
    return enrolled


# ================= ATTENDANCE =================
def get_attendance(db, employee_id, day):
    return db.execute(
        "SELECT * FROM attendance_records WHERE employee_id=? AND date=?",
        (employee_id, day),
    ).fetchone()


def get_attendance_by_id(db, record_id):
    return db.execute(ATTENDANCE_WITH_EMPLOYEE + " WHERE a.id=?", (record_id,)).fetchone()


@db_query_with_retry
def insert_check_in(db, employee_id, day, check_in, status, confidence=None, method="face"):
    """
    Create the attendance day with its check-in.

    Raises:
        sqlite3.IntegrityError: If a row for (employee, day) already exists
    """
    cur = db.execute("""
        INSERT INTO attendance_records (employee_id, date, check_in, status, confidence, verification_method)
        VALUES (?, ?, ?, ?, ?, ?)
    """, (employee_id, day, check_in, status, confidence, method))
    db.commit()
    return cur.lastrowid


@db_query_with_retry
def set_check_out(db, record_id, check_out):
    """Set the check-out only if it is still empty; returns whether a row changed"""
    cur = db.execute(
        "UPDATE attendance_records SET check_out=? WHERE id=? AND check_out IS NULL",
        (check_out, record_id),
    )
    db.commit()
    return cur.rowcount > 0


def attendance_by_date(db, day):
    return db.execute(
        ATTENDANCE_WITH_EMPLOYEE + " WHERE a.date=? ORDER BY a.check_in",
        (day,),
    ).fetchall()


def recent_attendance(db, limit=10):
    return db.execute(
        ATTENDANCE_WITH_EMPLOYEE + " ORDER BY a.date DESC, a.check_in DESC LIMIT ?",
        (limit,),
    ).fetchall()


def attendance_by_range(db, start_date, end_date):
    return db.execute(
        ATTENDANCE_WITH_EMPLOYEE + " WHERE a.date >= ? AND a.date <= ? ORDER BY a.date DESC, a.check_in",
        (start_date, end_date),
    ).fetchall()
