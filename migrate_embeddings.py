"""
Migration script to normalise stored face embeddings.

Older databases hold embeddings in mixed forms (JSON arrays, placeholder
strings such as "sample_embedding_1", arrays of the wrong length). Anything
that is not a numeric template of the configured dimension is cleared so the
employee shows up as not enrolled and can be re-enrolled.
"""
import sys

import config
from db import connect, init_schema
from face_utils import parse_template, serialize_template


def migrate_embeddings(conn, dimension, dry_run=False):
    """
    Returns:
        (kept, cleared) counts
    """
    rows = conn.execute(
        "SELECT id, first_name, last_name, face_embedding FROM employees WHERE face_embedding IS NOT NULL"
    ).fetchall()

    kept = 0
    cleared = 0
    for row in rows:
        template = parse_template(row["face_embedding"])
        if template is not None and (not dimension or len(template) == dimension):
            # Rewrite in canonical form
            if not dry_run:
                conn.execute("UPDATE employees SET face_embedding=? WHERE id=?",
                             (serialize_template(template), row["id"]))
            kept += 1
            continue

        print(f"Clearing invalid embedding for employee {row['id']} ({row['first_name']} {row['last_name']})")
        if not dry_run:
            conn.execute("UPDATE employees SET face_embedding=NULL WHERE id=?", (row["id"],))
        cleared += 1

    if not dry_run:
        conn.commit()
    return kept, cleared


if __name__ == "__main__":
    dry_run = "--dry-run" in sys.argv
    print("Normalising stored face embeddings...")
    print("=" * 50)
    conn = connect(config.DATABASE)
    try:
        init_schema(conn)
        kept, cleared = migrate_embeddings(conn, config.FACE_EMBEDDING_DIMENSION, dry_run=dry_run)
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    print("=" * 50)
    print(f"Kept {kept} template(s), cleared {cleared}{' (dry run)' if dry_run else ''}")
