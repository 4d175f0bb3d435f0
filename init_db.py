"""
Create the database schema and the default admin account
"""
import config
from db import connect, init_schema, seed_admin


def main():
    conn = connect(config.DATABASE)
    try:
        init_schema(conn)
        created = seed_admin(conn, config.DEFAULT_ADMIN_USERNAME, config.DEFAULT_ADMIN_PASSWORD)
    finally:
        conn.close()

    print(f"Database initialized: {config.DATABASE}")
    if created:
        print(f"Default admin created: {config.DEFAULT_ADMIN_USERNAME}")


if __name__ == "__main__":
    main()
