"""
Create the Super Admin user for Nirman.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from nirman.auth import generate_password, hash_password
from nirman.database import get_db, init_database
from nirman.roles import Role


def create_admin_user():
    """Create a Super Admin user, or confirm the role of an existing one."""
    init_database()

    admin_email = os.getenv("NIRMAN_ADMIN_EMAIL", "superadmin@nirman.gov.in")
    admin_password = os.getenv("NIRMAN_ADMIN_PASSWORD") or generate_password()
    admin_name = "System Administrator"
    admin_user_id = "SUPERADMIN"

    with get_db() as conn:
        cursor = conn.cursor()

        # Check if admin already exists
        cursor.execute("SELECT id FROM users WHERE user_id = ? OR email = ?", (admin_user_id, admin_email))
        row = cursor.fetchone()
        if row:
            print(f"Admin user already exists: {admin_email}")
            cursor.execute("UPDATE users SET role = ?, is_active = 1 WHERE id = ?",
                           (Role.SUPER_ADMIN.value, row['id']))
            print("Super Admin role confirmed.")
            return

        cursor.execute("""
            INSERT INTO users (user_id, full_name, email, department, role, password_hash, is_active)
            VALUES (?, ?, ?, ?, ?, ?, 1)
        """, (
            admin_user_id,
            admin_name,
            admin_email,
            'Administration',
            Role.SUPER_ADMIN.value,
            hash_password(admin_password)
        ))

        print("="*50)
        print("Admin user created successfully!")
        print("="*50)
        print(f"  Email: {admin_email}")
        print(f"  Password: {admin_password}")
        print(f"  User ID: {admin_user_id}")
        print("="*50)
        print("IMPORTANT: Change the password after first login!")
        print("="*50)


if __name__ == "__main__":
    create_admin_user()
