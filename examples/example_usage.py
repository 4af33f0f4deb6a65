"""Example: using the service layer directly, without Flask.

Controllers are a thin layer; the business rules live in the services.
"""

import importlib

from school_attendance.config import get_settings_module
from school_attendance.container import build_container
from school_attendance.core.principal import AdminPrincipal


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG, jwt_secret=settings.JWT_SECRET)
    admin = AdminPrincipal(admin_id=1)
    print(container.attendance_service.get_session_options(1, 1, admin))
    print(container.summary_service.get_low_attendance_alerts(1))


if __name__ == "__main__":
    main()
