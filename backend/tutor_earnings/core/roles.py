# tutor_earnings/core/roles.py

import enum


class UserRole(str, enum.Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"  # owns programs/modules, receives earnings
    ADMIN = "ADMIN"      # platform operator, may trigger payout jobs
