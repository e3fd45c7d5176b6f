# Import models here so Alembic can discover metadata.
from tutor_earnings.models.user import User  # noqa: F401
from tutor_earnings.models.program import Program, CourseModule  # noqa: F401

# Subscriptions + access
from tutor_earnings.models.subscription import Subscription  # noqa: F401
from tutor_earnings.models.content_access_grant import ContentAccessGrant  # noqa: F401

# Engagement -> pool -> ledger
from tutor_earnings.models.student_engagement import StudentEngagement  # noqa: F401
from tutor_earnings.models.subscription_revenue_pool import SubscriptionRevenuePool  # noqa: F401
from tutor_earnings.models.teacher_earning import TeacherEarning  # noqa: F401
