"""Import every model so ``Base.metadata`` sees all tables (Alembic, tests, seed)."""
from app.db.session import Base  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.tour import Tour  # noqa: F401
from app.models.tour_image import TourImage  # noqa: F401
from app.models.booking import Booking  # noqa: F401
from app.models.payment import Payment  # noqa: F401
from app.models.review import Review  # noqa: F401
from app.models.contact_message import ContactMessage  # noqa: F401
from app.models.homepage_content import HomepageContent  # noqa: F401
from app.models.setting import Setting  # noqa: F401
from app.models.password_reset_token import PasswordResetToken  # noqa: F401
from app.models.email_log import EmailLog  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401
