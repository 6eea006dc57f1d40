# couponhub/models/__init__.py
# Import all models here so SQLAlchemy registers them into Base.metadata.

from couponhub.models.user import User  # noqa: F401
from couponhub.models.brand import Brand  # noqa: F401
from couponhub.models.category import Category  # noqa: F401
from couponhub.models.coupon import Coupon  # noqa: F401
from couponhub.models.coupon_usage import CouponUsage  # noqa: F401
from couponhub.models.favorite import FavoriteCoupon  # noqa: F401
from couponhub.models.submission import UserSubmission  # noqa: F401
from couponhub.models.contact import ContactSubmission  # noqa: F401
from couponhub.models.audit_log import AuditLog  # noqa: F401
from couponhub.models.verification_token import VerificationToken  # noqa: F401
