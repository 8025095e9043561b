"""ORM Models — SQLAlchemy declarative models for all persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - No business logic in models; rules live in core/, mutations in services/

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all/autogenerate
"""

from plantbid.models.bid import Bid  # noqa: F401
from plantbid.models.order import Order  # noqa: F401
from plantbid.models.conversation import Conversation  # noqa: F401
from plantbid.models.product import Product  # noqa: F401
from plantbid.models.payment_record import PaymentRecord  # noqa: F401
from plantbid.models.reconcile_attempt import ReconcileAttempt  # noqa: F401
from plantbid.models.notification import Notification  # noqa: F401
