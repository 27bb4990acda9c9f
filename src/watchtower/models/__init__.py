"""SQLAlchemy ORM models."""

# Import all models so Base.metadata registers them for create_all().
from watchtower.models.device import AccessRequest as AccessRequest
from watchtower.models.device import Device as Device
from watchtower.models.device import Pattern as Pattern
from watchtower.models.user import AdminSession as AdminSession
from watchtower.models.user import PushSubscription as PushSubscription
from watchtower.models.user import User as User
