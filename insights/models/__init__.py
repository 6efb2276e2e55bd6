from insights.models.credential import Credential
from insights.models.session import UserSession

__all__ = ["Credential", "UserSession"]
