from portal.auth.models import RecoveryToken, User  # noqa: F401
from portal.tenancy.models import App, Client, ClientUser, UserApp  # noqa: F401
from portal.audit.models import OpsAuditLog  # noqa: F401
