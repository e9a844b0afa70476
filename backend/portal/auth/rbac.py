from fastapi import Depends

from portal.auth.deps import PortalUser, require_active_user
from portal.authz.gate import require_hyper, require_tenant_admin


def hyper_user(current: PortalUser = Depends(require_active_user)) -> PortalUser:
    require_hyper(current.actor)
    return current


def tenant_admin(current: PortalUser = Depends(require_active_user)) -> PortalUser:
    require_tenant_admin(current.actor)
    return current
