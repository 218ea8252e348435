from pydantic import BaseModel, Field

from hrm_kpi.core.exceptions import AuthorizationError
from hrm_kpi.models.enumerations import HrmRole


class AuthContext(BaseModel):
    """
    Caller identity passed into every public engine operation.
    Authentication happens outside the engine; this only carries its result.
    """

    actor_id: str = Field(..., min_length=1)
    role: HrmRole

    def require(self, *roles: HrmRole) -> "AuthContext":
        """Raise AuthorizationError unless the caller holds one of roles."""
        if self.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise AuthorizationError(
                f"Role {self.role.value} is not permitted (requires one of: {allowed})",
                {"actor_id": self.actor_id, "role": self.role.value},
            )
        return self


SYSTEM_CONTEXT = AuthContext(actor_id="system", role=HrmRole.SYSTEM)

# Roles allowed to trigger compute / lock operations
OPERATOR_ROLES = (HrmRole.SUPER_ADMIN, HrmRole.SYSTEM)
