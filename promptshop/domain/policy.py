from collections.abc import Sequence

from promptshop.domain.entities import User
from promptshop.rules.models import Rules


class PolicyEngine:
    def __init__(self, rules: Rules):
        self.rules = rules

    def check_permission(self, user: User | None, action: str) -> bool:
        return self.check_roles(user, user.roles if user else [], action)

    def check_roles(self, user: User | None, user_roles: Sequence[str], action: str) -> bool:
        """
        Check if the user/role is allowed to perform the action.

        Order of precedence:
        1. Public Permissions (Global)
        2. Role-Based Access Control (RBAC)
        """
        # 1. Public Permissions
        if action in self.rules.rbac.public_permissions:
            return True

        # If not public, we need an active user
        if not user or user.status != "active":
            return False

        # 2. RBAC
        for role in user_roles:
            allowed_actions = self.rules.rbac.roles.get(role, [])
            if "*" in allowed_actions:
                return True
            if action in allowed_actions:
                return True

            # Scoped wildcards ("catalog:*" matches "catalog:write")
            if ":" in action:
                scope = action.split(":")[0]
                if f"{scope}:*" in allowed_actions:
                    return True

        return False
