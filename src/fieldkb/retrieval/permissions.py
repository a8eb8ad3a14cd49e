"""
Role clearance for retrieval.

Each user role may see sources up to a maximum sensitivity level.
Unknown roles get the public clearance.
"""

from fieldkb.models import SensitivityLevel

ROLE_CLEARANCE: dict[str, SensitivityLevel] = {
    "admin": SensitivityLevel.RESTRICTED,
    "manager": SensitivityLevel.CONFIDENTIAL,
    "finance": SensitivityLevel.CONFIDENTIAL,
    "sales": SensitivityLevel.INTERNAL,
    "technician": SensitivityLevel.INTERNAL,
    "user": SensitivityLevel.PUBLIC,
}


def clearance_for_role(role: str) -> SensitivityLevel:
    """Highest sensitivity level a role may retrieve."""
    return ROLE_CLEARANCE.get(role.strip().lower(), SensitivityLevel.PUBLIC)

