from modules.auth.models.user import DPA_ROLE

MASTER_ROLE = "master"

# Shipboard/shore roles that may manage templates and users.
# Signing rights are not listed here: they come from each template's signer list.
ROLE_PERMISSIONS = {
    DPA_ROLE: ["manage_templates", "manage_users", "archive"],
    MASTER_ROLE: ["manage_templates", "archive"],
}


def can_perform_action(user_role: str, action: str) -> bool:
    return action in ROLE_PERMISSIONS.get((user_role or "").lower(), [])
