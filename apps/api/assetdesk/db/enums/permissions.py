"""Role permission helper sets."""

from assetdesk.db.enums.auth import Role

# Roles that can see every asset
ROLES_SEE_ALL_ASSETS = {Role.ADMIN, Role.ATTESTATION_COORDINATOR}

# Roles that can create, edit and delete assets of any owner
ROLES_CAN_MANAGE_ASSETS = {Role.ADMIN}

# Roles that can create and launch attestation campaigns
ROLES_CAN_MANAGE_CAMPAIGNS = {Role.ADMIN, Role.ATTESTATION_COORDINATOR}

# Roles that can read campaign progress and send reminders
ROLES_CAN_MONITOR_CAMPAIGNS = ROLES_CAN_MANAGE_CAMPAIGNS | {Role.MANAGER}

# Roles that can manage users and companies
ROLES_CAN_MANAGE_USERS = {Role.ADMIN}

# Roles never touched by automatic manager promotion
ROLES_EXEMPT_FROM_PROMOTION = {Role.MANAGER, Role.ADMIN}
