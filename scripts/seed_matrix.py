"""
Seed script to populate the default roles, actions and permissions.

Run this script after database initialization to create:
- The system roles that drive console capabilities
- Example business roles
- The action catalog
- Initial permissions for the example roles

Existing rows are left alone, except that system roles have their description
and color refreshed. Running it twice changes nothing.

Usage:
    uv run python -m scripts.seed_matrix
"""
import asyncio

from app.core.database.engine import get_db, init_db
from app.core.database.store import EntityStore
from app.features.matrix.models import PermissionStatus
from app.features.matrix.mutator import get_permission_row, set_permission
from app.utils import get_logger


log = get_logger(__name__)

GRANTED = PermissionStatus.GRANTED
CONDITIONAL = PermissionStatus.CONDITIONAL


SYSTEM_ROLES = [
    ("View Only", "Can only view the authorization matrix", "#6B7280"),
    ("Edit & View", "Can view and edit the authorization matrix", "#3B82F6"),
    ("Admin", "Can view, edit, manage all users and roles", "#DC2626"),
]


DEFAULT_ROLES = [
    ("Administrator", "Full system access", "#DC2626"),
    ("Manager", "Department management access", "#D97706"),
    ("Employee", "Basic employee access", "#059669"),
    ("Contractor", "Limited contractor access", "#7C3AED"),
]


DEFAULT_ACTIONS = [
    # User management
    ("Create User Account", "Ability to create new user accounts", "User Management"),
    ("Delete User Account", "Ability to delete user accounts", "User Management"),
    ("View User Profiles", "Access to view user profile information", "User Management"),

    # Financial
    ("Approve Expense Reports", "Authority to approve expense reports", "Financial"),
    ("Process Payroll", "Access to payroll processing systems", "Financial"),
    ("Access Financial Reports", "View financial reports and analytics", "Financial"),

    # Project management
    ("Manage Projects", "Create and manage project workflows", "Project Management"),
    ("Assign Tasks", "Ability to assign tasks to team members", "Project Management"),
    ("View Project Reports", "Access to project status and reports", "Project Management"),

    # Human resources
    ("Access HR Records", "View employee HR information", "Human Resources"),
    ("Conduct Performance Reviews", "Perform employee evaluations", "Human Resources"),
    ("Manage Benefits", "Administer employee benefits", "Human Resources"),

    # System
    ("System Administration", "Full system configuration access", "System"),
    ("Database Access", "Direct database query capabilities", "System"),
    ("Security Configuration", "Configure security settings", "System"),
]


# role name -> {action name: (status, limit_value, conditions)}
# Actions not listed are stored as denied. "ALL" grants every action.
DEFAULT_PERMISSIONS = {
    "Administrator": "ALL",
    "Manager": {
        "Create User Account": (GRANTED, None, None),
        "View User Profiles": (GRANTED, None, None),
        "Approve Expense Reports": (GRANTED, 10000, None),
        "Manage Projects": (GRANTED, None, None),
        "Assign Tasks": (GRANTED, None, None),
        "View Project Reports": (GRANTED, None, None),
        "Conduct Performance Reviews": (GRANTED, None, None),
        "Access Financial Reports": (CONDITIONAL, None, "Department level only"),
    },
    "Employee": {
        "View User Profiles": (GRANTED, None, None),
        "View Project Reports": (GRANTED, None, None),
        "Assign Tasks": (CONDITIONAL, None, "Within assigned projects only"),
    },
    "Contractor": {
        "View Project Reports": (CONDITIONAL, None, "Assigned projects only"),
    },
}


async def seed_roles(store: EntityStore) -> dict[str, str]:
    """
    Create system and example roles.

    Returns:
        Dictionary mapping role names to role IDs
    """
    log.info("Creating roles...")
    roles_map = {}

    for name, description, color in SYSTEM_ROLES:
        existing = await store.first("roles", name=name)
        values = {"description": description, "color": color, "is_system_role": True}
        if existing:
            role = await store.update("roles", existing.id, values)
            log.debug("System role '%s' already exists, refreshed", name)
        else:
            role = await store.insert("roles", name=name, **values)
            log.info("Created system role: %s", name)
        roles_map[name] = role.id

    for name, description, color in DEFAULT_ROLES:
        existing = await store.first("roles", name=name)
        if existing:
            log.debug("Role '%s' already exists, skipping", name)
            roles_map[name] = existing.id
            continue
        role = await store.insert("roles", name=name, description=description, color=color)
        roles_map[name] = role.id
        log.info("Created role: %s", name)

    return roles_map


async def seed_actions(store: EntityStore) -> dict[str, str]:
    """
    Create the action catalog.

    Returns:
        Dictionary mapping action names to action IDs
    """
    log.info("Creating actions...")
    actions_map = {}

    for name, description, category in DEFAULT_ACTIONS:
        existing = await store.first("actions", name=name)
        if existing:
            log.debug("Action '%s' already exists, skipping", name)
            actions_map[name] = existing.id
            continue
        action = await store.insert("actions", name=name, description=description, category=category)
        actions_map[name] = action.id
        log.info("Created action: %s", name)

    log.info("Catalog has %d actions", len(actions_map))
    return actions_map


async def seed_permissions(store: EntityStore, roles_map: dict[str, str], actions_map: dict[str, str]) -> int:
    """
    Store the default permissions of the example roles.

    Pairs that already have a row are skipped so edits made in the console
    survive a re-run.

    Returns:
        Number of permission rows created
    """
    log.info("Creating default permissions...")
    created = 0

    for role_name, grants in DEFAULT_PERMISSIONS.items():
        role_id = roles_map[role_name]
        for action_name, action_id in actions_map.items():
            if await get_permission_row(store, role_id, action_id) is not None:
                continue

            if grants == "ALL":
                status, limit_value, conditions = GRANTED, None, None
            else:
                status, limit_value, conditions = grants.get(
                    action_name, (PermissionStatus.DENIED, None, None)
                )

            await set_permission(
                store, role_id, action_id, status,
                limit_value=limit_value, conditions=conditions,
            )
            created += 1

    log.info("Created %d permissions", created)
    return created


async def main():
    """Main function to seed the authorization matrix."""
    log.info("Starting matrix seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    # Get database session
    async for db in get_db():
        store = EntityStore(db)
        try:
            roles_map = await seed_roles(store)
            actions_map = await seed_actions(store)
            await seed_permissions(store, roles_map, actions_map)

            log.info("Matrix seeding completed successfully!")
            log.info("Roles: %s", ", ".join(roles_map))
        except Exception as e:
            log.error("Error seeding matrix: %s", e, exc_info=True)
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
