from app.auth.permissions import Permission
from app.auth.roles import Role, ROLE_PERMISSIONS, PermissionTable, DEFAULT_PERMISSION_TABLE, parse_role
from app.auth.context import RequestContext

__all__ = [
    "Permission", "Role", "ROLE_PERMISSIONS", "PermissionTable",
    "DEFAULT_PERMISSION_TABLE", "parse_role", "RequestContext",
]
