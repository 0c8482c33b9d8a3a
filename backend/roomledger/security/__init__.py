# Security module
from roomledger.security.auth import (
    create_access_token, get_current_user, require_role, require_admin
)

__all__ = ['create_access_token', 'get_current_user', 'require_role', 'require_admin']
