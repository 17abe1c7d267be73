# Security module
from app.security.auth import (
    create_access_token, decode_token, get_current_actor
)

__all__ = [
    'create_access_token', 'decode_token', 'get_current_actor'
]
