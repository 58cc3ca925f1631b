"""
Administration module: staff user management and system overview.

- Staff users are listed, created, edited and deleted here
- ADMIN and DEV accounts are protected (roles kept, never deleted)
- Every change is recorded to the audit trail
"""
