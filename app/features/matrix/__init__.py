"""
Authorization matrix feature module.

Roles, actions and the grant/deny/conditional permission matrix between them:
resolution, upsert, projection and CSV export.
"""
