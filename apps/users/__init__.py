"""Users app package.

Defines the platform user with its rental role (tenant, landlord, admin)
and contact details. Use ``apps.users.models.CustomUser`` as the
AUTH_USER_MODEL throughout the project.
"""
