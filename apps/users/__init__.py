"""Users app package.

Holds the custom user model with client, sitter and administrator roles
and the billing accounts users belong to. Use
``apps.users.models.CustomUser`` as the AUTH_USER_MODEL throughout
the project.
"""
