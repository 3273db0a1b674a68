"""Default roles, admin account and theme for a fresh database."""

from __future__ import annotations

import logging

from marias.db import Repository, get_session
from marias.permissions import DEFAULT_ROLES

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"

DEFAULT_THEME = {
    "primary": "hsl(222.2 47.4% 11.2%)",
    "variant": "professional",
    "appearance": "light",
    "radius": 0.5,
}


async def seed_defaults() -> None:
    """Create missing default roles, the admin user and the theme. Idempotent."""
    async with get_session() as s:
        repo = Repository(s)
        for name, permissions in DEFAULT_ROLES.items():
            if await repo.get_role_by_name(name) is None:
                await repo.create_role(name, permissions)
                logger.info("Created default role %s", name)

        if await repo.get_user_by_username(DEFAULT_ADMIN_USERNAME) is None:
            await repo.create_user(
                username=DEFAULT_ADMIN_USERNAME,
                password=DEFAULT_ADMIN_PASSWORD,
                name="Admin User",
                email="admin@example.com",
                role="Admin",
            )
            logger.warning(
                "Created default '%s' user with the default password; change it",
                DEFAULT_ADMIN_USERNAME,
            )

        if await repo.get_system_config("theme") is None:
            admin = await repo.get_user_by_username(DEFAULT_ADMIN_USERNAME)
            await repo.set_system_config("theme", DEFAULT_THEME, admin.id)
            logger.info("Created default theme configuration")
