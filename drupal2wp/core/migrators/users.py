"""Drupal accounts to WordPress users."""

import re
import secrets
from collections.abc import Sequence

from drupal2wp import log
from drupal2wp.core.migrators.base import BaseMigrator
from drupal2wp.core.stats import MigrationOutcome
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import SourceUser
from drupal2wp.models.target import TargetUser

__all__ = ["UserMigrator", "sanitize_username", "wordpress_role"]

ROLE_PRIORITY = ("administrator", "editor", "author", "contributor")
DEFAULT_ROLE = "subscriber"
PASSWORD_LENGTH = 12

_INVALID_USERNAME_CHARS = re.compile(r"[^a-zA-Z0-9\s.\-@_]")


def sanitize_username(username: str | None) -> str:
    """Drop characters WordPress rejects in logins.

    Falls back to a random ``user_xxxxxxxx`` login when nothing is left.
    """
    cleaned = _INVALID_USERNAME_CHARS.sub("", username or "").strip()
    return cleaned or f"user_{secrets.token_hex(4)}"


def wordpress_role(roles: Sequence[str]) -> str:
    """Pick the highest WordPress role whose name appears in a Drupal role."""
    names = [r.lower() for r in roles if r]
    for role in ROLE_PRIORITY:
        if any(role in name for name in names):
            return role
    return DEFAULT_ROLE


def random_password(length: int = PASSWORD_LENGTH) -> str:
    return secrets.token_urlsafe(length)[:length]


class UserMigrator(BaseMigrator[SourceUser]):
    """Links Drupal users to existing WordPress users or creates them."""

    family = Family.USER

    async def prepare(self) -> None:
        await super().prepare()
        self._by_email: dict[str, TargetUser] = {}
        self._by_username: dict[str, TargetUser] = {}
        for user in await self.client.get_users():
            self._remember(user)
        log.debug(f"Loaded {len(self._by_username)} existing WordPress users")

    def _remember(self, user: TargetUser) -> None:
        if user.email:
            self._by_email.setdefault(user.email.lower(), user)
        if user.username:
            self._by_username.setdefault(user.username.lower(), user)

    def find_existing(self, user: SourceUser) -> TargetUser | None:
        """Match a WordPress user by e-mail, then by login."""
        if user.email and user.email.lower() in self._by_email:
            return self._by_email[user.email.lower()]
        return self._by_username.get(user.username.lower())

    async def fetch(self) -> Sequence[SourceUser]:
        return await self.source.get_users()

    def validate(self, record: SourceUser) -> str | None:
        if not record.email:
            return "missing e-mail"
        return None

    async def migrate_record(self, record: SourceUser) -> MigrationOutcome:
        existing = self.find_existing(record)
        if existing is not None:
            self.mappings.record_mapping(
                self.family, record.source_id, existing.id, record.label
            )
            log.info(
                f"Linked user $$'{record.label}'$$ to existing user "
                f"$${{source_id: {record.source_id}, target_id: {existing.id}}}$$"
            )
            return MigrationOutcome.LINKED

        role = wordpress_role(record.roles)
        created = await self.client.create_user(
            sanitize_username(record.username),
            record.email,
            random_password(),
            name=record.username,
            roles=[role],
        )
        self._remember(created)
        self.mappings.record_mapping(
            self.family, record.source_id, created.id, record.label
        )
        log.success(
            f"Created user $$'{record.label}'$$ as {role} "
            f"$${{source_id: {record.source_id}, target_id: {created.id}}}$$"
        )
        return MigrationOutcome.MIGRATED
