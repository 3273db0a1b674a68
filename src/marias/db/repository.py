"""Repository: async CRUD for all models."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marias.db.models import (
    AuthToken,
    Channel,
    ConfigHistory,
    Feedback,
    InventoryCount,
    InventoryItem,
    Message,
    Module,
    Notification,
    Role,
    ShoppingItem,
    SystemConfig,
    Task,
    User,
)
from marias.security import hash_password, hash_token, verify_password


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


_MISSING = object()


def _changed_keys(previous, new) -> list[str]:
    """Top-level keys whose value differs between two config dicts."""
    if not isinstance(previous, dict) or not isinstance(new, dict):
        return []
    return sorted(
        key for key in previous.keys() | new.keys()
        if previous.get(key, _MISSING) != new.get(key, _MISSING)
    )


class Repository:
    """High-level async data access. Accepts a session from get_session()."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _apply_updates(self, obj, fields: dict, allowed: set[str]):
        for field, value in fields.items():
            if field not in allowed:
                raise ValueError(f"Field '{field}' cannot be updated")
            setattr(obj, field, value)
        await self.session.flush()
        return obj

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self,
        username: str,
        password: str,
        name: str,
        email: str,
        role: str = "Employee",
    ) -> User:
        """Create a user, hashing the plaintext password."""
        user = User(
            username=username,
            password_hash=hash_password(password),
            name=name,
            email=email,
            role=role,
            status="active",
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_user(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)

    async def get_user_by_username(self, username: str) -> User | None:
        """Case-insensitive username lookup."""
        stmt = select(User).where(func.lower(User.username) == username.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_users(self) -> list[User]:
        stmt = select(User).order_by(User.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_users(self) -> int:
        result = await self.session.execute(select(func.count(User.id)))
        return result.scalar_one()

    async def authenticate_user(self, username: str, password: str) -> User | None:
        """Return the user if the credentials match and the account is active."""
        user = await self.get_user_by_username(username)
        if user is None or user.status != "active":
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    async def create_role(self, name: str, permissions: list[str]) -> Role:
        role = Role(name=name, permissions=json.dumps(permissions))
        self.session.add(role)
        await self.session.flush()
        return role

    async def get_role_by_name(self, name: str) -> Role | None:
        """Exact, case-sensitive role lookup."""
        stmt = select(Role).where(Role.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_roles(self) -> list[Role]:
        stmt = select(Role).order_by(Role.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    def role_permissions(role: Role) -> list[str]:
        """Parse permissions JSON field."""
        if not role.permissions:
            return []
        return json.loads(role.permissions)

    # ------------------------------------------------------------------
    # Auth tokens
    # ------------------------------------------------------------------

    async def create_auth_token(
        self, user_id: int, token: str, ttl_days: int
    ) -> AuthToken:
        """Store a new bearer token (hashed) for a user."""
        at = AuthToken(
            user_id=user_id,
            token_hash=hash_token(token),
            token_prefix=token[:8],
            expires_at=_utcnow() + timedelta(days=ttl_days),
        )
        self.session.add(at)
        await self.session.flush()
        return at

    async def verify_auth_token(self, token: str) -> User | None:
        """Return the token's user if the token exists and has not expired."""
        stmt = select(AuthToken).where(AuthToken.token_hash == hash_token(token))
        result = await self.session.execute(stmt)
        at = result.scalar_one_or_none()
        if at is None:
            return None
        now = _utcnow()
        if _aware(at.expires_at) <= now:
            return None
        at.last_used_at = now
        user = await self.get_user(at.user_id)
        await self.session.flush()
        if user is None or user.status != "active":
            return None
        return user

    async def delete_auth_token(self, token: str) -> bool:
        """Revoke a bearer token. Returns True if it existed."""
        stmt = select(AuthToken).where(AuthToken.token_hash == hash_token(token))
        result = await self.session.execute(stmt)
        at = result.scalar_one_or_none()
        if at is None:
            return False
        await self.session.delete(at)
        await self.session.flush()
        return True

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    async def create_channel(
        self,
        name: str,
        created_by: int,
        type: str = "channel",
        participants: list[int] | None = None,
    ) -> Channel:
        channel = Channel(
            name=name,
            type=type,
            participants=json.dumps(participants) if participants else None,
            created_by=created_by,
        )
        self.session.add(channel)
        await self.session.flush()
        return channel

    async def get_channel(self, channel_id: int) -> Channel | None:
        return await self.session.get(Channel, channel_id)

    async def list_channels(self) -> list[Channel]:
        stmt = select(Channel).order_by(Channel.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    def channel_participants(channel: Channel) -> list[int]:
        if channel.participants is None:
            return []
        return json.loads(channel.participants)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def create_message(
        self,
        channel_id: str,
        sender_id: int,
        content: str,
        mentions: list[int] | None = None,
    ) -> Message:
        """Persist a chat message. The id and timestamp are assigned here."""
        msg = Message(
            channel_id=channel_id,
            sender_id=sender_id,
            content=content,
            mentions=json.dumps(mentions) if mentions else None,
            timestamp=_utcnow(),
        )
        self.session.add(msg)
        await self.session.flush()
        return msg

    async def list_messages(self, channel_id: str, limit: int = 100) -> list[Message]:
        """Most recent messages of a channel, oldest first."""
        stmt = (
            select(Message)
            .where(Message.channel_id == channel_id)
            .order_by(Message.timestamp.desc(), Message.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))

    @staticmethod
    def message_mentions(msg: Message) -> list[int]:
        if msg.mentions is None:
            return []
        return json.loads(msg.mentions)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def create_notification(
        self,
        user_id: int,
        title: str,
        body: str,
        type: str,
        link_to: str | None = None,
    ) -> Notification:
        n = Notification(
            user_id=user_id,
            title=title,
            body=body,
            type=type,
            link_to=link_to,
            read=False,
        )
        self.session.add(n)
        await self.session.flush()
        return n

    async def list_user_notifications(
        self, user_id: int, limit: int = 100
    ) -> list[Notification]:
        """Notifications for a user, newest first."""
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_notification_read(
        self, notification_id: int, user_id: int | None = None
    ) -> Notification | None:
        """Mark as read. With user_id set, other users' notifications are not found."""
        n = await self.session.get(Notification, notification_id)
        if n is None or (user_id is not None and n.user_id != user_id):
            return None
        n.read = True
        await self.session.flush()
        return n

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def create_inventory_item(
        self,
        name: str,
        category: str,
        max_quantity: int,
        unit: str,
        quantity: int = 0,
        min_quantity: int = 5,
    ) -> InventoryItem:
        item = InventoryItem(
            name=name,
            category=category,
            quantity=quantity,
            min_quantity=min_quantity,
            max_quantity=max_quantity,
            unit=unit,
        )
        self.session.add(item)
        await self.session.flush()
        return item

    async def get_inventory_item(self, item_id: int) -> InventoryItem | None:
        return await self.session.get(InventoryItem, item_id)

    async def update_inventory_item(self, item_id: int, **kwargs) -> InventoryItem | None:
        item = await self.get_inventory_item(item_id)
        if item is None:
            return None
        return await self._apply_updates(
            item,
            kwargs,
            {"name", "category", "quantity", "min_quantity", "max_quantity", "unit"},
        )

    async def list_inventory_items(self) -> list[InventoryItem]:
        stmt = select(InventoryItem).order_by(InventoryItem.name)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_low_stock_items(self, limit: int | None = None) -> list[InventoryItem]:
        """Items whose quantity is below their minimum."""
        stmt = (
            select(InventoryItem)
            .where(InventoryItem.quantity < InventoryItem.min_quantity)
            .order_by(InventoryItem.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_low_stock_items(self) -> int:
        stmt = select(func.count(InventoryItem.id)).where(
            InventoryItem.quantity < InventoryItem.min_quantity
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def create_inventory_count(
        self, user_id: int, items_checked: int, notes: str | None = None
    ) -> InventoryCount:
        count = InventoryCount(
            user_id=user_id,
            items_checked=items_checked,
            notes=notes,
            date=_utcnow(),
        )
        self.session.add(count)
        await self.session.flush()
        return count

    async def list_inventory_counts(self) -> list[InventoryCount]:
        """Stock-takes, newest first."""
        stmt = select(InventoryCount).order_by(
            InventoryCount.date.desc(), InventoryCount.id.desc()
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Shopping list
    # ------------------------------------------------------------------

    async def create_shopping_item(
        self,
        name: str,
        category: str,
        unit: str,
        created_by: int,
        quantity: int = 1,
        status: str = "pending",
    ) -> ShoppingItem:
        item = ShoppingItem(
            name=name,
            category=category,
            quantity=quantity,
            unit=unit,
            status=status,
            created_by=created_by,
        )
        self.session.add(item)
        await self.session.flush()
        return item

    async def update_shopping_item(self, item_id: int, **kwargs) -> ShoppingItem | None:
        item = await self.session.get(ShoppingItem, item_id)
        if item is None:
            return None
        return await self._apply_updates(
            item, kwargs, {"name", "category", "quantity", "unit", "status"}
        )

    async def list_shopping_items(self) -> list[ShoppingItem]:
        stmt = select(ShoppingItem).order_by(ShoppingItem.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def create_task(
        self,
        title: str,
        description: str,
        created_by: int,
        status: str = "todo",
        priority: str = "medium",
        assignee: int | None = None,
        due_date: datetime | None = None,
    ) -> Task:
        task = Task(
            title=title,
            description=description,
            status=status,
            priority=priority,
            assignee=assignee,
            created_by=created_by,
            due_date=due_date,
        )
        self.session.add(task)
        await self.session.flush()
        return task

    async def get_task(self, task_id: int) -> Task | None:
        return await self.session.get(Task, task_id)

    async def update_task(self, task_id: int, **kwargs) -> Task | None:
        task = await self.get_task(task_id)
        if task is None:
            return None
        return await self._apply_updates(
            task,
            kwargs,
            {"title", "description", "status", "priority", "assignee", "due_date"},
        )

    async def list_tasks(self, limit: int | None = None) -> list[Task]:
        """Tasks, newest first."""
        stmt = select(Task).order_by(Task.created_at.desc(), Task.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_active_tasks(self) -> int:
        """Tasks not yet completed."""
        stmt = select(func.count(Task.id)).where(Task.status != "completed")
        result = await self.session.execute(stmt)
        return result.scalar_one()

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def create_feedback(
        self,
        title: str,
        description: str,
        type: str,
        submitted_by: int,
        visibility: str = "all",
    ) -> Feedback:
        fb = Feedback(
            title=title,
            description=description,
            type=type,
            visibility=visibility,
            submitted_by=submitted_by,
        )
        self.session.add(fb)
        await self.session.flush()
        return fb

    async def update_feedback(self, feedback_id: int, **kwargs) -> Feedback | None:
        fb = await self.session.get(Feedback, feedback_id)
        if fb is None:
            return None
        return await self._apply_updates(
            fb, kwargs, {"title", "description", "type", "visibility", "status"}
        )

    async def list_feedback(self) -> list[Feedback]:
        """All feedback, newest first. Visibility filtering is up to the caller."""
        stmt = select(Feedback).order_by(Feedback.submitted_at.desc(), Feedback.id.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # System configuration
    # ------------------------------------------------------------------

    async def get_system_config(self, key: str) -> SystemConfig | None:
        stmt = select(SystemConfig).where(SystemConfig.key == key)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_system_config(
        self, key: str, value, updated_by: int
    ) -> SystemConfig:
        """Create or overwrite a config value.

        Overwriting an existing key also records a ConfigHistory row with the
        old and new values; the first write of a key has no history.
        """
        config = await self.get_system_config(key)
        encoded = json.dumps(value)
        now = _utcnow()
        if config is None:
            config = SystemConfig(
                key=key, value=encoded, updated_by=updated_by, last_updated=now
            )
            self.session.add(config)
        else:
            previous = json.loads(config.value)
            self.session.add(
                ConfigHistory(
                    config_key=key,
                    previous_value=config.value,
                    new_value=encoded,
                    changes=json.dumps(_changed_keys(previous, value)),
                    updated_by=updated_by,
                    timestamp=now,
                )
            )
            config.value = encoded
            config.updated_by = updated_by
            config.last_updated = now
        await self.session.flush()
        return config

    @staticmethod
    def config_value(config: SystemConfig):
        return json.loads(config.value)

    async def list_config_history(self, key: str) -> list[ConfigHistory]:
        """Changes to ``key``, newest first."""
        stmt = (
            select(ConfigHistory)
            .where(ConfigHistory.config_key == key)
            .order_by(ConfigHistory.timestamp.desc(), ConfigHistory.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    async def create_module(
        self,
        id: str,
        name: str,
        registered_by: int,
        dependencies: list[str] | None = None,
        permissions: list[str] | None = None,
        active: bool = True,
    ) -> Module:
        module = Module(
            id=id,
            name=name,
            dependencies=json.dumps(dependencies or []),
            permissions=json.dumps(permissions or []),
            active=active,
            registered_by=registered_by,
        )
        self.session.add(module)
        await self.session.flush()
        return module

    async def get_module(self, module_id: str) -> Module | None:
        return await self.session.get(Module, module_id)

    async def update_module(self, module_id: str, **kwargs) -> Module | None:
        module = await self.get_module(module_id)
        if module is None:
            return None
        for field in ("dependencies", "permissions"):
            if field in kwargs:
                kwargs[field] = json.dumps(kwargs[field] or [])
        return await self._apply_updates(
            module, kwargs, {"name", "dependencies", "permissions", "active"}
        )

    async def list_modules(self) -> list[Module]:
        stmt = select(Module).order_by(Module.registered_at, Module.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    def module_list(module: Module, field: str) -> list[str]:
        """Parse a module's ``dependencies`` or ``permissions`` JSON field."""
        return json.loads(getattr(module, field) or "[]")
