"""
Persists the configured service instances and their groups.

The registry is a plain ordered collection saved as JSON. Accessors always read the
live collection. Persistence is best-effort: a failed read or write is logged and
the in-memory state stays authoritative.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from uuid import UUID

import aiofiles
from pydantic import ValidationError

from mediahub.models.instance import InstanceGroup, ServiceInstance, ServiceType
from mediahub.storage.credentials import CredentialStore

log = logging.getLogger(__name__)

REGISTRY_FILE_NAME = "instances.json"


class InstanceRegistry:
    """CRUD over service instances and instance groups."""

    def __init__(self, config_dir: Path, credentials: CredentialStore):
        self.path = config_dir / REGISTRY_FILE_NAME
        self._credentials = credentials
        self._instances: list[ServiceInstance] = []
        self._groups: list[InstanceGroup] = []
        self._lock = asyncio.Lock()

    @property
    def instances(self) -> list[ServiceInstance]:
        return list(self._instances)

    @property
    def groups(self) -> list[InstanceGroup]:
        return list(self._groups)

    async def load(self) -> None:
        """Reloads instances and groups from disk. Groups come back densely ordered."""
        async with self._lock:
            if not self.path.is_file():
                log.debug(f"No registry file at '{self.path}', starting empty.")
                return
            try:
                async with aiofiles.open(self.path, encoding="utf-8") as f:
                    data = json.loads(await f.read())
                instances = [
                    ServiceInstance.model_validate(item)
                    for item in data.get("instances", [])
                ]
                groups = [
                    InstanceGroup.model_validate(item)
                    for item in data.get("groups", [])
                ]
            except (OSError, ValueError, ValidationError, AttributeError) as e:
                log.warning(f"Could not load instance registry: {e}")
                return
            self._instances = instances
            self._groups = sorted(groups, key=lambda g: g.order)
            self._renumber_groups()
            log.debug(
                f"Loaded {len(self._instances)} instances and "
                f"{len(self._groups)} groups."
            )

    async def _save(self) -> None:
        payload = {
            "instances": [i.model_dump(mode="json") for i in self._instances],
            "groups": [g.model_dump(mode="json") for g in self._groups],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".tmp")
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(payload, indent=2))
            os.replace(tmp_path, self.path)
        except OSError as e:
            log.error(f"Could not save instance registry: {e}")

    def _renumber_groups(self) -> None:
        for index, group in enumerate(self._groups):
            group.order = index

    # Instances

    async def add_instance(self, instance: ServiceInstance) -> ServiceInstance:
        async with self._lock:
            self._instances.append(instance)
            await self._save()
        log.info(f"Added {instance.service_type.display_name} instance '{instance.name}'.")
        return instance

    async def update_instance(self, instance: ServiceInstance) -> None:
        """Replaces the stored instance that has the same id."""
        async with self._lock:
            for index, existing in enumerate(self._instances):
                if existing.id == instance.id:
                    self._instances[index] = instance
                    await self._save()
                    return
        log.warning(f"Cannot update unknown instance {instance.id}.")

    async def delete_instance(self, instance: ServiceInstance) -> None:
        """
        Removes an instance and every credential stored for it.

        Credentials are deleted first; if that fails the instance is kept so the
        secrets never become orphaned.
        """
        await self._credentials.delete_all(instance.id)
        async with self._lock:
            self._instances = [i for i in self._instances if i.id != instance.id]
            await self._save()
        log.info(f"Deleted instance '{instance.name}'.")

    def get_instance(self, instance_id: UUID) -> ServiceInstance | None:
        return next((i for i in self._instances if i.id == instance_id), None)

    # Groups

    async def add_group(self, group: InstanceGroup) -> InstanceGroup:
        async with self._lock:
            group.order = len(self._groups)
            self._groups.append(group)
            await self._save()
        return group

    async def update_group(self, group: InstanceGroup) -> None:
        async with self._lock:
            for index, existing in enumerate(self._groups):
                if existing.id == group.id:
                    group.order = existing.order
                    self._groups[index] = group
                    await self._save()
                    return
        log.warning(f"Cannot update unknown group {group.id}.")

    async def move_group(self, from_index: int, to_index: int) -> None:
        """Moves a group to a new position and reassigns every order densely."""
        async with self._lock:
            if not 0 <= from_index < len(self._groups):
                raise IndexError(f"No group at position {from_index}.")
            group = self._groups.pop(from_index)
            to_index = max(0, min(to_index, len(self._groups)))
            self._groups.insert(to_index, group)
            self._renumber_groups()
            await self._save()

    async def delete_group(self, group: InstanceGroup) -> None:
        """Removes a group. Member instances are kept and become ungrouped."""
        async with self._lock:
            for instance in self._instances:
                if instance.group_id == group.id:
                    instance.group_id = None
            self._groups = [g for g in self._groups if g.id != group.id]
            self._renumber_groups()
            await self._save()

    # Filtering

    def instances_of_type(
        self, service_type: ServiceType, enabled_only: bool = True
    ) -> list[ServiceInstance]:
        return [
            i
            for i in self._instances
            if i.service_type is service_type and (i.is_enabled or not enabled_only)
        ]

    def instances_in(self, group: InstanceGroup) -> list[ServiceInstance]:
        return [i for i in self._instances if i.group_id == group.id]

    @property
    def ungrouped_instances(self) -> list[ServiceInstance]:
        return [i for i in self._instances if i.group_id is None]

    def group_for(self, instance: ServiceInstance) -> InstanceGroup | None:
        if instance.group_id is None:
            return None
        return next((g for g in self._groups if g.id == instance.group_id), None)

    @property
    def primary_overseerr(self) -> ServiceInstance | None:
        instances = self.instances_of_type(ServiceType.OVERSEERR)
        return instances[0] if instances else None
