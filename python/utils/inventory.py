"""
Resource inventory queries against the container engine.

Lists image resources matching a filter and enriches them with dependency
facts: the containers created from an image and the child images layered on
top of it. Every call is a fresh, read-only query; nothing is cached.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from utils.logging_utils import get_logger

logger = get_logger(__name__)

UNTAGGED_PLACEHOLDER = "<none>:<none>"


class ImageFilter(Enum):
    """Which images an inventory listing returns"""

    ALL = "all"
    DANGLING = "dangling"  # Only images with zero human tags


def short_id(resource_id: str) -> str:
    """Return the 12-character form of an image or container ID."""
    return resource_id.split(":", 1)[-1][:12]


@dataclass
class ImageResource:
    """An image resource as reported by the engine"""

    id: str
    tags: List[str] = field(default_factory=list)
    created: str = ""
    size: int = 0
    parent_id: str = ""

    @property
    def is_untagged(self) -> bool:
        return not self.tags

    @property
    def short_id(self) -> str:
        return short_id(self.id)

    @classmethod
    def from_inspect(cls, data: Dict[str, Any]) -> "ImageResource":
        tags = [tag for tag in (data.get("RepoTags") or []) if tag and tag != UNTAGGED_PLACEHOLDER]
        return cls(
            id=data.get("Id", ""),
            tags=tags,
            created=data.get("Created", ""),
            size=int(data.get("Size") or 0),
            parent_id=data.get("Parent") or "",
        )


@dataclass
class ContainerResource:
    """A container referencing an image as its ancestor"""

    id: str
    name: str = ""
    status: str = ""
    state: str = ""
    image: str = ""

    @property
    def is_running(self) -> bool:
        if self.state:
            return self.state.lower() == "running"
        return self.status.lower().startswith("up")

    @property
    def short_id(self) -> str:
        return short_id(self.id)

    @classmethod
    def from_ps_row(cls, row: Dict[str, Any]) -> "ContainerResource":
        return cls(
            id=row.get("ID", ""),
            name=row.get("Names", ""),
            status=row.get("Status", ""),
            state=row.get("State", ""),
            image=row.get("Image", ""),
        )


@dataclass
class Dependents:
    """Resources that keep an image from being deleted"""

    containers: List[ContainerResource] = field(default_factory=list)
    children: List[ImageResource] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.containers and not self.children


class ImageInventory:
    """Read-only view of the engine's images and their dependents."""

    def __init__(self, client):
        self.client = client

    def list_images(self, image_filter: ImageFilter = ImageFilter.ALL) -> List[ImageResource]:
        """List images matching the filter, in the engine's native order.

        Raises:
            EngineUnavailable: if the engine cannot be reached
        """
        dangling = image_filter == ImageFilter.DANGLING
        image_ids = self.client.list_image_ids(dangling=dangling)
        if not image_ids:
            return []

        details = {data.get("Id"): data for data in self.client.inspect_images(image_ids)}
        images = []
        for image_id in image_ids:
            data = details.get(image_id)
            if data is None:
                logger.debug(f"Image {short_id(image_id)} disappeared before inspection; skipping")
                continue
            image = ImageResource.from_inspect(data)
            if dangling and not image.is_untagged:
                continue
            images.append(image)

        logger.info(f"Inventory ({image_filter.value}): {len(images)} image(s)")
        return images

    def get_image(self, image_id: str) -> Optional[ImageResource]:
        """Return the image, or None if it no longer exists."""
        details = self.client.inspect_images([image_id])
        return ImageResource.from_inspect(details[0]) if details else None

    def dependents(self, image_id: str) -> Dependents:
        """Return the containers and child images that depend on the image.

        An image that has already vanished has no dependents.
        """
        containers = [
            ContainerResource.from_ps_row(row) for row in self.client.containers_by_ancestor(image_id)
        ]

        layer_ids = [layer_id for layer_id in self.client.list_image_ids(all_layers=True) if layer_id != image_id]
        children = [
            ImageResource.from_inspect(data)
            for data in self.client.inspect_images(layer_ids)
            if (data.get("Parent") or "") == image_id
        ]

        return Dependents(containers=containers, children=children)
