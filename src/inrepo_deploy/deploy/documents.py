"""Shape models for the structured documents the engine publishes and pulls.

The project manifest (``game/project.json``) and scene documents
(``.../scenes/*.json``) are checked before any remote copy is trusted:
before baselining against it, before pulling it into the workspace, and
before the asset uploader edits the manifest. Unknown keys are preserved.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)

from ..errors import ContentValidationFailure
from .canonical import is_structured_path

DEFAULT_MANIFEST_PATH = "game/project.json"
LAYER_ORDER = ("ground", "props", "collision", "triggers")

Number = StrictInt | StrictFloat


# ---------------------------------------------------------------------------
# Project manifest
# ---------------------------------------------------------------------------


class TileCategory(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: StrictStr
    path: StrictStr
    files: list[StrictStr]


class EntityType(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: StrictStr
    display_name: StrictStr | None = Field(default=None, alias="displayName")
    sprite: StrictStr | None = None
    properties: list[Any]


class ProjectSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    default_tile_size: Number = Field(alias="defaultTileSize")
    default_grid_width: Number = Field(alias="defaultGridWidth")
    default_grid_height: Number = Field(alias="defaultGridHeight")


class ProjectManifest(BaseModel):
    """The shared project manifest.

    Tile category names and entity type names must each be unique.
    """

    model_config = ConfigDict(extra="allow")

    name: StrictStr
    default_scene: StrictStr = Field(alias="defaultScene")
    tile_categories: list[TileCategory] = Field(alias="tileCategories")
    entity_types: list[EntityType] = Field(alias="entityTypes")
    settings: ProjectSettings

    @field_validator("tile_categories")
    @classmethod
    def _unique_categories(cls, value: list[TileCategory]) -> list[TileCategory]:
        _require_unique([c.name for c in value], "tile category")
        return value

    @field_validator("entity_types")
    @classmethod
    def _unique_entity_types(cls, value: list[EntityType]) -> list[EntityType]:
        _require_unique([e.name for e in value], "entity type")
        return value


# ---------------------------------------------------------------------------
# Scenes
# ---------------------------------------------------------------------------


class TilesetReference(BaseModel):
    model_config = ConfigDict(extra="allow")

    category: StrictStr
    first_gid: Number = Field(alias="firstGid")


class EntityInstance(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: StrictStr
    type: StrictStr
    x: Number
    y: Number
    properties: dict[str, Any]


class Scene(BaseModel):
    """A scene document: dimensions, tileset references, layers, entities."""

    model_config = ConfigDict(extra="allow")

    id: StrictStr
    name: StrictStr
    width: Number
    height: Number
    tile_size: Number = Field(alias="tileSize")
    tilesets: list[TilesetReference]
    layers: dict[str, list[list[Number]]]
    entities: list[EntityInstance]

    @model_validator(mode="after")
    def _check_layers_and_entities(self) -> Scene:
        if self.width <= 0 or self.height <= 0 or self.tile_size <= 0:
            raise ValueError("width, height and tileSize must be positive")
        for layer_name in LAYER_ORDER:
            rows = self.layers.get(layer_name)
            if rows is None:
                raise ValueError(f"layer '{layer_name}' is missing")
            if len(rows) != self.height or any(
                len(row) != self.width for row in rows
            ):
                raise ValueError(
                    f"layer '{layer_name}' does not match "
                    f"{self.width}x{self.height}"
                )
        _require_unique([e.id for e in self.entities], "entity id")
        return self


def _require_unique(names: list[str], kind: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ValueError(f"duplicate {kind} '{name}'")
        seen.add(name)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def is_scene_path(path: str) -> bool:
    return is_structured_path(path) and (
        path.startswith("scenes/") or "/scenes/" in path
    )


def parse_manifest(content: bytes, path: str = DEFAULT_MANIFEST_PATH) -> dict:
    """Parse and validate manifest bytes, returning the raw dict.

    Raises:
        ContentValidationFailure: If the content is not a valid manifest.
    """
    document = _load_json(content, path)
    _validate(ProjectManifest, document, path)
    return document


def validate_document(
    path: str,
    content: bytes,
    manifest_path: str = DEFAULT_MANIFEST_PATH,
) -> None:
    """Check structured content before it is trusted.

    The manifest and scene documents are checked against their shape
    models; any other ``.json`` path must merely parse. Non-structured
    paths are accepted as-is.

    Raises:
        ContentValidationFailure: If the content fails its checks.
    """
    if not is_structured_path(path):
        return
    document = _load_json(content, path)
    if path == manifest_path:
        _validate(ProjectManifest, document, path)
    elif is_scene_path(path):
        _validate(Scene, document, path)


def _load_json(content: bytes, path: str) -> Any:
    try:
        return json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ContentValidationFailure(f"{path} is not valid JSON: {e}") from e


def _validate(model: type[BaseModel], document: Any, path: str) -> None:
    if not isinstance(document, dict):
        raise ContentValidationFailure(f"{path} failed validation: not an object")
    try:
        model.model_validate(document)
    except ValidationError as e:
        raise ContentValidationFailure(
            f"{path} failed validation: {e.error_count()} error(s); "
            f"{e.errors()[0]['msg']}"
        ) from e


# ---------------------------------------------------------------------------
# Incremental manifest registration
# ---------------------------------------------------------------------------


def ensure_tile_category(manifest: dict, name: str, path: str) -> bool:
    """Create the category unless one with *name* already exists.

    Existing categories are never modified.

    Returns:
        True if the manifest changed.
    """
    if any(c["name"] == name for c in manifest["tileCategories"]):
        return False
    manifest["tileCategories"].append({"name": name, "path": path, "files": []})
    return True


def append_tile_file(manifest: dict, category_name: str, file_name: str) -> bool:
    """Register a file in a category unless already present.

    Raises:
        KeyError: If the category does not exist.
    """
    for category in manifest["tileCategories"]:
        if category["name"] == category_name:
            if file_name in category["files"]:
                return False
            category["files"].append(file_name)
            return True
    raise KeyError(f'Tile category "{category_name}" is missing')


def ensure_entity_type(manifest: dict, name: str, sprite: str) -> bool:
    """Add an entity type unless one with *name* already exists.

    Existing entries are never modified.
    """
    if any(e["name"] == name for e in manifest["entityTypes"]):
        return False
    manifest["entityTypes"].append(
        {"name": name, "sprite": sprite, "properties": []}
    )
    return True
