"""Declarative field mappings from source snapshots to destination entities."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
import json


class TransformType(str, Enum):
    """Supported transformation types."""
    DIRECT = "direct"
    LOWERCASE = "lowercase"
    TRUNCATE = "truncate"
    SPLIT_NAME = "split_name"
    ENUM_MAP = "enum_map"
    TO_INT = "to_int"
    TO_FLOAT = "to_float"
    TO_BOOL = "to_bool"
    ISO_DATETIME = "iso_datetime"
    PREFIX_ADD = "prefix_add"
    TEMPLATE = "template"
    CLEAN_TEXT = "clean_text"
    CLEAN_CONTENT = "clean_content"
    SLUGIFY = "slugify"
    EXCERPT = "excerpt"
    READING_TIME = "reading_time"
    SPLIT_LIST = "split_list"
    PLUCK = "pluck"
    GALLERY = "gallery"
    ROLE_FROM_CAPABILITIES = "role_from_capabilities"
    PAGE_TEMPLATE = "page_template"
    MEDIA_PATH = "media_path"
    LISTING_SUMMARY = "listing_summary"
    CUSTOM = "custom"


def _coerce_transform(value: Any) -> Any:
    if isinstance(value, TransformType):
        return value
    try:
        return TransformType(value)
    except ValueError:
        return value


@dataclass
class DefaultRule:
    """
    Rule used to compute a destination value when the mapped source value is absent.

    The rule reads ``source_field`` from the snapshot record and runs it
    through ``transform``, e.g. an excerpt derived from the body content.
    """
    source_field: Optional[str]
    transform: TransformType = TransformType.DIRECT
    transform_config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DefaultRule":
        """Create from dictionary representation."""
        return cls(
            source_field=data.get("source_field"),
            transform=_coerce_transform(data.get("transform", "direct")),
            transform_config=data.get("transform_config", {}),
        )


@dataclass
class FieldMapping:
    """Mapping between a source field and target field."""
    source_field: Optional[str]  # None if generated/default
    target_field: str
    transform: TransformType = TransformType.DIRECT
    transform_config: Dict[str, Any] = field(default_factory=dict)
    default_rule: Optional[DefaultRule] = None
    default_value: Optional[Any] = None
    notes: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldMapping":
        """Create from dictionary representation."""
        default_rule = None
        if data.get("default_rule"):
            default_rule = DefaultRule.from_dict(data["default_rule"])

        return cls(
            source_field=data.get("source_field"),
            target_field=data.get("target_field", ""),
            transform=_coerce_transform(data.get("transform", "direct")),
            transform_config=data.get("transform_config", {}),
            default_rule=default_rule,
            default_value=data.get("default"),
            notes=data.get("notes", ""),
        )


@dataclass
class EntityMapping:
    """
    Mapping from one snapshot entity onto one destination entity.

    ``filters`` restricts which snapshot records feed this mapping
    (e.g. only ``post_type == "post"``); a list value means membership.
    """
    name: str
    source_entity: str
    target_entity: str
    source_id_field: str = "ID"
    filters: Dict[str, Any] = field(default_factory=dict)
    field_mappings: List[FieldMapping] = field(default_factory=list)
    description: str = ""

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "EntityMapping":
        """Create from dictionary representation."""
        return cls(
            name=name,
            source_entity=data.get("source", ""),
            target_entity=data.get("target", name),
            source_id_field=data.get("source_id_field", "ID"),
            filters=data.get("filters", {}),
            field_mappings=[FieldMapping.from_dict(fm) for fm in data.get("field_mappings", [])],
            description=data.get("description", ""),
        )

    def accepts(self, data: Dict[str, Any]) -> bool:
        """Check whether a snapshot record passes this mapping's filters."""
        for key, expected in self.filters.items():
            value = data.get(key)
            if isinstance(expected, (list, tuple, set)):
                if value not in expected:
                    return False
            elif value != expected:
                return False
        return True


@dataclass
class MigrationMapping:
    """Complete mapping configuration for a migration."""
    name: str
    version: str = "1.0"
    description: str = ""
    entity_mappings: Dict[str, EntityMapping] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationMapping":
        """Create from dictionary representation."""
        entity_mappings = {}
        for name, mapping_data in data.get("mappings", {}).items():
            entity_mappings[name] = EntityMapping.from_dict(name, mapping_data)

        return cls(
            name=data.get("name", ""),
            version=data.get("version", "1.0"),
            description=data.get("description", ""),
            entity_mappings=entity_mappings,
        )

    @classmethod
    def from_json_file(cls, file_path: str) -> "MigrationMapping":
        """Load mapping from JSON file."""
        with open(file_path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)
