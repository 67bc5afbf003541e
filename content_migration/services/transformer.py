"""Transformation engine and stage converting snapshots to the destination model."""

import copy
import math
import re
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from datetime import datetime
from dateutil import parser as date_parser

from . import snapshots
from ..errors import TransformationError
from ..models.schema import (
    TransformType,
    EntityMapping,
    FieldMapping,
    MigrationMapping,
)
from ..models.record import (
    SourceRecord,
    TransformedRecord,
    ValidationError,
)

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 160
WORDS_PER_MINUTE = 200

_GALLERY_SHORTCODE_RE = re.compile(r"\[gallery[^\]]*\]")
_BUILDER_SHORTCODE_RE = re.compile(r"\[/?(?:et_pb|vc_)[^\]]*\]")
_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_EMPTY_PARAGRAPH_RE = re.compile(r"<p>(?:&nbsp;)?</p>")
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_ZERO_DATE = "0000-00-00"


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def strip_tags(content: str) -> str:
    return _WHITESPACE_RE.sub(" ", _TAG_RE.sub("", content)).strip()


def generate_excerpt(content: Optional[str], length: int = EXCERPT_LENGTH) -> str:
    if not content:
        return ""
    text = strip_tags(str(content))
    return text[:length] + "..." if len(text) > length else text


def reading_time(content: Optional[str]) -> int:
    """Estimated minutes to read, never below one."""
    if not content:
        return 1
    words = len(strip_tags(str(content)).split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def slugify(text: str) -> str:
    slug = str(text).lower()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


class TransformEngine:
    """
    Engine applying declarative entity mappings to snapshot records.

    Each field mapping reads a source path, runs a named transform, and
    falls back to its default rule and then its default value when the
    result is missing.
    """

    def __init__(self):
        """Initialize the transform engine."""
        self._custom_transforms: Dict[str, Callable] = {}
        self._builtin_transforms = self._register_builtin_transforms()

    def _register_builtin_transforms(self) -> Dict[str, Callable]:
        """Register all built-in transformation functions."""
        return {
            TransformType.DIRECT.value: self._transform_direct,
            TransformType.LOWERCASE.value: self._transform_lowercase,
            TransformType.TRUNCATE.value: self._transform_truncate,
            TransformType.SPLIT_NAME.value: self._transform_split_name,
            TransformType.ENUM_MAP.value: self._transform_enum_map,
            TransformType.TO_INT.value: self._transform_to_int,
            TransformType.TO_FLOAT.value: self._transform_to_float,
            TransformType.TO_BOOL.value: self._transform_to_bool,
            TransformType.ISO_DATETIME.value: self._transform_iso_datetime,
            TransformType.PREFIX_ADD.value: self._transform_prefix_add,
            TransformType.TEMPLATE.value: self._transform_template,
            TransformType.CLEAN_TEXT.value: self._transform_clean_text,
            TransformType.CLEAN_CONTENT.value: self._transform_clean_content,
            TransformType.SLUGIFY.value: self._transform_slugify,
            TransformType.EXCERPT.value: self._transform_excerpt,
            TransformType.READING_TIME.value: self._transform_reading_time,
            TransformType.SPLIT_LIST.value: self._transform_split_list,
            TransformType.PLUCK.value: self._transform_pluck,
            TransformType.GALLERY.value: self._transform_gallery,
            TransformType.ROLE_FROM_CAPABILITIES.value: self._transform_role_from_capabilities,
            TransformType.PAGE_TEMPLATE.value: self._transform_page_template,
            TransformType.MEDIA_PATH.value: self._transform_media_path,
            TransformType.LISTING_SUMMARY.value: self._transform_listing_summary,
        }

    def register_transform(self, name: str, func: Callable) -> None:
        """Register a custom transformation function."""
        self._custom_transforms[name] = func

    def transform_record(
        self,
        source_record: SourceRecord,
        mapping: EntityMapping,
        context: Optional[Dict[str, Any]] = None
    ) -> TransformedRecord:
        """
        Transform one snapshot record to the mapping's destination entity.

        Args:
            source_record: Snapshot record
            mapping: Entity mapping to use
            context: Additional context passed to transforms

        Returns:
            Transformed record tagged with the source identifier
        """
        context = context or {}
        data = source_record.data
        target_data: Dict[str, Any] = {}
        errors: List[ValidationError] = []
        warnings: List[str] = []

        for field_mapping in mapping.field_mappings:
            try:
                value = self._apply(
                    field_mapping.transform,
                    field_mapping.transform_config,
                    self._get_nested_value(data, field_mapping.source_field),
                    data,
                    context,
                    warnings,
                )

                rule = field_mapping.default_rule
                if _is_missing(value) and rule is not None:
                    value = self._apply(
                        rule.transform,
                        rule.transform_config,
                        self._get_nested_value(data, rule.source_field),
                        data,
                        context,
                        warnings,
                    )

                if _is_missing(value) and field_mapping.default_value is not None:
                    value = copy.deepcopy(field_mapping.default_value)

                self._set_nested_value(target_data, field_mapping.target_field, value)

            except Exception as e:
                errors.append(ValidationError(
                    field=field_mapping.target_field,
                    message=f"Transform error: {str(e)}",
                    error_type="transform",
                    value=field_mapping.source_field,
                ))
                logger.error(
                    f"Transform error for {mapping.target_entity}.{field_mapping.target_field} "
                    f"(source {source_record.id}): {e}"
                )

        return TransformedRecord(
            source_id=data.get(mapping.source_id_field),
            target_entity=mapping.target_entity,
            data=target_data,
            validation_errors=errors,
            warnings=warnings,
        )

    def _apply(
        self,
        transform: Any,
        config: Dict[str, Any],
        value: Any,
        data: Dict[str, Any],
        context: Dict[str, Any],
        warnings: List[str],
    ) -> Any:
        transform_name = transform.value if isinstance(transform, TransformType) else transform
        transform_func = (
            self._custom_transforms.get(transform_name) or
            self._builtin_transforms.get(transform_name)
        )

        if not transform_func and transform_name == TransformType.CUSTOM.value:
            transform_func = self._custom_transforms.get(config.get("function"))

        if not transform_func:
            warnings.append(f"Unknown transform: {transform_name}, using direct copy")
            return value

        return transform_func(value, config, data, context)

    def _get_nested_value(self, data: Dict[str, Any], path: Optional[str]) -> Any:
        """Get a nested value using dot notation (``terms.category[0].slug``)."""
        if not path:
            return None

        value: Any = data
        for part in path.split("."):
            if value is None:
                return None

            array_match = re.match(r"^(\w+)\[(\d+)\]$", part)
            if array_match:
                key, index = array_match.groups()
                if isinstance(value, dict):
                    value = value.get(key)
                if isinstance(value, list) and int(index) < len(value):
                    value = value[int(index)]
                else:
                    return None
            elif isinstance(value, dict):
                value = value.get(part)
            elif isinstance(value, list) and part.isdigit():
                idx = int(part)
                value = value[idx] if idx < len(value) else None
            else:
                return None

        return value

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: Any) -> None:
        """Set a nested value using dot notation."""
        parts = path.split(".")
        current = data

        for part in parts[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]

        current[parts[-1]] = value

    # Built-in transform functions

    def _transform_direct(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Direct copy without transformation."""
        return value

    def _transform_lowercase(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Convert to lowercase."""
        if value is None:
            return None
        return str(value).strip().lower()

    def _transform_truncate(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Truncate to max length."""
        if value is None:
            return None
        max_length = config.get("max_length", 255)
        return str(value)[:max_length]

    def _transform_split_name(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Split a name into first/last parts."""
        if not value:
            return None

        part = config.get("part", "first")
        parts = str(value).strip().split(" ", 1)

        if part == "first":
            return parts[0] if parts else None
        elif part == "last":
            return parts[1] if len(parts) > 1 else None

        return value

    def _transform_enum_map(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Map value using a lookup table."""
        if value is None:
            return config.get("default")

        mapping = config.get("mapping", {})
        key = str(value).lower() if config.get("case_insensitive") else str(value)
        return mapping.get(key, config.get("default"))

    def _transform_to_int(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Parse a leading integer, ``None`` when there is none."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return int(value)
        match = re.match(r"^\s*(-?\d+)", str(value).replace(",", ""))
        return int(match.group(1)) if match else None

    def _transform_to_float(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        if value is None:
            return None
        try:
            return float(str(value).replace(",", ""))
        except (TypeError, ValueError):
            return None

    def _transform_to_bool(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """True when the value is one of ``true_values``."""
        true_values = [str(v).lower() for v in config.get("true_values", ["true", "1", "yes"])]
        if value is None:
            return False
        return str(value).strip().lower() in true_values

    def _transform_iso_datetime(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Normalize a source timestamp to ISO 8601."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.isoformat()

        text = str(value).strip()
        if not text or text.startswith(_ZERO_DATE):
            return None
        return date_parser.parse(text).isoformat()

    def _transform_prefix_add(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Add a prefix to the value."""
        if value is None:
            return None
        prefix = config.get("prefix", "")
        return f"{prefix}{value}"

    def _transform_template(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Format ``template`` with ``{value}``."""
        if _is_missing(value):
            return None
        return config.get("template", "{value}").format(value=str(value).strip())

    def _transform_clean_text(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        if value is None:
            return None
        return str(value).replace("\r\n", "\n").strip()

    def _transform_clean_content(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Drop page-builder shortcodes and scripts from HTML content."""
        if not value:
            return ""
        content = str(value)
        content = _GALLERY_SHORTCODE_RE.sub('<div class="gallery">Gallery content</div>', content)
        content = _BUILDER_SHORTCODE_RE.sub("", content)
        content = _SCRIPT_RE.sub("", content)
        content = _EMPTY_PARAGRAPH_RE.sub("", content)
        return content.replace("\r\n", "\n").strip()

    def _transform_slugify(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        if _is_missing(value):
            return None
        return slugify(value) or None

    def _transform_excerpt(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        return generate_excerpt(value, config.get("length", EXCERPT_LENGTH))

    def _transform_reading_time(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        return reading_time(value)

    def _transform_split_list(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Split a delimited string into trimmed, non-empty items."""
        if _is_missing(value):
            return []
        separator = config.get("separator", ",")
        return [item.strip() for item in str(value).split(separator) if item.strip()]

    def _transform_pluck(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Collect one key from a list of objects."""
        if not isinstance(value, list):
            return []
        key = config.get("key", "name")
        items = [item.get(key) for item in value if isinstance(item, dict) and item.get(key)]
        limit = config.get("limit")
        return items[:limit] if limit else items

    def _transform_gallery(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Build image entries from a comma-separated list of attachment ids."""
        url_template = config.get("url_template", "/wp-content/uploads/property-{id}.jpg")
        images = []
        for index, image_id in enumerate(self._transform_split_list(value, {}, data, ctx)):
            images.append({
                "url": url_template.format(id=image_id),
                "alt": f"Property Image {index + 1}",
                "is_primary": index == 0,
            })

        if not images and config.get("placeholder"):
            images.append({
                "url": config["placeholder"],
                "alt": "Property Image",
                "is_primary": True,
            })
        return images

    def _transform_role_from_capabilities(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Derive the destination role from the capabilities metadata."""
        capabilities = ""
        if isinstance(value, dict):
            for key, caps in value.items():
                if key.endswith("capabilities") and caps:
                    capabilities = str(caps)
                    break

        if "administrator" in capabilities:
            return "admin"
        if data.get("user_login") in config.get("admin_logins", ["admin"]):
            return "admin"
        if "editor" in capabilities or "author" in capabilities:
            return "agent"
        return config.get("default", "client")

    def _transform_page_template(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Guess the page template from its slug."""
        slug = str(value or "")
        if "about" in slug:
            return "about"
        if "contact" in slug:
            return "contact"
        if "service" in slug:
            return "services"
        if "home" in slug or slug == "index":
            return "home"
        return "standard"

    def _transform_media_path(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Organized storage path ``<folder>/YYYY/MM/<name><ext>`` for a media asset."""
        uploaded = self._transform_iso_datetime(value, {}, data, ctx)
        if not uploaded:
            return None
        date = date_parser.parse(uploaded)

        original = data.get("file_path") or str(data.get("url") or "").split("/")[-1]
        extension = Path(original).suffix

        filename = str(data.get("slug") or data.get("post_title") or "").lower()
        filename = re.sub(r"[^a-z0-9-]", "-", filename)
        filename = re.sub(r"-+", "-", filename).strip("-")
        if not filename:
            filename = f"media-{data.get('ID')}"

        folder = config.get("folder", "blog")
        return f"{folder}/{date.year}/{date.month:02d}/{filename}{extension}"

    def _transform_listing_summary(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Short listing description from its metadata and body."""
        meta = value if isinstance(value, dict) else {}
        bedrooms = meta.get("_property_bedrooms") or 0
        bathrooms = meta.get("_property_bathrooms") or 0
        city = meta.get("_property_city") or ""
        price = self._transform_to_int(meta.get("_property_price"), {}, data, ctx) or 0
        excerpt = generate_excerpt(data.get("post_content"), 100)
        return f"{bedrooms} bedroom, {bathrooms} bathroom property in {city} priced at ${price:,}. {excerpt}".strip()


class Transformer:
    """
    Transformation stage: snapshot directory in, transformed directory out.

    Uses the latest snapshot per entity type and stamps every output file
    with the snapshot date. No destination access happens here.
    """

    def __init__(self, mapping: MigrationMapping, engine: Optional[TransformEngine] = None):
        self.mapping = mapping
        self.engine = engine or TransformEngine()

    def run(self, input_dir: str, output_dir: str) -> Dict[str, Any]:
        """
        Transform every mapped entity and write one file per destination entity.

        Returns:
            The transformation summary that is also written to disk
        """
        logger.info("Starting data transformation...")
        found = snapshots.discover_snapshots(input_dir)
        if not found:
            raise TransformationError(f"No extraction snapshot files found in {input_dir}")

        source_date = max(s.date for s in found.values())
        logger.info(f"Using extraction from: {source_date}")

        loaded: Dict[str, List[Dict[str, Any]]] = {}
        for entity, snapshot in found.items():
            try:
                rows = snapshots.read_json(snapshot.path)
            except (OSError, ValueError) as e:
                raise TransformationError(f"Could not read snapshot {snapshot.path}") from e
            if not isinstance(rows, list):
                raise TransformationError(f"Snapshot {snapshot.path} is not a JSON array")
            loaded[entity] = rows
            logger.info(f"Loaded {len(rows)} {entity} records")

        outputs: Dict[str, List[Dict[str, Any]]] = {}
        rejected: Dict[str, int] = {}
        for entity_mapping in self.mapping.entity_mappings.values():
            target = entity_mapping.target_entity
            outputs.setdefault(target, [])
            rejected.setdefault(target, 0)

            rows = loaded.get(entity_mapping.source_entity)
            if rows is None:
                logger.warning(f"No {entity_mapping.source_entity} snapshot for mapping {entity_mapping.name}")
                continue

            for row in rows:
                if not entity_mapping.accepts(row):
                    continue
                record = SourceRecord(
                    id=str(row.get(entity_mapping.source_id_field)),
                    source_entity=entity_mapping.source_entity,
                    data=row,
                )
                transformed = self.engine.transform_record(record, entity_mapping)
                if transformed.is_valid:
                    outputs[target].append(transformed.to_row())
                else:
                    rejected[target] += 1

            logger.info(f"Transformed {len(outputs[target])} {target} records")

        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)
        files = []
        for target, rows in outputs.items():
            path = output_path / snapshots.transformed_filename(target, source_date)
            snapshots.write_json(path, rows)
            files.append(path.name)
            logger.info(f"Saved {len(rows)} transformed {target} to {path}")

        summary = {
            "transformation_date": datetime.utcnow().isoformat(),
            "source_date": source_date,
            "results": {target: len(rows) for target, rows in outputs.items()},
            "rejected": rejected,
            "files": files,
        }
        summary_path = output_path / snapshots.report_filename(snapshots.TRANSFORMATION_SUMMARY, source_date)
        snapshots.write_json(summary_path, summary)
        logger.info(f"Saved transformation summary to {summary_path}")
        return summary
