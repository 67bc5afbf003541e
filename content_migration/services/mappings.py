"""Default mapping from WordPress-shaped snapshots to the destination model."""

import copy
from typing import Any, Dict, Optional

from ..models.schema import MigrationMapping

PLACEHOLDER_PASSWORD_HASH = "$2b$12$placeholder.hash.will.need.reset"

_PUBLISHED = {"post_status": "publish"}

_ISO = {"transform": "iso_datetime"}

DEFAULT_MAPPING: Dict[str, Any] = {
    "name": "wordpress_to_site",
    "version": "1.0",
    "description": "WordPress accounts, posts, pages, listings and media onto the site model",
    "mappings": {
        "users": {
            "source": "users",
            "target": "users",
            "field_mappings": [
                {"source_field": "user_email", "target_field": "email", "transform": "lowercase"},
                {
                    "source_field": None,
                    "target_field": "password_hash",
                    "default": PLACEHOLDER_PASSWORD_HASH,
                    "notes": "Source hashes are not portable; accounts must reset their password",
                },
                {
                    "source_field": "meta",
                    "target_field": "role",
                    "transform": "role_from_capabilities",
                    "transform_config": {"admin_logins": ["admin"], "default": "client"},
                },
                {
                    "source_field": "meta.first_name",
                    "target_field": "profile.first_name",
                    "transform": "clean_text",
                    "default_rule": {
                        "source_field": "display_name",
                        "transform": "split_name",
                        "transform_config": {"part": "first"},
                    },
                    "default": "Unknown",
                },
                {
                    "source_field": "meta.last_name",
                    "target_field": "profile.last_name",
                    "transform": "clean_text",
                    "default_rule": {
                        "source_field": "display_name",
                        "transform": "split_name",
                        "transform_config": {"part": "last"},
                    },
                    "default": "User",
                },
                {"source_field": "display_name", "target_field": "profile.display_name", "transform": "clean_text"},
                {"source_field": "meta.description", "target_field": "profile.bio", "transform": "clean_text", "default": ""},
                {
                    "source_field": "user_status",
                    "target_field": "is_verified",
                    "transform": "to_bool",
                    "transform_config": {"true_values": ["0"]},
                },
                {"source_field": None, "target_field": "is_active", "default": True},
                {"source_field": "user_registered", "target_field": "created_at", **_ISO},
            ],
        },
        "blog_posts": {
            "source": "posts",
            "target": "blog_posts",
            "filters": {"post_type": "post", **_PUBLISHED},
            "field_mappings": [
                {"source_field": "post_title", "target_field": "title", "transform": "clean_text"},
                {
                    "source_field": "slug",
                    "target_field": "slug",
                    "transform": "slugify",
                    "default_rule": {"source_field": "post_title", "transform": "slugify"},
                },
                {"source_field": "post_content", "target_field": "content", "transform": "clean_content"},
                {
                    "source_field": "post_excerpt",
                    "target_field": "excerpt",
                    "transform": "clean_text",
                    "default_rule": {
                        "source_field": "post_content",
                        "transform": "excerpt",
                        "transform_config": {"length": 160},
                    },
                },
                {
                    "source_field": "post_status",
                    "target_field": "status",
                    "transform": "enum_map",
                    "transform_config": {"mapping": {"publish": "published"}, "default": "draft"},
                },
                {
                    "source_field": "meta._thumbnail_id",
                    "target_field": "featured_image",
                    "transform": "template",
                    "transform_config": {"template": "/wp-content/uploads/featured-{value}.jpg"},
                },
                {"source_field": "post_author", "target_field": "author_id", "transform": "to_int"},
                {
                    "source_field": "terms.category[0].slug",
                    "target_field": "category",
                    "transform": "enum_map",
                    "transform_config": {
                        "mapping": {
                            "market-updates": "market-updates",
                            "market-news": "market-updates",
                            "buying-tips": "buying-tips",
                            "buying": "buying-tips",
                            "selling-tips": "selling-tips",
                            "selling": "selling-tips",
                            "neighborhood": "neighborhood-guides",
                            "neighborhood-guides": "neighborhood-guides",
                            "investment": "investment",
                            "lifestyle": "lifestyle",
                        },
                        "default": "lifestyle",
                    },
                },
                {
                    "source_field": "terms.post_tag",
                    "target_field": "tags",
                    "transform": "pluck",
                    "transform_config": {"key": "name", "limit": 10},
                },
                {
                    "source_field": "meta._yoast_wpseo_title",
                    "target_field": "seo.meta_title",
                    "transform": "clean_text",
                    "default_rule": {"source_field": "post_title", "transform": "clean_text"},
                },
                {
                    "source_field": "meta._yoast_wpseo_metadesc",
                    "target_field": "seo.meta_description",
                    "transform": "clean_text",
                    "default_rule": {
                        "source_field": "post_content",
                        "transform": "excerpt",
                        "transform_config": {"length": 160},
                    },
                },
                {
                    "source_field": "meta._yoast_wpseo_focuskw",
                    "target_field": "seo.keywords",
                    "transform": "split_list",
                    "transform_config": {"separator": ","},
                },
                {
                    "source_field": "meta._yoast_wpseo_estimated-reading-time-minutes",
                    "target_field": "seo.reading_time",
                    "transform": "to_int",
                    "default_rule": {"source_field": "post_content", "transform": "reading_time"},
                },
                {"source_field": "post_date", "target_field": "published_at", **_ISO},
                {"source_field": "post_date", "target_field": "created_at", **_ISO},
                {"source_field": "post_modified", "target_field": "updated_at", **_ISO},
                {"source_field": None, "target_field": "view_count", "default": 0},
            ],
        },
        "pages": {
            "source": "posts",
            "target": "pages",
            "filters": {"post_type": "page", **_PUBLISHED},
            "field_mappings": [
                {"source_field": "post_title", "target_field": "title", "transform": "clean_text"},
                {
                    "source_field": "slug",
                    "target_field": "slug",
                    "transform": "slugify",
                    "default_rule": {"source_field": "post_title", "transform": "slugify"},
                },
                {"source_field": "post_content", "target_field": "content", "transform": "clean_content"},
                {"source_field": "slug", "target_field": "template", "transform": "page_template"},
                {
                    "source_field": "post_status",
                    "target_field": "status",
                    "transform": "enum_map",
                    "transform_config": {"mapping": {"publish": "published"}, "default": "draft"},
                },
                {"source_field": None, "target_field": "type", "default": "page"},
                {"source_field": "post_author", "target_field": "author_id", "transform": "to_int"},
                {
                    "source_field": "meta._yoast_wpseo_title",
                    "target_field": "seo.meta_title",
                    "transform": "clean_text",
                    "default_rule": {"source_field": "post_title", "transform": "clean_text"},
                },
                {
                    "source_field": "meta._yoast_wpseo_metadesc",
                    "target_field": "seo.meta_description",
                    "transform": "clean_text",
                    "default_rule": {
                        "source_field": "post_content",
                        "transform": "excerpt",
                        "transform_config": {"length": 160},
                    },
                },
                {"source_field": "post_date", "target_field": "published_at", **_ISO},
                {"source_field": "post_date", "target_field": "created_at", **_ISO},
                {"source_field": "post_modified", "target_field": "updated_at", **_ISO},
            ],
        },
        "media": {
            "source": "media",
            "target": "media",
            "field_mappings": [
                {"source_field": "post_title", "target_field": "title", "transform": "clean_text"},
                {
                    "source_field": "slug",
                    "target_field": "slug",
                    "transform": "slugify",
                    "default_rule": {"source_field": "post_title", "transform": "slugify"},
                },
                {"source_field": "url", "target_field": "url"},
                {"source_field": "post_mime_type", "target_field": "mime_type"},
                {"source_field": "file_path", "target_field": "file_path"},
                {
                    "source_field": "post_date",
                    "target_field": "storage_path",
                    "transform": "media_path",
                    "transform_config": {"folder": "blog"},
                },
                {"source_field": "post_author", "target_field": "uploaded_by", "transform": "to_int"},
                {"source_field": "post_date", "target_field": "uploaded_at", **_ISO},
            ],
        },
        "properties": {
            "source": "properties",
            "target": "properties",
            "filters": {"post_type": "property", **_PUBLISHED},
            "field_mappings": [
                {
                    "source_field": "meta._property_id",
                    "target_field": "mls_id",
                    "transform": "clean_text",
                    "default_rule": {
                        "source_field": "ID",
                        "transform": "prefix_add",
                        "transform_config": {"prefix": "WP"},
                    },
                },
                {"source_field": "post_title", "target_field": "title", "transform": "clean_text"},
                {"source_field": "post_content", "target_field": "description", "transform": "clean_content"},
                {"source_field": "meta", "target_field": "summary", "transform": "listing_summary"},
                {"source_field": "meta._property_price", "target_field": "price", "transform": "to_int", "default": 0},
                {
                    "source_field": "meta._property_address",
                    "target_field": "address.street",
                    "transform": "clean_text",
                    "default": "",
                },
                {"source_field": "meta._property_city", "target_field": "address.city", "transform": "clean_text", "default": ""},
                {"source_field": "meta._property_state", "target_field": "address.state", "transform": "clean_text", "default": "CA"},
                {"source_field": "meta._property_zip", "target_field": "address.zip_code", "transform": "clean_text", "default": ""},
                {
                    "source_field": "meta._property_bedrooms",
                    "target_field": "property_details.bedrooms",
                    "transform": "to_int",
                    "default": 0,
                },
                {
                    "source_field": "meta._property_bathrooms",
                    "target_field": "property_details.bathrooms",
                    "transform": "to_float",
                    "default": 0,
                },
                {
                    "source_field": "meta._property_size",
                    "target_field": "property_details.square_feet",
                    "transform": "to_int",
                    "default": 0,
                },
                {"source_field": "meta._property_lot_size", "target_field": "property_details.lot_size", "transform": "to_float"},
                {"source_field": "meta._property_year_built", "target_field": "property_details.year_built", "transform": "to_int"},
                {
                    "source_field": "terms.property_type[0].slug",
                    "target_field": "property_details.property_type",
                    "transform": "enum_map",
                    "transform_config": {
                        "mapping": {
                            "house": "single_family",
                            "single-family": "single_family",
                            "condo": "condo",
                            "townhouse": "townhouse",
                            "multi-family": "multi_family",
                            "land": "land",
                        },
                        "default": "single_family",
                    },
                },
                {
                    "source_field": "terms.property_status[0].slug",
                    "target_field": "status",
                    "transform": "enum_map",
                    "transform_config": {
                        "mapping": {
                            "for-sale": "active",
                            "active": "active",
                            "pending": "pending",
                            "sold": "sold",
                        },
                        "default": "active",
                    },
                },
                {
                    "source_field": "meta._property_gallery",
                    "target_field": "images",
                    "transform": "gallery",
                    "transform_config": {
                        "url_template": "/wp-content/uploads/property-{id}.jpg",
                        "placeholder": "/images/property-placeholder.jpg",
                    },
                },
                {
                    "source_field": "meta._property_features",
                    "target_field": "features",
                    "transform": "split_list",
                    "transform_config": {"separator": ","},
                },
                {
                    "source_field": "slug",
                    "target_field": "seo.slug",
                    "transform": "slugify",
                    "default_rule": {"source_field": "post_title", "transform": "slugify"},
                },
                {"source_field": "post_author", "target_field": "agent_id", "transform": "to_int"},
                {
                    "source_field": "meta._featured",
                    "target_field": "is_featured",
                    "transform": "to_bool",
                    "transform_config": {"true_values": ["yes"]},
                },
                {"source_field": "meta._virtual_tour", "target_field": "virtual_tour_url", "transform": "clean_text"},
                {"source_field": "post_date", "target_field": "listed_at", **_ISO},
                {"source_field": "post_date", "target_field": "created_at", **_ISO},
                {"source_field": "post_modified", "target_field": "updated_at", **_ISO},
            ],
        },
    },
}


def default_mapping() -> MigrationMapping:
    """Fresh copy of the built-in mapping."""
    return MigrationMapping.from_dict(copy.deepcopy(DEFAULT_MAPPING))


def load_mapping(mapping_file: Optional[str] = None) -> MigrationMapping:
    """Mapping from ``mapping_file`` when given, otherwise the built-in one."""
    if mapping_file:
        return MigrationMapping.from_json_file(mapping_file)
    return default_mapping()
