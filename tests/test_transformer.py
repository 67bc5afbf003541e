"""Tests for the transform engine, the default mapping and the transformation stage."""

import pytest

from content_migration.errors import TransformationError
from content_migration.models.record import SOURCE_ID_FIELD, SourceRecord
from content_migration.models.schema import EntityMapping, FieldMapping, TransformType
from content_migration.services import Transformer, TransformEngine, default_mapping
from content_migration.services.transformer import generate_excerpt, reading_time, slugify
from fixture_data import read_json, write_json

DATE = "2024-06-01"


def _post(**overrides):
    post = {
        "ID": 1,
        "post_author": 42,
        "post_date": "2024-01-01 09:00:00",
        "post_modified": "2024-01-02 09:00:00",
        "post_content": "<p>Hello world</p>",
        "post_title": "Hello World!",
        "post_excerpt": "",
        "post_status": "publish",
        "slug": "hello-world",
        "post_type": "post",
        "meta": {},
        "terms": {},
    }
    post.update(overrides)
    return post


def _user(**overrides):
    user = {
        "ID": 42,
        "user_login": "alice",
        "user_email": "Alice@Example.com",
        "user_registered": "2023-01-02 10:00:00",
        "user_status": "0",
        "display_name": "Alice Author",
        "meta": {},
    }
    user.update(overrides)
    return user


def _transform(entity_name, data):
    mapping = default_mapping().entity_mappings[entity_name]
    record = SourceRecord(id=str(data["ID"]), source_entity=mapping.source_entity, data=data)
    return TransformEngine().transform_record(record, mapping)


def _run(tmp_path, files):
    input_dir = tmp_path / "data"
    for name, rows in files.items():
        write_json(input_dir / name, rows)
    output_dir = input_dir / "transformed"
    summary = Transformer(default_mapping()).run(str(input_dir), str(output_dir))
    return summary, output_dir


def test_nested_value_supports_list_index() -> None:
    """Dotted paths can index into lists."""
    engine = TransformEngine()
    data = {"terms": {"category": [{"slug": "market-news"}]}}

    assert engine._get_nested_value(data, "terms.category[0].slug") == "market-news"
    assert engine._get_nested_value(data, "terms.category[3].slug") is None
    assert engine._get_nested_value(data, "terms.post_tag[0].slug") is None


def test_default_rule_applies_when_source_missing() -> None:
    """A missing value is computed by the default rule, then by the default value."""
    mapping = EntityMapping.from_dict("items", {
        "source": "items",
        "target": "items",
        "field_mappings": [
            {
                "source_field": "summary",
                "target_field": "summary",
                "default_rule": {"source_field": "body", "transform": "excerpt", "transform_config": {"length": 5}},
            },
            {"source_field": "color", "target_field": "color", "default": "blue"},
        ],
    })
    record = SourceRecord(id="1", source_entity="items", data={"ID": 1, "body": "abcdefghij"})

    result = TransformEngine().transform_record(record, mapping)

    assert result.data == {"summary": "abcde...", "color": "blue"}
    assert result.source_id == 1


def test_transform_error_is_recorded_not_raised() -> None:
    """A failing field marks the record invalid instead of aborting."""
    engine = TransformEngine()
    engine.register_transform("explode", lambda value, config, data, ctx: 1 / 0)
    mapping = EntityMapping(
        name="items",
        source_entity="items",
        target_entity="items",
        field_mappings=[FieldMapping(source_field="x", target_field="x", transform="explode")],
    )
    record = SourceRecord(id="1", source_entity="items", data={"ID": 1, "x": 1})

    result = engine.transform_record(record, mapping)

    assert not result.is_valid
    assert result.validation_errors[0].field == "x"


def test_helpers() -> None:
    """Excerpt, reading time and slug helpers follow the documented rules."""
    long_text = "<p>" + "word " * 100 + "</p>"
    assert generate_excerpt(long_text).endswith("...")
    assert len(generate_excerpt(long_text)) == 163
    assert generate_excerpt("<b>short</b>") == "short"
    assert reading_time("") == 1
    assert reading_time("word " * 450) == 3
    assert slugify("Hello, World!  Again") == "hello-world-again"


def test_post_defaults_are_derived_from_content() -> None:
    """Missing excerpt, reading time, SEO title and slug come from the content."""
    body = "<p>" + "lorem " * 250 + "</p>"
    result = _transform("blog_posts", _post(post_content=body, slug="", post_title="Market Update: June"))
    data = result.data

    assert data["slug"] == "market-update-june"
    assert data["excerpt"].endswith("...")
    assert data["seo"]["reading_time"] == 2
    assert data["seo"]["meta_title"] == "Market Update: June"
    assert data["status"] == "published"
    assert data["author_id"] == 42
    assert data["category"] == "lifestyle"
    assert data["published_at"] == "2024-01-01T09:00:00"


def test_post_terms_and_meta_are_mapped() -> None:
    """Categories, tags, SEO metadata and featured images come from merged metadata."""
    post = _post(
        terms={
            "category": [{"name": "Market News", "slug": "market-news"}],
            "post_tag": [{"name": "Staging", "slug": "staging"}],
        },
        meta={
            "_yoast_wpseo_title": "SEO Title",
            "_yoast_wpseo_estimated-reading-time-minutes": "7",
            "_thumbnail_id": "55",
        },
    )
    data = _transform("blog_posts", post).data

    assert data["category"] == "market-updates"
    assert data["tags"] == ["Staging"]
    assert data["seo"]["meta_title"] == "SEO Title"
    assert data["seo"]["reading_time"] == 7
    assert data["featured_image"] == "/wp-content/uploads/featured-55.jpg"


def test_content_cleanup() -> None:
    """Page-builder shortcodes, scripts and empty paragraphs are removed."""
    content = '[et_pb_section]<p>Keep</p><p></p><script>alert(1)</script>[/et_pb_section][gallery ids="1,2"]'
    data = _transform("blog_posts", _post(post_content=content)).data

    assert data["content"] == '<p>Keep</p><div class="gallery">Gallery content</div>'


def test_account_role_and_name() -> None:
    """Roles derive from capabilities; names fall back to the display name."""
    admin = _transform("users", _user(meta={"wp_capabilities": 'a:1:{s:13:"administrator";b:1;}'})).data
    author = _transform("users", _user(meta={"custom_capabilities": 'a:1:{s:6:"author";b:1;}'})).data
    reader = _transform("users", _user(user_login="bob", display_name="Bob")).data
    root = _transform("users", _user(user_login="admin")).data

    assert admin["role"] == "admin"
    assert author["role"] == "agent"
    assert reader["role"] == "client"
    assert root["role"] == "admin"
    assert admin["email"] == "alice@example.com"
    assert admin["profile"]["first_name"] == "Alice"
    assert admin["profile"]["last_name"] == "Author"
    assert reader["profile"]["last_name"] == "User"
    assert admin["password_hash"].startswith("$2b$12$placeholder")
    assert admin["is_verified"] is True
    assert admin["is_active"] is True


def test_page_template_detection() -> None:
    """Page templates are guessed from the slug."""
    mapping_name = "pages"
    assert _transform(mapping_name, _post(post_type="page", slug="about-us")).data["template"] == "about"
    assert _transform(mapping_name, _post(post_type="page", slug="our-services")).data["template"] == "services"
    assert _transform(mapping_name, _post(post_type="page", slug="privacy")).data["template"] == "standard"


def test_media_storage_path() -> None:
    """Media assets get an organized storage path and an uploader reference."""
    media = {
        "ID": 5,
        "post_author": 43,
        "post_title": "Hero Image",
        "slug": "hero-image",
        "post_date": "2024-01-15 09:00:00",
        "post_mime_type": "image/jpeg",
        "url": "http://old.example.com/wp-content/uploads/2024/01/hero.jpg",
        "file_path": "2024/01/hero.jpg",
    }
    data = _transform("media", media).data

    assert data["storage_path"] == "blog/2024/01/hero-image.jpg"
    assert data["uploaded_by"] == 43


def test_listing_mapping_defaults() -> None:
    """Listings without a listing id or gallery get documented defaults."""
    listing = _post(
        ID=11,
        post_type="property",
        post_title="Ocean View",
        slug="ocean-view",
        meta={"_property_price": "750,000", "_property_bedrooms": "3", "_featured": "yes"},
    )
    data = _transform("properties", listing).data

    assert data["mls_id"] == "WP11"
    assert data["price"] == 750000
    assert data["property_details"]["bedrooms"] == 3
    assert data["property_details"]["property_type"] == "single_family"
    assert data["status"] == "active"
    assert data["is_featured"] is True
    assert data["images"][0]["url"] == "/images/property-placeholder.jpg"
    assert data["agent_id"] == 42


def test_stage_writes_tagged_files(tmp_path) -> None:
    """Transformed files carry the source id tag and the snapshot date."""
    summary, output_dir = _run(tmp_path, {
        f"users_{DATE}.json": [_user()],
        f"posts_{DATE}.json": [
            _post(),
            _post(ID=2, slug="draft", post_status="draft"),
            _post(ID=3, slug="about", post_type="page"),
        ],
        f"extraction_summary_{DATE}.json": {"totals": {}},
    })

    posts = read_json(output_dir / f"blog_posts_transformed_{DATE}.json")
    pages = read_json(output_dir / f"pages_transformed_{DATE}.json")
    users = read_json(output_dir / f"users_transformed_{DATE}.json")

    assert [p[SOURCE_ID_FIELD] for p in posts] == [1]
    assert [p[SOURCE_ID_FIELD] for p in pages] == [3]
    assert users[0][SOURCE_ID_FIELD] == 42
    assert summary["source_date"] == DATE
    assert summary["results"]["blog_posts"] == 1
    assert (output_dir / f"transformation_summary_{DATE}.json").exists()


def test_stage_uses_latest_snapshot(tmp_path) -> None:
    """When several dates exist the newest snapshot wins."""
    summary, output_dir = _run(tmp_path, {
        "users_2024-01-01.json": [_user(ID=1, user_email="old@example.com")],
        "users_2024-02-01.json": [_user(ID=2, user_email="new@example.com")],
    })

    users = read_json(output_dir / "users_transformed_2024-02-01.json")

    assert summary["source_date"] == "2024-02-01"
    assert [u["email"] for u in users] == ["new@example.com"]


def test_stage_without_snapshots_fails(tmp_path) -> None:
    """An empty input directory is a transformation error."""
    (tmp_path / "data").mkdir()

    with pytest.raises(TransformationError):
        Transformer(default_mapping()).run(str(tmp_path / "data"), str(tmp_path / "out"))


def test_unknown_transform_falls_back_to_direct_copy() -> None:
    """Unknown transform names copy the value and add a warning."""
    mapping = EntityMapping(
        name="items",
        source_entity="items",
        target_entity="items",
        field_mappings=[FieldMapping(source_field="x", target_field="y", transform="mystery")],
    )
    record = SourceRecord(id="1", source_entity="items", data={"ID": 1, "x": "kept"})

    result = TransformEngine().transform_record(record, mapping)

    assert result.data == {"y": "kept"}
    assert result.warnings
    assert TransformType.DIRECT.value == "direct"
