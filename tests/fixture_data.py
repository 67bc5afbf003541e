"""WordPress-shaped source rows and file helpers shared by the tests."""

import json
from pathlib import Path

from sqlalchemy import text

PREFIX = "custom_"

SCHEMA = [
    """CREATE TABLE {p}users (
        ID INTEGER PRIMARY KEY,
        user_login TEXT,
        user_email TEXT,
        user_registered TEXT,
        user_status TEXT,
        display_name TEXT
    )""",
    """CREATE TABLE {p}usermeta (
        umeta_id INTEGER PRIMARY KEY,
        user_id INTEGER,
        meta_key TEXT,
        meta_value TEXT
    )""",
    """CREATE TABLE {p}posts (
        ID INTEGER PRIMARY KEY,
        post_author INTEGER,
        post_date TEXT,
        post_content TEXT,
        post_title TEXT,
        post_excerpt TEXT,
        post_status TEXT,
        post_name TEXT,
        post_type TEXT,
        post_modified TEXT,
        post_mime_type TEXT,
        guid TEXT
    )""",
    """CREATE TABLE {p}postmeta (
        meta_id INTEGER PRIMARY KEY,
        post_id INTEGER,
        meta_key TEXT,
        meta_value TEXT
    )""",
    """CREATE TABLE {p}terms (
        term_id INTEGER PRIMARY KEY,
        name TEXT,
        slug TEXT
    )""",
    """CREATE TABLE {p}term_taxonomy (
        term_taxonomy_id INTEGER PRIMARY KEY,
        term_id INTEGER,
        taxonomy TEXT
    )""",
    """CREATE TABLE {p}term_relationships (
        object_id INTEGER,
        term_taxonomy_id INTEGER
    )""",
]

# Alice (42) is an author, Bob (43) a subscriber; post 3 references an
# account that does not exist in the source.
USERS = [
    {"ID": 42, "user_login": "alice", "user_email": "Alice@Example.com",
     "user_registered": "2023-01-02 10:00:00", "user_status": "0", "display_name": "Alice Author"},
    {"ID": 43, "user_login": "bob", "user_email": "bob@example.com",
     "user_registered": "2023-02-01 10:00:00", "user_status": "0", "display_name": "Bob Reader"},
]

USERMETA = [
    (42, "first_name", "Alice"),
    (42, "last_name", "Author"),
    (42, PREFIX + "capabilities", 'a:1:{s:6:"author";b:1;}'),
    (43, PREFIX + "capabilities", 'a:1:{s:10:"subscriber";b:1;}'),
    (43, "session_tokens", "secret-session"),
]


def _post(ID, author, date, title, slug, status="publish", post_type="post",
          content="<p>Body</p>", excerpt="", mime="", guid=""):
    return {
        "ID": ID, "post_author": author, "post_date": date, "post_content": content,
        "post_title": title, "post_excerpt": excerpt, "post_status": status,
        "post_name": slug, "post_type": post_type, "post_modified": date,
        "post_mime_type": mime, "guid": guid,
    }


POSTS = [
    _post(1, 42, "2024-01-01 09:00:00", "First Post", "first-post"),
    _post(2, 42, "2024-02-01 09:00:00", "Second Post", "second-post"),
    _post(3, 99, "2024-03-01 09:00:00", "Orphan Post", "orphan-post"),
    _post(4, 42, "2024-04-01 09:00:00", "Draft Post", "draft-post", status="draft"),
    _post(5, 43, "2024-01-15 09:00:00", "Hero Image", "hero-image", status="inherit",
          post_type="attachment", content="", mime="image/jpeg",
          guid="http://old.example.com/wp-content/uploads/2024/01/hero.jpg"),
]

POSTMETA = [
    (1, "_yoast_wpseo_title", "First SEO Title"),
    (2, "_thumbnail_id", "5"),
    (5, "_wp_attached_file", "2024/01/hero.jpg"),
]

TERMS = [(1, "Market News", "market-news"), (2, "Staging", "staging")]
TERM_TAXONOMY = [(1, 1, "category"), (2, 2, "post_tag")]
TERM_RELATIONSHIPS = [(1, 1), (1, 2)]


def insert_row(engine, table, row, prefix=PREFIX):
    columns = ", ".join(row)
    values = ", ".join(f":{name}" for name in row)
    with engine.begin() as conn:
        conn.execute(text(f"INSERT INTO {prefix}{table} ({columns}) VALUES ({values})"), row)


def insert_post(engine, prefix=PREFIX, **fields):
    """Insert one extra row into the posts table."""
    insert_row(engine, "posts", _post(**fields), prefix)


def insert_postmeta(engine, post_id, key, value, prefix=PREFIX):
    with engine.begin() as conn:
        conn.execute(
            text(f"INSERT INTO {prefix}postmeta (post_id, meta_key, meta_value) VALUES (:p, :k, :v)"),
            {"p": post_id, "k": key, "v": value},
        )


def populate_source(engine, prefix=PREFIX):
    """Create and fill the WordPress-shaped schema under ``prefix``."""
    with engine.begin() as conn:
        for statement in SCHEMA:
            conn.execute(text(statement.format(p=prefix)))

        for user in USERS:
            conn.execute(text(
                f"INSERT INTO {prefix}users VALUES "
                "(:ID, :user_login, :user_email, :user_registered, :user_status, :display_name)"
            ), user)
        for user_id, key, value in USERMETA:
            conn.execute(text(
                f"INSERT INTO {prefix}usermeta (user_id, meta_key, meta_value) VALUES (:u, :k, :v)"
            ), {"u": user_id, "k": key, "v": value})
        for term_id, name, slug in TERMS:
            conn.execute(text(f"INSERT INTO {prefix}terms VALUES (:i, :n, :s)"),
                         {"i": term_id, "n": name, "s": slug})
        for tt_id, term_id, taxonomy in TERM_TAXONOMY:
            conn.execute(text(f"INSERT INTO {prefix}term_taxonomy VALUES (:i, :t, :x)"),
                         {"i": tt_id, "t": term_id, "x": taxonomy})
        for object_id, tt_id in TERM_RELATIONSHIPS:
            conn.execute(text(f"INSERT INTO {prefix}term_relationships VALUES (:o, :t)"),
                         {"o": object_id, "t": tt_id})

    for post in POSTS:
        insert_row(engine, "posts", post, prefix)
    for post_id, key, value in POSTMETA:
        insert_postmeta(engine, post_id, key, value, prefix)


def write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def read_json(path: Path):
    return json.loads(Path(path).read_text(encoding="utf-8"))
