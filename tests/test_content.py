import datetime
from pathlib import Path

import pytest

import blogbuild


def discover(tmp_path, cfg):
    return blogbuild.discover_content(tmp_path / "src", tmp_path / "_site", cfg)


def by_path(items):
    return {item["rel_path"]: item for item in items}


# -----------------------
# Front matter
# -----------------------

def test_split_front_matter():
    text = "---\ntitle: Hello\nindex: 3\ndate: 2024-01-02\n---\nBody text\n"

    data, body = blogbuild.split_front_matter(text, Path("hello.md"))

    assert data == {"title": "Hello", "index": 3, "date": datetime.date(2024, 1, 2)}
    assert body == "Body text\n"


def test_split_front_matter_without_block():
    data, body = blogbuild.split_front_matter("# Just markdown\n", Path("plain.md"))

    assert data == {}
    assert body == "# Just markdown\n"


def test_split_front_matter_empty_block():
    data, body = blogbuild.split_front_matter("---\n---\nBody\n", Path("empty.md"))

    assert data == {}
    assert body == "Body\n"


def test_split_front_matter_ignores_bom():
    data, _ = blogbuild.split_front_matter("\ufeff---\ntitle: Hi\n---\n", Path("bom.md"))

    assert data == {"title": "Hi"}


def test_split_front_matter_invalid_yaml(capsys):
    with pytest.raises(SystemExit):
        blogbuild.split_front_matter("---\ntitle: [oops\n---\n", Path("broken.md"))

    assert "broken.md" in capsys.readouterr().err


def test_split_front_matter_must_be_mapping():
    with pytest.raises(SystemExit):
        blogbuild.split_front_matter("---\n- a\n- b\n---\n", Path("list.md"))


# -----------------------
# Data cascade
# -----------------------

def test_merge_data_accumulates_tags():
    base = {"tags": "post", "layout": "post"}
    override = {"tags": ["python", "post"], "layout": "essay"}

    merged = blogbuild.merge_data(base, override)

    assert merged == {"tags": ["post", "python"], "layout": "essay"}
    assert base == {"tags": "post", "layout": "post"}
    assert override == {"tags": ["python", "post"], "layout": "essay"}


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, []),
        ("post", ["post"]),
        ("  ", []),
        (["post", None, "", 3], ["post", "3"]),
        (42, ["42"]),
    ],
)
def test_normalize_tags(value, expected):
    assert blogbuild.normalize_tags(value) == expected


def test_slugify():
    assert blogbuild.slugify("Hello, World!") == "hello-world"
    assert blogbuild.slugify("snake_case  name") == "snake-case-name"
    assert blogbuild.slugify("???") == "page"


@pytest.mark.parametrize(
    "rel_path, expected",
    [
        ("about.md", "about/"),
        ("index.md", ""),
        ("notes/index.md", "notes/"),
        ("notes/deep/page.md", "notes/deep/page/"),
    ],
)
def test_default_permalink(rel_path, expected):
    assert blogbuild.default_permalink(Path(rel_path)) == expected


# -----------------------
# discover_content
# -----------------------

def test_discover_posts_and_pages(tmp_path, cfg, write_site):
    write_site(
        {
            "src/index.md": "---\ntitle: Home\n---\nWelcome.\n",
            "src/resume.md": "---\ntitle: Resume\n---\nCV.\n",
            "src/posts/posts.yml": "tags: post\n",
            "src/posts/b.md": "---\nindex: 2\nid: second\ntitle: Second\ntags: python\n---\nTwo.\n",
            "src/posts/a.md": "---\nindex: 1\nid: first\ntitle: First\n---\nOne.\n",
        }
    )

    items = discover(tmp_path, cfg)

    assert [item["rel_path"] for item in items] == [
        "index.md",
        "posts/a.md",
        "posts/b.md",
        "resume.md",
    ]
    found = by_path(items)
    assert found["posts/a.md"]["data"]["tags"] == ["post"]
    assert found["posts/b.md"]["data"]["tags"] == ["post", "python"]
    assert found["posts/a.md"]["permalink"] == "posts/first/"
    assert found["posts/b.md"]["permalink"] == "posts/second/"
    assert found["posts/a.md"]["content_md"] == "One."
    assert found["resume.md"]["permalink"] == "resume/"
    assert found["resume.md"]["data"]["tags"] == []
    assert found["index.md"]["permalink"] == ""


def test_discover_skips_private_dirs_and_output(tmp_path, cfg, write_site):
    write_site(
        {
            "src/_includes/partial.md": "partial\n",
            "src/.hidden/secret.md": "secret\n",
            "src/_site/old.md": "old\n",
            "src/page.md": "page\n",
        }
    )

    items = blogbuild.discover_content(tmp_path / "src", tmp_path / "src" / "_site", cfg)

    assert [item["rel_path"] for item in items] == ["page.md"]


def test_nearer_directory_data_wins(tmp_path, cfg, write_site):
    write_site(
        {
            "src/src.yml": "author: Site\nlayout: page\n",
            "src/posts/posts.yml": "tags: post\nlayout: post\n",
            "src/posts/2024/2024.yml": "tags: archive\n",
            "src/posts/2024/old.md": "---\nindex: 1\nid: old\n---\nOld.\n",
            "src/posts/own.md": "---\nindex: 2\nid: own\nlayout: essay\n---\nOwn.\n",
        }
    )

    found = by_path(discover(tmp_path, cfg))

    old = found["posts/2024/old.md"]["data"]
    assert old["author"] == "Site"
    assert old["layout"] == "post"
    assert old["tags"] == ["post", "archive"]
    assert found["posts/own.md"]["data"]["layout"] == "essay"


def test_drafts_are_skipped_unless_enabled(tmp_path, cfg, write_site):
    write_site(
        {
            "src/done.md": "---\ntitle: Done\n---\n",
            "src/wip.md": "---\ntitle: WIP\ndraft: yes\n---\n",
        }
    )

    assert [i["rel_path"] for i in discover(tmp_path, cfg)] == ["done.md"]

    cfg["include_drafts"] = True
    assert [i["rel_path"] for i in discover(tmp_path, cfg)] == ["done.md", "wip.md"]


def test_post_without_id_uses_file_name(tmp_path, cfg, write_site, capsys):
    write_site({"src/posts/My Post.md": "---\nindex: 1\ntags: post\n---\nBody\n"})

    item = discover(tmp_path, cfg)[0]

    assert item["data"]["id"] == "my-post"
    assert item["data"]["title"] == "my-post"
    assert item["permalink"] == "posts/my-post/"
    assert "has no id" in capsys.readouterr().err


def test_front_matter_permalink(tmp_path, cfg, write_site):
    write_site(
        {
            "src/feed.md": "---\npermalink: /feed.html\n---\n",
            "src/hidden.md": "---\npermalink: false\n---\n",
            "src/posts/p.md": "---\ntags: post\nindex: 4\nid: p\npermalink: 'archive/{index}-{id}/'\n---\n",
        }
    )

    found = by_path(discover(tmp_path, cfg))

    assert found["feed.md"]["permalink"] == "feed.html"
    assert found["hidden.md"]["permalink"] is None
    assert found["posts/p.md"]["permalink"] == "archive/4-p/"


def test_permalink_with_unknown_key_fails(tmp_path, cfg, write_site, capsys):
    write_site({"src/x.md": "---\npermalink: '{slug}/'\n---\n"})

    with pytest.raises(SystemExit):
        discover(tmp_path, cfg)

    assert "x.md" in capsys.readouterr().err


def test_custom_post_tag_and_permalink(tmp_path, cfg, write_site):
    write_site({"src/e.md": "---\ntags: [essay]\nindex: 1\nid: e\n---\n"})
    cfg["post_tag"] = "essay"
    cfg["post_permalink"] = "essays/{id}.html"

    item = discover(tmp_path, cfg)[0]

    assert item["permalink"] == "essays/e.html"


def test_invalid_directory_data(tmp_path, cfg, write_site):
    write_site({"src/posts/posts.yml": "- not\n- a mapping\n", "src/posts/a.md": "A\n"})

    with pytest.raises(SystemExit):
        discover(tmp_path, cfg)
