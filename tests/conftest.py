from pathlib import Path

import pytest

import blogbuild

MISSING = object()


@pytest.fixture
def cfg(tmp_path):
    """Config with every default, Graphviz off."""
    config_path = tmp_path / "config.yml"
    config_path.write_text("graphviz: false\n", encoding="utf-8")
    return blogbuild.load_config(config_path)


@pytest.fixture
def make_post():
    """Build an in-memory post item the way discover_content would."""
    counter = iter(range(1000))

    def _make_post(index=MISSING, post_id=None, **extra):
        n = next(counter)
        post_id = post_id or f"post-{n}"
        data = {"id": post_id, "title": post_id.replace("-", " ").title(), "tags": ["post"]}
        if index is not MISSING:
            data["index"] = index
        data.update(extra)
        return {
            "source": Path(f"src/posts/{post_id}.md"),
            "rel_path": f"posts/{post_id}.md",
            "data": data,
            "content_md": f"Body of {post_id}.",
            "permalink": f"posts/{post_id}/",
        }

    return _make_post


@pytest.fixture
def write_site(tmp_path):
    """
    Lay out a project in tmp_path: write_site({"src/a.md": "..."}, config="...")
    returns the config path.
    """
    def _write_site(files: dict, config: str = "graphviz: false\n") -> Path:
        for rel, text in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        config_path = tmp_path / "config.yml"
        config_path.write_text(config, encoding="utf-8")
        return config_path

    return _write_site
