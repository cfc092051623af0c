#!/usr/bin/env python3
import re
import sys
import math
import html
import base64
import shutil
import posixpath
import subprocess
from pathlib import Path

import markdown       # pip install markdown
import yaml           # pip install pyyaml
from bs4 import BeautifulSoup, NavigableString  # pip install beautifulsoup4
from pygments.formatters import HtmlFormatter   # pip install pygments
from pygments.util import ClassNotFound

DEFAULT_CONFIG_FILENAME = "config.yml"

# Generated into output_dir
HIGHLIGHT_CSS_FILENAME = "highlight.css"

# "---\n<yaml>\n---" at the very top of a content file
FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)

# ```dot ... ``` or ~~~graphviz ... ~~~
DIAGRAM_FENCE_RE = re.compile(
    r"^(?P<fence>`{3,}|~{3,})[ \t]*(?:dot|graphviz)[ \t]*\r?\n(?P<source>.*?)^(?P=fence)[ \t]*$",
    re.DOTALL | re.MULTILINE,
)
DIAGRAM_PLACEHOLDER = "blogbuild-diagram-{n}"
DIAGRAM_PLACEHOLDER_RE = re.compile(r"<p>blogbuild-diagram-(\d+)</p>")

# "> [!NOTE]" style alerts
CALLOUT_RE = re.compile(r"^\s*\[!(NOTE|TIP|IMPORTANT|WARNING|CAUTION)\][ \t]*\r?\n?", re.IGNORECASE)

MARKDOWN_EXTENSIONS = ["extra", "codehilite", "toc"]
MARKDOWN_EXTENSION_CONFIGS = {
    "codehilite": {
        "guess_lang": False,
        "css_class": "highlight",
    },
}

GRAPHVIZ_FORMATS = ("svg", "png")


# -----------------------
# Config
# -----------------------

def get_config_path_from_args(argv=None) -> Path:
    """
    Determine which config file to use.

    - If a path is passed as first argument, use that.
    - Otherwise, look for config.yml in the current directory.
    """
    args = sys.argv[1:] if argv is None else argv
    if args:
        return Path(args[0]).resolve()
    return (Path.cwd() / DEFAULT_CONFIG_FILENAME).resolve()


def as_str_list(value) -> list:
    """A config value that may be a string or a list becomes a list of strings."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(x) for x in value]
    return []


def normalize_path_prefix(prefix) -> str:
    prefix = str(prefix or "/").strip()
    return "/" + prefix.strip("/") + "/" if prefix.strip("/") else "/"


def load_config(config_path: Path) -> dict:
    """Load YAML config and apply defaults."""
    if not config_path.exists():
        print(f"Config file not found: {config_path}", file=sys.stderr)
        sys.exit(1)

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        print(f"Invalid config file {config_path}: {exc}", file=sys.stderr)
        sys.exit(1)

    # graphviz can be a bool or a mapping
    graphviz = data.get("graphviz", {})
    if isinstance(graphviz, bool):
        graphviz = {"enabled": graphviz}
    elif not isinstance(graphviz, dict):
        graphviz = {}
    graphviz_format = str(graphviz.get("format", "svg")).lower()
    if graphviz_format not in GRAPHVIZ_FORMATS:
        print(
            f"Unsupported graphviz format {graphviz_format!r} (expected one of {', '.join(GRAPHVIZ_FORMATS)})",
            file=sys.stderr,
        )
        sys.exit(1)

    # passthrough_copy can be a mapping {src: dest} or a list of paths copied as-is
    passthrough = data.get("passthrough_copy", {})
    if isinstance(passthrough, list):
        passthrough = {str(p): str(p) for p in passthrough}
    elif isinstance(passthrough, dict):
        passthrough = {str(k): str(v) for k, v in passthrough.items()}
    else:
        passthrough = {}

    cfg = {
        "site_title": str(data.get("site_title", "Blog")),
        "site_tagline": str(data.get("site_tagline") or ""),
        "input_dir": data.get("input_dir", "src"),
        "output_dir": data.get("output_dir", "_site"),
        "path_prefix": normalize_path_prefix(data.get("path_prefix", "/")),
        # Posts
        "post_tag": str(data.get("post_tag", "post")),
        "post_permalink": str(data.get("post_permalink", "posts/{id}/")),
        "include_drafts": bool(data.get("include_drafts", False)),
        "strict_index": bool(data.get("strict_index", False)),
        # Plugins
        "highlight_style": str(data.get("highlight_style", "default")),
        "graphviz_enabled": bool(graphviz.get("enabled", True)),
        "graphviz_format": graphviz_format,
        # Assets
        "passthrough_copy": passthrough,
        "stylesheets": as_str_list(data.get("stylesheets", [])),
        "extra_head": as_str_list(data.get("extra_head", [])),
        "extra_footer": as_str_list(data.get("extra_footer", [])),
    }
    return cfg


# -----------------------
# Discovery
# -----------------------

def split_front_matter(text: str, source: Path):
    """
    Split a content file into (data, body).

    Files without a leading "---" block have empty data and the whole
    text as body.
    """
    text = text.lstrip("\ufeff")
    m = FRONT_MATTER_RE.match(text)
    if not m:
        return {}, text

    try:
        data = yaml.safe_load(m.group(1)) or {}
    except yaml.YAMLError as exc:
        print(f"Invalid front matter in {source}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"Front matter in {source} must be a mapping", file=sys.stderr)
        sys.exit(1)

    return data, text[m.end():]


def load_directory_data(directory: Path) -> dict:
    """Read <dir>/<dirname>.yml (or .yaml), the defaults for every file below <dir>."""
    for suffix in (".yml", ".yaml"):
        path = directory / f"{directory.name}{suffix}"
        if not path.is_file():
            continue
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            print(f"Invalid directory data file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        if not isinstance(data, dict):
            print(f"Directory data file {path} must be a mapping", file=sys.stderr)
            sys.exit(1)
        return data
    return {}


def normalize_tags(value) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(t) for t in value if t is not None and str(t).strip()]
    return [str(value)]


def merge_data(base: dict, override: dict) -> dict:
    """
    Layer `override` on top of `base` without touching either.

    Tags accumulate instead of being replaced, so a post can add its own
    tags to the ones its directory gives it.
    """
    merged = dict(base)
    for key, value in override.items():
        if key == "tags":
            tags = normalize_tags(merged.get("tags"))
            for tag in normalize_tags(value):
                if tag not in tags:
                    tags.append(tag)
            merged["tags"] = tags
        else:
            merged[key] = value
    return merged


def slugify(text: str) -> str:
    """
    Convert a title like 'Outdoor Trips' into a URL-friendly slug: 'outdoor-trips'.
    """
    s = str(text).strip().lower()
    s = re.sub(r"[\s_]+", "-", s)
    s = re.sub(r"[^a-z0-9-]", "", s)
    s = re.sub(r"-{2,}", "-", s).strip("-")
    return s or "page"


def is_draft(data: dict) -> bool:
    value = data.get("draft", False)
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "y", "on")
    return bool(value)


def default_permalink(rel_path: Path) -> str:
    """about.md -> about/, notes/index.md -> notes/, index.md -> ''."""
    stem_path = rel_path.with_suffix("")
    if stem_path.name == "index":
        parent = stem_path.parent.as_posix()
        return "" if parent == "." else f"{parent}/"
    return f"{stem_path.as_posix()}/"


def resolve_permalink(rel_path: Path, data: dict, is_post: bool, cfg: dict, source: Path):
    """
    Work out where an item is written, or None if it is not written at all.

    Front-matter `permalink` wins; posts otherwise use `post_permalink`.
    Both may refer to any data key with {name} placeholders.
    """
    permalink = data.get("permalink")
    if permalink is False:
        return None
    if permalink is None:
        if not is_post:
            return default_permalink(rel_path)
        permalink = cfg["post_permalink"]

    try:
        return str(permalink).format_map(data).lstrip("/")
    except (KeyError, IndexError, ValueError) as exc:
        print(f"Cannot build permalink {permalink!r} for {source}: {exc}", file=sys.stderr)
        sys.exit(1)


def is_skipped(rel_path: Path) -> bool:
    # _includes, _data, .git and friends never hold pages
    return any(part.startswith(("_", ".")) for part in rel_path.parts)


def discover_content(input_dir: Path, output_dir: Path, cfg: dict) -> list:
    """
    Walk input_dir and build one item per markdown file.

    Each item:
      {
        "source": Path,
        "rel_path": "posts/hello.md",
        "data": {...front matter over directory data...},
        "content_md": "markdown body",
        "permalink": "posts/hello/" or None,
      }

    Items come back in sorted path order, drafts left out unless
    include_drafts=True.
    """
    items = []
    dir_data_cache = {}

    for md_file in sorted(input_dir.rglob("*.md")):
        rel_path = md_file.relative_to(input_dir)
        if is_skipped(rel_path):
            continue
        if output_dir in md_file.parents:
            continue

        # Directory data, farthest first so nearer directories override
        data = {}
        chain = [input_dir] + [input_dir / p for p in _parent_chain(rel_path.parent)]
        for directory in chain:
            if directory not in dir_data_cache:
                dir_data_cache[directory] = load_directory_data(directory)
            data = merge_data(data, dir_data_cache[directory])

        front_matter, body = split_front_matter(md_file.read_text(encoding="utf-8"), md_file)
        data = merge_data(data, front_matter)
        data["tags"] = normalize_tags(data.get("tags"))

        if is_draft(data) and not cfg["include_drafts"]:
            continue

        is_post = cfg["post_tag"] in data["tags"]
        if is_post and not data.get("id"):
            data["id"] = slugify(md_file.stem)
            print(f"WARNING: {md_file} has no id, using {data['id']!r}", file=sys.stderr)
        if not data.get("title"):
            data["title"] = data.get("id") or md_file.stem

        items.append(
            {
                "source": md_file,
                "rel_path": rel_path.as_posix(),
                "data": data,
                "content_md": body.strip(),
                "permalink": resolve_permalink(rel_path, data, is_post, cfg, md_file),
            }
        )

    return items


def _parent_chain(rel_dir: Path) -> list:
    """posts/2024 -> [posts, posts/2024]"""
    parts = rel_dir.parts
    return [Path(*parts[: i + 1]) for i in range(len(parts))]


# -----------------------
# Collections
# -----------------------

def filter_by_tag(items: list, tag: str) -> list:
    return [item for item in items if tag in item["data"].get("tags", [])]


def build_collections(items: list, cfg: dict) -> dict:
    """
    Returns:
      {
        "all": [...],
        "<tag>": [...],           one per tag, discovery order
        "sortedPosts": [...],     post_tag items, highest index first
      }
    """
    collections = {"all": list(items)}
    for item in items:
        for tag in item["data"]["tags"]:
            collections.setdefault(tag, []).append(item)

    collections["sortedPosts"] = sort_posts_descending(collections.get(cfg["post_tag"], []))
    return collections


def index_value(item: dict):
    """The item's numeric `index`, or None if it is missing or not a number."""
    value = item["data"].get("index")
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else value
    return None


def validate_indexes(posts: list, strict: bool = False) -> list:
    """
    Report posts without a usable `index`.

    They still build (they sort after every indexed post) unless
    strict=True, in which case the build stops.
    """
    missing = [item for item in posts if index_value(item) is None]
    prefix = "" if strict else "WARNING: "
    for item in missing:
        raw = item["data"].get("index")
        print(f"{prefix}{item['source']} has no numeric index (got {raw!r})", file=sys.stderr)
    if missing and strict:
        sys.exit(1)
    return missing


def sort_by_index(items: list, *, descending: bool = False) -> list:
    """
    Return a new list ordered by `index`.

    Items without an index keep their input order and go last in either
    direction; `items` itself is left alone.
    """
    indexed = [item for item in items if index_value(item) is not None]
    unindexed = [item for item in items if index_value(item) is None]
    return sorted(indexed, key=index_value, reverse=descending) + unindexed


def sort_posts_descending(items: list) -> list:
    """Listing order: newest (highest index) first."""
    return sort_by_index(items, descending=True)


def sort_posts_ascending(items: list) -> list:
    """Page order: lowest index first, so previous/next read chronologically."""
    return sort_by_index(items, descending=False)


def paginate(items: list, size: int = 1, before=sort_posts_ascending) -> list:
    """
    Split items into pages of `size`, after ordering them with `before`.

    Each page:
      {
        "items": [item, ...],
        "page_number": 0,
        "total_pages": 3,
        "previous": [...] or None,
        "next": [...] or None,
      }
    """
    if size < 1:
        raise ValueError(f"page size must be at least 1, got {size}")

    ordered = before(items) if before is not None else list(items)
    chunks = [ordered[i:i + size] for i in range(0, len(ordered), size)]

    pages = []
    for number, chunk in enumerate(chunks):
        pages.append(
            {
                "items": chunk,
                "page_number": number,
                "total_pages": len(chunks),
                "previous": chunks[number - 1] if number > 0 else None,
                "next": chunks[number + 1] if number + 1 < len(chunks) else None,
            }
        )
    return pages


# -----------------------
# Markdown plugins
# -----------------------

def render_dot(dot_source: str, fmt: str, source: Path) -> str:
    """Run Graphviz on one diagram and return an HTML fragment."""
    result = subprocess.run(
        ["dot", f"-T{fmt}"],
        input=dot_source.encode("utf-8"),
        capture_output=True,
    )
    if result.returncode != 0:
        print(
            f"Graphviz failed on a diagram in {source}: {result.stderr.decode('utf-8', 'replace').strip()}",
            file=sys.stderr,
        )
        sys.exit(1)

    if fmt == "png":
        encoded = base64.b64encode(result.stdout).decode("ascii")
        return f'<div class="graphviz"><img src="data:image/png;base64,{encoded}" alt="diagram"></div>'

    svg = result.stdout.decode("utf-8")
    # Drop the XML prolog and DOCTYPE so the SVG can sit inline
    start = svg.find("<svg")
    if start > 0:
        svg = svg[start:]
    return f'<div class="graphviz">{svg.strip()}</div>'


def extract_diagrams(md_text: str, cfg: dict, source: Path):
    """
    Render ```dot fences up front and leave placeholders behind.

    Returns (markdown_with_placeholders, [html_fragment, ...]). With
    Graphviz disabled or missing the text is returned untouched and the
    fences end up as ordinary highlighted code blocks.
    """
    if not cfg["graphviz_enabled"] or not DIAGRAM_FENCE_RE.search(md_text):
        return md_text, []

    if shutil.which("dot") is None:
        print(f"WARNING: Graphviz 'dot' not found, leaving diagrams in {source} as code", file=sys.stderr)
        return md_text, []

    diagrams = []

    def _replace(m):
        diagrams.append(render_dot(m.group("source"), cfg["graphviz_format"], source))
        return "\n\n" + DIAGRAM_PLACEHOLDER.format(n=len(diagrams) - 1) + "\n\n"

    return DIAGRAM_FENCE_RE.sub(_replace, md_text), diagrams


def insert_diagrams(html_fragment: str, diagrams: list) -> str:
    """Swap <p>blogbuild-diagram-N</p> placeholders for the rendered diagrams."""
    if not diagrams:
        return html_fragment

    def _swap(m):
        n = int(m.group(1))
        # Prose that happens to look like a placeholder stays as written
        return diagrams[n] if n < len(diagrams) else m.group(0)

    return DIAGRAM_PLACEHOLDER_RE.sub(_swap, html_fragment)


def render_callouts(html_fragment: str) -> str:
    """
    Turn alert blockquotes into callout boxes:

      > [!WARNING]
      > Mind the gap.

    becomes

      <div class="callout callout-warning">
        <p class="callout-title">Warning</p>
        <p>Mind the gap.</p>
      </div>
    """
    soup = BeautifulSoup(html_fragment, "html.parser")

    for quote in soup.find_all("blockquote"):
        first = quote.find("p", recursive=False)
        if first is None or not first.contents:
            continue
        lead = first.contents[0]
        if not isinstance(lead, NavigableString):
            continue
        m = CALLOUT_RE.match(str(lead))
        if not m:
            continue

        kind = m.group(1).lower()
        rest = str(lead)[m.end():]
        if rest.strip():
            lead.replace_with(rest)
        else:
            lead.extract()
            if first.get_text().strip() == "" and not first.find(True):
                first.decompose()

        quote.name = "div"
        quote["class"] = ["callout", f"callout-{kind}"]
        title = soup.new_tag("p")
        title["class"] = "callout-title"
        title.string = kind.capitalize()
        quote.insert(0, title)

    return str(soup)


def wrap_images_with_figures(html_fragment: str) -> str:
    """
    Wrap <img> tags in <figure> with <figcaption> using the alt text.
    """
    soup = BeautifulSoup(html_fragment, "html.parser")

    for img in soup.find_all("img"):
        # Skip if already inside a figure
        if img.find_parent("figure"):
            continue

        alt = img.get("alt", "").strip()
        figure = soup.new_tag("figure")
        figure["class"] = "post-figure"
        img.replace_with(figure)
        figure.append(img)

        if alt:
            caption = soup.new_tag("figcaption")
            caption.string = alt
            figure.append(caption)

    return str(soup)


def render_markdown(md_text: str, cfg: dict, source: Path) -> str:
    """Markdown -> HTML with diagrams, highlighting, callouts and figures."""
    md_text, diagrams = extract_diagrams(md_text, cfg, source)
    raw_html = markdown.markdown(
        md_text,
        extensions=MARKDOWN_EXTENSIONS,
        extension_configs=MARKDOWN_EXTENSION_CONFIGS,
        output_format="html",
    )
    content_html = render_callouts(raw_html)
    content_html = wrap_images_with_figures(content_html)
    # Diagrams go in last so their SVG is never re-parsed
    return insert_diagrams(content_html, diagrams)


# -----------------------
# Page renderers
# -----------------------

def output_path_for(permalink: str) -> str:
    """posts/hello/ -> posts/hello/index.html, feed.html stays feed.html."""
    path = permalink.lstrip("/")
    if path.endswith(".html"):
        return path
    if path and not path.endswith("/"):
        path += "/"
    return path + "index.html"


def is_inside_site(out_path: str) -> bool:
    """False for paths like ../../escaped/index.html that climb out of output_dir."""
    normalized = posixpath.normpath(out_path)
    return not (normalized == ".." or normalized.startswith(("../", "/")))


def url_for(permalink: str, cfg: dict) -> str:
    path = permalink.lstrip("/")
    if path == "index.html" or path.endswith("/index.html"):
        path = path[: -len("index.html")]
    return cfg["path_prefix"] + path


def asset_href(href: str, cfg: dict) -> str:
    if href.startswith(("http://", "https://", "//", "/")):
        return href
    return cfg["path_prefix"] + href


def build_common_head_and_footer(cfg: dict):
    """Return extra_head_html, extra_footer_html strings."""
    head_items = [
        f'<link rel="stylesheet" href="{asset_href(href, cfg)}">'
        for href in cfg["stylesheets"] + [HIGHLIGHT_CSS_FILENAME]
    ]
    head_items += cfg.get("extra_head") or []
    extra_head_html = "\n  " + "\n  ".join(head_items)

    extra_footer_items = cfg.get("extra_footer") or []
    extra_footer_html = ""
    if extra_footer_items:
        extra_footer_html = "\n    " + "\n    ".join(extra_footer_items)

    return extra_head_html, extra_footer_html


def render_layout(page_title: str, body_html: str, cfg: dict) -> str:
    """The shell every page shares: head, site header, footer."""
    site_title = html.escape(cfg["site_title"])
    site_tagline = html.escape(cfg["site_tagline"])
    extra_head_html, extra_footer_html = build_common_head_and_footer(cfg)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{html.escape(page_title)}</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">{extra_head_html}
</head>
<body>
<header class="site-header">
  <h1 class="site-title"><a href="{cfg['path_prefix']}">{site_title}</a></h1>
  <p class="site-tagline">{site_tagline}</p>
</header>

<main class="content">
{body_html}
</main>

<footer class="site-footer">
  {extra_footer_html}
</footer>
</body>
</html>
"""


def render_post_date(data: dict) -> str:
    value = data.get("date")
    if not value:
        return ""
    iso = value.isoformat() if hasattr(value, "isoformat") else str(value)
    return f'<time class="post-date" datetime="{html.escape(iso)}">{html.escape(iso[:10])}</time>'


def render_home_page(intro_html: str, posts: list, cfg: dict) -> str:
    """
    index.html: optional intro from src/index.md, then every post,
    in the order given (sortedPosts).
    """
    if posts:
        items = []
        for item in posts:
            data = item["data"]
            title = html.escape(str(data["title"]))
            if item["permalink"] is None:
                items.append(f'<li class="post-list-item">{title}</li>')
                continue
            href = url_for(item["permalink"], cfg)
            items.append(
                f'<li class="post-list-item"><a href="{href}" class="post-link">{title}</a> '
                f'{render_post_date(data)}</li>'
            )
        list_html = '<ul class="post-list">\n  ' + "\n  ".join(items) + "\n</ul>"
    else:
        list_html = "<p>No posts yet.</p>"

    intro = f'<section class="intro">\n{intro_html}\n</section>\n' if intro_html else ""
    body = f"""{intro}<section class="posts">
<h2 class="posts-title">Posts</h2>
{list_html}
</section>"""
    return render_layout(cfg["site_title"], body, cfg)


def render_post_page(page: dict, content_html: str, cfg: dict) -> str:
    """One paginated post page with links to its neighbours."""
    item = page["items"][0]
    data = item["data"]
    title = html.escape(str(data["title"]))

    nav = []
    if page["previous"]:
        prev_item = page["previous"][-1]
        if prev_item["permalink"] is not None:
            nav.append(
                f'<a class="post-nav-prev" rel="prev" href="{url_for(prev_item["permalink"], cfg)}">'
                f'&larr; {html.escape(str(prev_item["data"]["title"]))}</a>'
            )
    if page["next"]:
        next_item = page["next"][0]
        if next_item["permalink"] is not None:
            nav.append(
                f'<a class="post-nav-next" rel="next" href="{url_for(next_item["permalink"], cfg)}">'
                f'{html.escape(str(next_item["data"]["title"]))} &rarr;</a>'
            )
    nav_html = f'<nav class="post-nav">\n  {"".join(nav)}\n</nav>' if nav else ""

    body = f"""<article id="{html.escape(str(data['id']))}" class="post">
  <header class="post-header">
    <h2 class="post-title">{title}</h2>
    {render_post_date(data)}
  </header>
  <div class="post-body">
    {content_html}
  </div>
</article>
{nav_html}"""
    return render_layout(f"{data['title']} – {cfg['site_title']}", body, cfg)


def render_content_page(item: dict, content_html: str, cfg: dict) -> str:
    """A standalone page such as the resume."""
    title = str(item["data"]["title"])
    body = f"""<article class="page">
  <h2 class="page-title">{html.escape(title)}</h2>
  <div class="page-body">
    {content_html}
  </div>
</article>"""
    return render_layout(f"{title} – {cfg['site_title']}", body, cfg)


def render_site(items: list, collections: dict, pages: list, cfg: dict) -> dict:
    """
    Render every output file without writing anything.

    Returns { "posts/hello/index.html": "<!DOCTYPE html>...", ... }.
    Two items landing on the same path stop the build.
    """
    rendered = {}
    owners = {}

    def _add(out_path, page_html, owner):
        if not is_inside_site(out_path):
            print(f"{owner} would write {out_path}, outside the output directory", file=sys.stderr)
            sys.exit(1)
        if out_path in rendered:
            print(f"Output conflict: {owners[out_path]} and {owner} both write {out_path}", file=sys.stderr)
            sys.exit(1)
        rendered[out_path] = page_html
        owners[out_path] = owner

    posts = set(id(item) for page in pages for item in page["items"])
    intro_item = None

    # Post pages, one per paginator page
    for page in pages:
        item = page["items"][0]
        if item["permalink"] is None:
            continue
        content_html = render_markdown(item["content_md"], cfg, item["source"])
        _add(output_path_for(item["permalink"]), render_post_page(page, content_html, cfg), item["rel_path"])

    # Everything else that has a permalink
    for item in items:
        if id(item) in posts or item["permalink"] is None:
            continue
        out_path = output_path_for(item["permalink"])
        if out_path == "index.html":
            if intro_item is not None:
                print(
                    f"Output conflict: {intro_item['rel_path']} and {item['rel_path']} both write index.html",
                    file=sys.stderr,
                )
                sys.exit(1)
            intro_item = item
            continue
        content_html = render_markdown(item["content_md"], cfg, item["source"])
        _add(out_path, render_content_page(item, content_html, cfg), item["rel_path"])

    intro_html = ""
    if intro_item is not None:
        intro_html = render_markdown(intro_item["content_md"], cfg, intro_item["source"])
    _add("index.html", render_home_page(intro_html, collections["sortedPosts"], cfg), "home page")

    return rendered


# -----------------------
# Output / static assets
# -----------------------

def write_pages(rendered: dict, output_dir: Path):
    for rel_path, page_html in rendered.items():
        out_path = output_dir / rel_path
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(page_html, encoding="utf-8")
        print(f"Wrote {out_path}")


def write_highlight_css(cfg: dict, output_dir: Path):
    """Write the Pygments stylesheet for code blocks."""
    try:
        formatter = HtmlFormatter(style=cfg["highlight_style"])
    except ClassNotFound:
        print(f"Unknown highlight_style: {cfg['highlight_style']!r}", file=sys.stderr)
        sys.exit(1)

    dest = output_dir / HIGHLIGHT_CSS_FILENAME
    dest.write_text(formatter.get_style_defs(".highlight") + "\n", encoding="utf-8")
    print(f"Wrote {dest}")


def copy_passthrough(mapping: dict, project_root: Path, output_dir: Path):
    """Copy files and directories as-is, {source: destination}."""
    for src_rel, dest_rel in mapping.items():
        src = (project_root / src_rel).resolve()
        dest = output_dir / dest_rel.lstrip("/")
        if not src.exists():
            print(f"WARNING: passthrough source not found at {src}", file=sys.stderr)
            continue

        if src.is_dir():
            shutil.copytree(src, dest, dirs_exist_ok=True)
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, dest)
        print(f"Copied {src} to {dest}")


# -----------------------
# main()
# -----------------------

def main(argv=None):
    # 1. Figure out config path, project root, and load config
    config_path = get_config_path_from_args(argv)
    project_root = config_path.parent
    cfg = load_config(config_path)

    # 2. Resolve input_dir and output_dir relative to config file
    input_dir = (project_root / cfg["input_dir"]).resolve()
    output_dir = (project_root / cfg["output_dir"]).resolve()

    if not input_dir.is_dir():
        print(f"Input directory not found: {input_dir}", file=sys.stderr)
        sys.exit(1)

    # 3. Discover
    items = discover_content(input_dir, output_dir, cfg)
    if not items:
        print("No content found.", file=sys.stderr)
        sys.exit(1)

    # 4. Filter + check ordering keys
    posts = filter_by_tag(items, cfg["post_tag"])
    validate_indexes(posts, strict=cfg["strict_index"])

    # 5. Sort (listing) and paginate (one page per post)
    collections = build_collections(items, cfg)
    pages = paginate(posts, size=1, before=sort_posts_ascending)

    # 6. Render, then write
    rendered = render_site(items, collections, pages, cfg)

    output_dir.mkdir(parents=True, exist_ok=True)
    write_pages(rendered, output_dir)
    write_highlight_css(cfg, output_dir)
    copy_passthrough(cfg["passthrough_copy"], project_root, output_dir)


if __name__ == "__main__":
    main()
