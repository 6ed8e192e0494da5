"""HTML templates rendered with Jinja2."""

from __future__ import annotations

from typing import Any

from jinja2 import DictLoader, Environment, select_autoescape

from cloudvault.fs.utils import format_bytes

LISTING_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Index of {{ title }}</title>
<style>
body { font-family: system-ui, sans-serif; margin: 2rem; }
table { border-collapse: collapse; }
td, th { padding: 0.25rem 1rem; text-align: left; }
</style>
</head>
<body>
<h1>Index of {{ title }}</h1>
<table>
<tr><th>Name</th><th>Size</th><th>Modified</th></tr>
{% if parent_href %}<tr><td><a href="{{ parent_href }}">../</a></td><td></td><td></td></tr>
{% endif %}
{% for folder in folders %}<tr><td><a href="{{ folder.href }}">{{ folder.name }}/</a></td><td>-</td><td></td></tr>
{% endfor %}
{% for file in files %}<tr><td><a href="{{ file.href }}">{{ file.name }}</a></td><td>{{ file.size | filesize }}</td><td>{{ file.modified }}</td></tr>
{% endfor %}
</table>
</body>
</html>
"""

SHARE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta name="robots" content="noindex">
<title>{{ site_name }}{% if data.name %} - {{ data.name }}{% elif data.folderName %} - {{ data.folderName }}{% endif %}</title>
</head>
<body>
<main id="share-root">
{% if data.error %}
<p class="error">{{ data.error }}</p>
{% elif data.needsPassword %}
<form method="post" action="/s/{{ token }}/verify">
<label>Password <input type="password" name="password" autofocus></label>
<button type="submit">Unlock</button>
</form>
{% elif data.isFolder %}
<h1>{{ data.folderName }}</h1>
<ul>
{% for sub in data.subfolders %}<li class="folder">{{ sub }}</li>
{% endfor %}
{% for file in data.files %}<li class="file"><a href="/s/{{ token }}/folder-download?fileId={{ file.id }}">{{ file.name }}</a> ({{ file.size | filesize }})</li>
{% endfor %}
</ul>
{% else %}
<h1>{{ data.name }}</h1>
<p>{{ data.size | filesize }}</p>
<a href="/s/{{ token }}/download">Download</a>
{% endif %}
</main>
<script id="file-data" type="application/json">{{ data | tojson }}</script>
</body>
</html>
"""

env = Environment(
    loader=DictLoader({"listing.html": LISTING_TEMPLATE, "share.html": SHARE_TEMPLATE}),
    autoescape=select_autoescape(default=True, default_for_string=True),
)
env.filters["filesize"] = format_bytes


def render(name: str, **context: Any) -> str:
    return env.get_template(name).render(**context)
