# report/html_report.py
from pathlib import Path
from jinja2 import Template

_HTML = """<!doctype html>
<meta charset="utf-8">
<title>scenediff report</title>
<style>
  body{font:14px/1.45 system-ui,Segoe UI,Arial;margin:24px}
  header{margin-bottom:16px}
  table{border-collapse:collapse;width:100%;margin-top:8px}
  th,td{border:1px solid #e5e5e5;padding:8px;text-align:left;vertical-align:top}
  th{background:#fafafa}
  code{background:#f6f8fa;padding:2px 6px;border-radius:6px}
  .create{color:#0a7d00}.update{color:#8a5a00}.destroy{color:#b00020}
</style>
<header>
  <h1 style="margin:0">USD Scene Diff</h1>
  <div>Stage: <code>{{ stage }}</code></div>
  <div>Time codes: <b>{{ time_code_range[0] }}</b> to <b>{{ time_code_range[1] }}</b>, {{ samples|length }} samples</div>
  <div>Operations: <b>{{ total }}</b></div>
</header>

{% for s in samples %}
<h2>t = {{ s.time_code }}</h2>
{% if not s.operations %}
  <p>No changes.</p>
{% else %}
<table>
  <tr><th>Kind</th><th>create</th><th>update</th><th>destroy</th></tr>
  {% for kind, ops in s.counts.items() %}
    <tr>
      <td>{{ kind }}</td>
      <td>{{ ops.get('create', 0) }}</td>
      <td>{{ ops.get('update', 0) }}</td>
      <td>{{ ops.get('destroy', 0) }}</td>
    </tr>
  {% endfor %}
</table>
<table>
  <tr><th>Op</th><th>Kind</th><th>Path</th><th>Fields</th></tr>
  {% for op in s.operations %}
    <tr>
      <td class="{{ op.op }}">{{ op.op }}</td>
      <td>{{ op.kind }}</td>
      <td><code>{{ op.path }}</code></td>
      <td>{{ (op.attrs or {}).keys()|sort|join(', ') }}</td>
    </tr>
  {% endfor %}
</table>
{% endif %}
{% endfor %}
"""


def _counts(operations):
    out = {}
    for op in operations:
        kinds = out.setdefault(op["kind"], {})
        kinds[op["op"]] = kinds.get(op["op"], 0) + 1
    return out


def write_html(out_path: str, payload: dict) -> str:
    """payload: {"stage": str, "samples": [{"time_code", "time_code_range", "operations"}]}"""
    samples = [dict(s, counts=_counts(s["operations"])) for s in payload["samples"]]
    if samples:
        time_code_range = samples[0].get("time_code_range") or [samples[0]["time_code"]] * 2
    else:
        time_code_range = [0.0, 0.0]

    html = Template(_HTML).render(
        stage           = payload["stage"],
        samples         = samples,
        time_code_range = time_code_range,
        total           = sum(len(s["operations"]) for s in samples),
    )
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(html, encoding="utf-8")
    return str(out)
