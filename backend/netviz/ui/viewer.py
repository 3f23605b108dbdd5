"""Render the single-page network viewer served at ``/``."""

from __future__ import annotations

import html
import json
from typing import Mapping


def _escape_script_value(value: str) -> str:
    """Escape a JSON string so it is safe for inline ``<script>`` embedding.

    Args:
        value: Raw JSON string produced by ``json.dumps``.

    Returns:
        The escaped string that will not prematurely close the surrounding script
        tag and preserves line separator characters.
    """

    return (
        value.replace("</", "<\\/")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def render_viewer_html(settings: Mapping[str, object], *, title: str = "Network Visualization") -> str:
    """Render the interactive viewer page.

    The page uploads a table, lets the user pick categories, polls the
    positioned graph, draws it on a canvas using the server camera and
    forwards pointer events back so dragging and navigation run server-side.
    """

    payload = _escape_script_value(json.dumps(dict(settings), separators=(",", ":"), ensure_ascii=False))
    html_template = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta http-equiv="Content-Security-Policy" content="default-src 'none'; script-src 'unsafe-inline'; style-src 'unsafe-inline'; img-src data:; connect-src 'self';" />
    <title>{title}</title>
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <style>
      body {{
        margin: 0;
        font-family: system-ui, -apple-system, "Segoe UI", sans-serif;
        color: #0f172a;
        background: #f8fafc;
      }}
      header {{
        padding: 1rem 1.5rem;
        background: #ffffff;
        border-bottom: 1px solid rgba(148, 163, 184, 0.25);
        display: flex;
        flex-wrap: wrap;
        gap: 0.75rem;
        align-items: center;
      }}
      header h1 {{
        margin: 0 1rem 0 0;
        font-size: 1.3rem;
      }}
      #categories label {{
        margin-right: 0.6rem;
      }}
      main {{
        display: flex;
        gap: 1rem;
        padding: 1rem 1.5rem;
      }}
      #graph {{
        background: #ffffff;
        border: 1px solid rgba(15, 23, 42, 0.08);
        border-radius: 0.75rem;
      }}
      #snapshot {{
        min-width: 220px;
        background: #ffffff99;
        padding: 1rem;
        border-radius: 5px;
        box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1);
      }}
      #snapshot h4 {{
        margin: 0.6rem 0 0.3rem;
      }}
      #status {{
        color: rgba(15, 23, 42, 0.65);
      }}
    </style>
  </head>
  <body>
    <header>
      <h1>{title}</h1>
      <input type="file" id="table-file" accept=".tsv,.txt" />
      <span id="categories"></span>
      <button id="plot" disabled>Plot</button>
      <button id="forceatlas2" disabled>Start layout</button>
      <button id="random" disabled>Random</button>
      <button id="circular" disabled>Circular</button>
      <span id="status"></span>
    </header>
    <main>
      <canvas id="graph"></canvas>
      <form id="snapshot">
        <h4>Layers to save</h4>
        <div id="layers"></div>
        <h4>Dimensions</h4>
        <input type="number" id="snap-width" placeholder="Viewport width" min="1" />
        <input type="number" id="snap-height" placeholder="Viewport height" min="1" />
        <h4>Additional options</h4>
        <input type="text" id="snap-name" />
        <select id="snap-format"><option value="png">PNG</option><option value="jpeg">JPEG</option></select>
        <input type="color" id="snap-background" />
        <label><input type="checkbox" id="snap-reset" /> Reset camera</label>
        <p><button type="submit" disabled id="snap-save">Save snapshot</button></p>
      </form>
    </main>
    <script>
      const SETTINGS = {payload};
      const canvas = document.getElementById("graph");
      const ctx = canvas.getContext("2d");
      const statusEl = document.getElementById("status");
      const faButton = document.getElementById("forceatlas2");
      canvas.width = SETTINGS.viewport.width;
      canvas.height = SETTINGS.viewport.height;
      let view = null;
      let pointerDown = false;

      function setStatus(text) {{
        statusEl.textContent = text;
      }}

      async function api(method, path, body) {{
        const response = await fetch(path, {{
          method,
          headers: {{ "Content-Type": "application/json" }},
          body: body === undefined ? undefined : JSON.stringify(body),
        }});
        const data = await response.json().catch(() => ({{}}));
        if (!response.ok) {{
          throw new Error(data.detail || response.statusText);
        }}
        return data;
      }}

      function toScreen(x, y) {{
        const camera = view.camera;
        return [
          (x - camera.x) / camera.ratio + canvas.width / 2,
          (camera.y - y) / camera.ratio + canvas.height / 2,
        ];
      }}

      function nodeAt(sx, sy) {{
        if (!view) return null;
        for (let index = view.nodes.length - 1; index >= 0; index -= 1) {{
          const node = view.nodes[index];
          if (node.hidden) continue;
          const [nx, ny] = toScreen(node.x, node.y);
          const radius = node.size || 1;
          if ((nx - sx) ** 2 + (ny - sy) ** 2 <= radius * radius) return node;
        }}
        return null;
      }}

      function draw() {{
        ctx.clearRect(0, 0, canvas.width, canvas.height);
        if (!view) return;
        const byId = new Map(view.nodes.map((node) => [node.id, node]));
        ctx.strokeStyle = "#cccccc";
        ctx.lineWidth = 1;
        for (const edge of view.edges) {{
          const [x0, y0] = toScreen(byId.get(edge.source).x, byId.get(edge.source).y);
          const [x1, y1] = toScreen(byId.get(edge.target).x, byId.get(edge.target).y);
          ctx.beginPath();
          ctx.moveTo(x0, y0);
          ctx.lineTo(x1, y1);
          ctx.stroke();
        }}
        ctx.font = "11px system-ui";
        for (const node of view.nodes) {{
          if (node.hidden) continue;
          const [x, y] = toScreen(node.x, node.y);
          ctx.beginPath();
          ctx.arc(x, y, node.size || 1, 0, Math.PI * 2);
          ctx.fillStyle = node.color || "#000000";
          ctx.fill();
          if (node.highlighted) {{
            ctx.strokeStyle = "#0f172a";
            ctx.stroke();
          }}
          ctx.fillStyle = "#000000";
          ctx.fillText(node.label, x + (node.size || 1) + 2, y + 4);
        }}
        faButton.textContent = view.layout.force_directed_running ? "Stop layout" : "Start layout";
      }}

      async function refresh() {{
        try {{
          view = await api("GET", "/api/graph");
          draw();
        }} catch (error) {{
          view = null;
        }}
      }}

      let pendingEvents = Promise.resolve();

      function sendEvent(type, event, node) {{
        const rect = canvas.getBoundingClientRect();
        const body = {{
          type,
          screen_x: event.clientX - rect.left,
          screen_y: event.clientY - rect.top,
          node_id: node ? node.id : null,
        }};
        // events must reach the server in gesture order
        pendingEvents = pendingEvents
          .then(() => api("POST", "/api/surface/events", body))
          .then((result) => {{
            for (const url of result.open_urls || []) {{
              window.open(url, "_blank");
            }}
          }})
          .catch((error) => setStatus(error.message));
      }}

      function positionOf(event) {{
        const rect = canvas.getBoundingClientRect();
        return [event.clientX - rect.left, event.clientY - rect.top];
      }}

      canvas.addEventListener("mousedown", (event) => {{
        const node = nodeAt(...positionOf(event));
        if (!node) return;
        pointerDown = true;
        sendEvent("nodeDown", event, node);
      }});
      canvas.addEventListener("mousemove", (event) => {{
        if (pointerDown) sendEvent("pointerMove", event, null);
      }});
      window.addEventListener("mouseup", (event) => {{
        if (!pointerDown) return;
        pointerDown = false;
        sendEvent("nodeUp", event, null);
      }});
      canvas.addEventListener("click", (event) => {{
        const node = nodeAt(...positionOf(event));
        if (node) sendEvent("nodeClick", event, node);
      }});
      canvas.addEventListener("dblclick", (event) => {{
        const node = nodeAt(...positionOf(event));
        if (node) sendEvent("nodeDoubleClick", event, node);
      }});

      document.getElementById("table-file").addEventListener("change", (event) => {{
        const file = event.target.files[0];
        if (!file) return;
        const reader = new FileReader();
        reader.onload = async () => {{
          try {{
            const table = await api("POST", "/api/table", {{ text: reader.result }});
            const container = document.getElementById("categories");
            container.innerHTML = "";
            for (const header of table.headers) {{
              const label = document.createElement("label");
              const box = document.createElement("input");
              box.type = "checkbox";
              box.value = header;
              label.appendChild(box);
              label.appendChild(document.createTextNode(" " + header));
              container.appendChild(label);
            }}
            document.getElementById("plot").disabled = false;
            view = null;
            draw();
            setStatus(table.row_count + " rows loaded");
          }} catch (error) {{
            setStatus(error.message);
          }}
        }};
        reader.readAsText(file);
      }});

      document.getElementById("plot").addEventListener("click", async () => {{
        const categories = Array.from(
          document.querySelectorAll("#categories input:checked"),
          (box) => box.value,
        );
        try {{
          const result = await api("POST", "/api/graph", {{ categories }});
          if (!result.plotted) return;
          for (const id of ["forceatlas2", "random", "circular", "snap-save"]) {{
            document.getElementById(id).disabled = false;
          }}
          setStatus(result.node_count + " nodes, " + result.edge_count + " edges");
          await refresh();
        }} catch (error) {{
          setStatus(error.message);
        }}
      }});

      faButton.addEventListener("click", () => api("POST", "/api/layout/forceatlas2/toggle").then(refresh));
      document.getElementById("random").addEventListener("click", () => api("POST", "/api/layout/random"));
      document.getElementById("circular").addEventListener("click", () => api("POST", "/api/layout/circular"));

      const layersEl = document.getElementById("layers");
      for (const layer of SETTINGS.export.layers_available) {{
        const label = document.createElement("label");
        const box = document.createElement("input");
        box.type = "checkbox";
        box.value = layer;
        box.checked = SETTINGS.export.layers.includes(layer);
        label.appendChild(box);
        label.appendChild(document.createTextNode(" " + layer));
        layersEl.appendChild(label);
        layersEl.appendChild(document.createElement("br"));
      }}
      document.getElementById("snap-name").value = SETTINGS.export.file_name;
      document.getElementById("snap-format").value = SETTINGS.export.format;
      document.getElementById("snap-background").value = SETTINGS.export.background_color;
      document.getElementById("snapshot").addEventListener("submit", async (event) => {{
        event.preventDefault();
        const width = Number(document.getElementById("snap-width").value) || null;
        const height = Number(document.getElementById("snap-height").value) || null;
        try {{
          const result = await api("POST", "/api/export/snapshot", {{
            file_name: document.getElementById("snap-name").value,
            format: document.getElementById("snap-format").value,
            background_color: document.getElementById("snap-background").value,
            width,
            height,
            reset_camera: document.getElementById("snap-reset").checked,
            layers: Array.from(layersEl.querySelectorAll("input:checked"), (box) => box.value),
          }});
          setStatus("Saved " + result.path);
        }} catch (error) {{
          setStatus(error.message);
        }}
      }});

      setInterval(() => {{
        if (!document.getElementById("plot").disabled) refresh();
      }}, SETTINGS.poll_interval_ms);
    </script>
  </body>
</html>
"""
    return html_template.format(title=html.escape(title), payload=payload)
