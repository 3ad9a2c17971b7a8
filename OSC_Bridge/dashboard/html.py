"""Status page served by the dashboard server."""

DASHBOARD_HTML = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>paranoid-ableton status</title>
<style>
  body { font-family: ui-monospace, Menlo, Consolas, monospace; background: #111; color: #ddd; margin: 24px; }
  h1 { font-size: 1.3rem; color: #7fb8ff; }
  h2 { font-size: 1rem; color: #7fb8ff; margin-top: 24px; }
  .ok { color: #6c6; } .bad { color: #e66; } .warn { color: #db3; }
  table { border-collapse: collapse; width: 100%; font-size: 0.85rem; }
  td, th { text-align: left; padding: 4px 10px; border-bottom: 1px solid #333; }
  #logs { font-size: 0.8rem; max-height: 320px; overflow-y: auto; white-space: pre-wrap; }
</style>
</head>
<body>
<h1>paranoid-ableton <span id="version"></span></h1>
<div>OSC link: <b id="link">-</b> &middot; uptime <span id="uptime">0</span>s
  &middot; <span id="mode"></span> &middot; <span id="tools"></span> tools</div>
<div id="endpoint"></div>

<h2>Recent tool calls (<span id="total">0</span> total)</h2>
<table><thead><tr><th>time</th><th>tool</th><th>ms</th><th>args</th><th>error</th></tr></thead>
<tbody id="calls"></tbody></table>

<h2>Server log</h2>
<div id="logs"></div>

<script>
function esc(s) {
  return String(s == null ? "" : s).replace(/[&<>"]/g, c => ({"&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;"}[c]));
}
async function refresh() {
  let d;
  try { d = await (await fetch("/api/status")).json(); } catch (e) { return; }
  const c = d.connection || {};
  const link = document.getElementById("link");
  link.textContent = c.state;
  link.className = c.state === "verified" ? "ok" : (c.state === "unverified" ? "warn" : "bad");
  document.getElementById("version").textContent = "v" + d.version;
  document.getElementById("uptime").textContent = Math.round(d.uptime_seconds);
  document.getElementById("tools").textContent = d.tool_count;
  document.getElementById("mode").textContent = d.read_only ? "read-only" : "read-write";
  document.getElementById("endpoint").textContent = c.host
    ? `${c.host} send:${c.send_port} recv:${c.receive_port} pending:${c.pending_requests}` +
      (c.last_error ? ` last error: ${c.last_error}` : "")
    : "";
  document.getElementById("total").textContent = d.total_tool_calls;
  document.getElementById("calls").innerHTML = d.recent_calls.slice().reverse().map(r =>
    `<tr><td>${esc(r.timestamp.slice(11, 19))}</td><td>${esc(r.tool)}</td><td>${r.duration_ms}</td>` +
    `<td>${esc(r.args_summary)}</td><td class="bad">${esc(r.error)}</td></tr>`).join("");
  const logs = document.getElementById("logs");
  logs.innerHTML = d.server_logs.map(l =>
    `<div class="${l.level === "ERROR" ? "bad" : (l.level === "WARNING" ? "warn" : "")}">` +
    `${esc(l.ts)} ${esc(l.level)} ${esc(l.msg)}</div>`).join("");
  logs.scrollTop = logs.scrollHeight;
}
refresh();
setInterval(refresh, 3000);
</script>
</body>
</html>
"""
