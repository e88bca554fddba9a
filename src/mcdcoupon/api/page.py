"""Single-page HTML shell for the browser front-end."""

from __future__ import annotations

_INDEX_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>mcd-coupon</title>
<style>
body { font-family: system-ui, sans-serif; max-width: 880px; margin: 2em auto; padding: 0 1em; }
button { margin: 0 .4em .4em 0; padding: .4em 1em; }
.coupon { border: 1px solid #ddd; border-radius: 6px; padding: .6em 1em; margin: .4em 0; }
.hidden { display: none; }
pre { background: #f6f6f6; padding: .8em; max-height: 16em; overflow: auto; }
</style>
</head>
<body>
<h1>mcd-coupon</h1>
<section id="token-view" class="__TOKEN_VIEW_CLASS__">
  <p>Paste the bearer token for your account.</p>
  <input id="token" type="password" size="60">
  <button onclick="saveToken()">Save</button>
</section>
<section id="main-view" class="__MAIN_VIEW_CLASS__">
  <button onclick="call('POST', '/api/claim')">Claim all</button>
  <button onclick="call('GET', '/api/available')">Available</button>
  <button onclick="call('GET', '/api/coupons')">My coupons</button>
  <button onclick="call('GET', '/api/time')">Server time</button>
  <button onclick="resetToken()">Reset token</button>
  <p id="message"></p>
  <div id="coupons"></div>
</section>
<h3>Log</h3>
<pre id="logs"></pre>
<script>
async function request(method, url, body) {
  const opts = {method: method, headers: {"Content-Type": "application/json"}};
  if (body !== undefined) { opts.body = JSON.stringify(body); }
  const resp = await fetch(url, opts);
  return resp.json();
}
function show(hasToken) {
  document.getElementById("token-view").className = hasToken ? "hidden" : "";
  document.getElementById("main-view").className = hasToken ? "" : "hidden";
}
function renderCoupons(coupons) {
  const box = document.getElementById("coupons");
  box.innerHTML = "";
  (coupons || []).forEach(function (c) {
    const div = document.createElement("div");
    div.className = "coupon";
    div.textContent = c.title + (c.discount ? " / " + c.discount : "") +
      (c.valid_until ? " / until " + c.valid_until : "");
    box.appendChild(div);
  });
}
async function refreshLogs() {
  const data = await request("GET", "/api/logs");
  document.getElementById("logs").textContent = (data.logs || []).join("\\n");
}
async function call(method, url) {
  const data = await request(method, url);
  document.getElementById("message").textContent = data.message;
  if (data.coupons) { renderCoupons(data.coupons); }
  if (data.outcomes) {
    renderCoupons(data.outcomes.map(function (o) { return {title: o.title + " [" + o.status + "]"}; }));
  }
  refreshLogs();
}
async function saveToken() {
  const data = await request("POST", "/api/token", {token: document.getElementById("token").value});
  document.getElementById("message").textContent = data.message;
  if (data.success) { show(true); call("GET", "/api/coupons"); }
  refreshLogs();
}
async function resetToken() {
  await request("POST", "/api/reset");
  show(false);
  renderCoupons([]);
  refreshLogs();
}
refreshLogs();
</script>
</body>
</html>
"""


def render_index(has_token: bool) -> str:
    return (
        _INDEX_TEMPLATE
        .replace("__TOKEN_VIEW_CLASS__", "hidden" if has_token else "")
        .replace("__MAIN_VIEW_CLASS__", "" if has_token else "hidden")
    )
