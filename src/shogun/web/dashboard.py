"""Dashboard HTML with inline CSS and vanilla JS."""


def get_dashboard_html() -> str:
    return """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Shogun</title>
<style>
  :root {
    --bg: #0d1117; --surface: #161b22; --border: #30363d;
    --text: #e6edf3; --text-muted: #8b949e; --text-dim: #6e7681;
    --assigned: #8b949e; --in_progress: #58a6ff; --completed: #3fb950; --blocked: #d29922; --failed: #f85149;
  }
  * { margin: 0; padding: 0; box-sizing: border-box; }
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Helvetica, Arial, sans-serif;
         background: var(--bg); color: var(--text); line-height: 1.5; }
  .container { max-width: 960px; margin: 0 auto; padding: 24px 16px; }

  header { display: flex; justify-content: space-between; align-items: center;
           padding-bottom: 16px; border-bottom: 1px solid var(--border); margin-bottom: 24px; }
  header h1 { font-size: 20px; font-weight: 600; }
  header button { background: var(--surface); color: var(--text-muted); border: 1px solid var(--border);
                  padding: 4px 10px; border-radius: 4px; cursor: pointer; font-size: 12px; }
  header button:hover { color: var(--text); border-color: var(--text-muted); }

  section { margin-bottom: 24px; }
  section h2 { font-size: 14px; color: var(--text-muted); text-transform: uppercase;
               letter-spacing: 0.5px; margin-bottom: 10px; }

  .card { background: var(--surface); border: 1px solid var(--border);
          border-radius: 8px; padding: 12px 16px; margin-bottom: 4px; }
  .meta { font-size: 13px; color: var(--text-muted); }
  .meta code, .card code { background: var(--bg); padding: 1px 5px; border-radius: 3px; font-size: 12px; }

  .summary { display: flex; gap: 16px; align-items: center; flex-wrap: wrap; margin-top: 8px; }
  .progress-bar { flex: 1; min-width: 120px; height: 8px; background: var(--bg);
                  border-radius: 4px; overflow: hidden; border: 1px solid var(--border); }
  .progress-bar .fill { height: 100%; background: var(--completed); transition: width 0.3s; }

  .row { display: flex; align-items: center; gap: 10px; }
  .badge { display: inline-block; padding: 2px 10px; border-radius: 12px; font-size: 11px;
           font-weight: 600; text-transform: uppercase; letter-spacing: 0.5px; }
  .badge.assigned, .badge.idle { background: rgba(139,148,158,0.15); color: var(--assigned); }
  .badge.in_progress, .badge.working { background: rgba(88,166,255,0.15); color: var(--in_progress); }
  .badge.completed, .badge.done { background: rgba(63,185,80,0.15); color: var(--completed); }
  .badge.blocked { background: rgba(210,153,34,0.15); color: var(--blocked); }
  .badge.failed, .badge.high { background: rgba(248,81,73,0.15); color: var(--failed); }
  .badge.medium { background: rgba(210,153,34,0.15); color: var(--blocked); }
  .badge.low { background: rgba(88,166,255,0.15); color: var(--in_progress); }
  .player { font-weight: 600; font-size: 14px; min-width: 80px; }
  .task-id { font-size: 12px; color: var(--text-dim); font-family: monospace; }

  .grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(200px, 1fr)); gap: 8px; }
  .metric .value { font-size: 22px; font-weight: 600; }
  .metric .label { font-size: 12px; color: var(--text-dim); }

  .empty { text-align: center; padding: 32px; color: var(--text-muted); }
</style>
</head>
<body>
<div class="container">
  <header>
    <h1>Shogun</h1>
    <button onclick="loadDashboard()">Refresh</button>
  </header>
  <section><h2>Command</h2><div id="status"></div></section>
  <section><h2>Players</h2><div id="players"></div></section>
  <section><h2>Metrics</h2><div id="metrics" class="grid"></div></section>
  <section><h2>Anomalies</h2><div id="anomalies"></div></section>
</div>

<script>
let refreshTimer = null;

async function fetchJSON(path) {
  const res = await fetch(path);
  if (!res.ok) return null;
  return res.json();
}

async function loadDashboard() {
  const [status, tasks, summary, anomalies] = await Promise.all([
    fetchJSON('/api/status'),
    fetchJSON('/api/tasks'),
    fetchJSON('/api/metrics/summary'),
    fetchJSON('/api/metrics/anomalies'),
  ]);
  document.getElementById('status').innerHTML = renderStatus(status);
  document.getElementById('players').innerHTML = renderPlayers(tasks);
  document.getElementById('metrics').innerHTML = renderMetrics(summary);
  document.getElementById('anomalies').innerHTML = renderAnomalies(anomalies);
}

function renderStatus(status) {
  if (!status || !status.command_id) {
    return '<div class="empty">No command yet. Start one with <code>shogun director run</code></div>';
  }
  let html = `<div class="card">
    <div class="row">
      <span class="badge ${esc(status.status)}">${esc(status.status)}</span>
      <span class="task-id">${esc(status.command_id)}</span>
    </div>
    <div class="summary meta">
      <span>${status.completed}/${status.total} completed</span>
      <span>${status.in_progress} in progress</span>
      <span>${status.failed} failed</span>
      <div class="progress-bar"><div class="fill" style="width:${status.progress_pct}%"></div></div>
      <span>${status.progress_pct}%</span>
    </div>
    <div class="meta">Updated: ${new Date(status.updated_at).toLocaleString()}</div>
  </div>`;
  for (const b of status.blockers || []) {
    html += `<div class="card"><div class="row">
      <span class="badge blocked">blocked</span>
      <span class="player">${esc(b.player_id)}</span>
      <span class="task-id">${esc(b.task_id)}</span>
    </div><div class="meta">${esc(b.reason)}</div></div>`;
  }
  return html;
}

function renderPlayers(players) {
  if (!players || players.length === 0) return '<div class="empty">No players configured</div>';
  return players.map(p => {
    const task = p.task;
    let details = '';
    if (task) {
      details = `<div class="meta">${esc(task.description)}</div>`;
      if (task.output_location) details += `<div class="meta">Output: <code>${esc(task.output_location)}</code></div>`;
      if (task.completed_at) details += `<div class="meta">Completed: ${new Date(task.completed_at).toLocaleString()}</div>`;
    } else if (p.error) {
      details = `<div class="meta">${esc(p.error)}</div>`;
    }
    return `<div class="card">
      <div class="row">
        <span class="player">${esc(p.player_id)}</span>
        <span class="badge ${esc(p.state || 'idle')}">${esc(p.state || 'idle')}</span>
        ${task ? `<span class="badge ${esc(task.status)}">${esc(task.status)}</span>
        <span class="task-id">${esc(task.id)}</span>` : ''}
      </div>
      ${details}
    </div>`;
  }).join('');
}

function metric(label, value) {
  return `<div class="card metric"><div class="value">${esc(String(value))}</div><div class="label">${esc(label)}</div></div>`;
}

function renderMetrics(m) {
  if (!m) return '<div class="empty">No metrics</div>';
  const cov = m.coverage ? `${m.coverage.lines.toFixed(1)}%` : 'n/a';
  return [
    metric('Line coverage', cov),
    metric('Avg task time (min)', (m.average_task_ms / 60000).toFixed(1)),
    metric('Avg PR size (lines)', Math.round(m.pr_size.average)),
    metric('PRs over 200 lines', m.pr_size.over_threshold),
    metric('Unresolved blockers', m.blockers.unresolved),
    metric('Utilization', `${(m.utilization.utilization_rate * 100).toFixed(1)}%`),
  ].join('');
}

function renderAnomalies(data) {
  if (!data || data.anomalies.length === 0) return '<div class="empty">No anomalies detected</div>';
  let html = data.anomalies.map(a => `<div class="card"><div class="row">
    <span class="badge ${esc(a.severity)}">${esc(a.severity)}</span>
    <span>${esc(a.message)}</span>
  </div></div>`).join('');
  html += '<div class="card meta">' + data.recommendations.map(r => `<div>- ${esc(r)}</div>`).join('') + '</div>';
  return html;
}

function esc(s) {
  if (!s) return '';
  const d = document.createElement('div');
  d.textContent = s;
  return d.innerHTML;
}

// Auto-refresh every 30s
function startAutoRefresh() {
  if (refreshTimer) clearInterval(refreshTimer);
  refreshTimer = setInterval(loadDashboard, 30000);
}

loadDashboard();
startAutoRefresh();
</script>
</body>
</html>"""
