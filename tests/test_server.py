import asyncio
import io
from pathlib import Path

from ssisite.build import BuildResult
from ssisite.includes import IncludeMarker
from ssisite.server import DevServer, _ChangeHandler, _ReloadHandler


class DummyEvent:
    def __init__(self, path, is_directory=False):
        self.src_path = path
        self.is_directory = is_directory


def make_handler(directory: Path, path: str):
    handler = _ReloadHandler.__new__(_ReloadHandler)
    handler.path = path
    handler.directory = str(directory)
    handler.command = "GET"
    handler.request_version = "HTTP/1.1"
    handler.server_version = ""
    handler.sys_version = ""
    handler._headers_buffer = []
    handler.headers = {}
    handler.rfile = io.BytesIO(b"")
    handler.wfile = io.BytesIO()

    calls = {"responses": [], "errors": []}
    handler.send_response = lambda code, message=None: calls["responses"].append(code)
    handler.send_header = lambda *args, **kwargs: None
    handler.end_headers = lambda: None
    handler.send_error = lambda code, message=None: calls["errors"].append(code)
    return handler, calls


def fake_result(root, output_dir_override=None, **kwargs):
    return BuildResult(pages=[], output_dir=output_dir_override or root / "public")


def test_dev_server_defaults(tmp_path):
    server = DevServer(tmp_path)
    assert server.output_dir == tmp_path / "public"
    assert server._staging_dir == tmp_path / "public.staging"
    assert server.http_port == 4000
    assert server.ws_port == 4001


def test_dev_server_port_override(tmp_path):
    server = DevServer(tmp_path, http_port=5055, ws_port=None)
    assert server.http_port == 5055
    assert server.ws_port == 5056

    explicit = DevServer(tmp_path, http_port=5055, ws_port=6000)
    assert explicit.ws_port == 6000
    assert f":{explicit.ws_port}" in explicit._reload_script


def test_dev_server_config_ports(tmp_path):
    (tmp_path / "ssisite.yaml").write_text(
        "output_dir: dist\nport: 8000\nws_port: 9000\n", encoding="utf-8"
    )
    server = DevServer(tmp_path)
    assert server.output_dir == tmp_path / "dist"
    assert server.http_port == 8000
    assert server.ws_port == 9000


def test_change_handler_skips_output_and_excluded(tmp_path):
    server = DevServer(tmp_path)
    called = []
    server.rebuild = lambda: called.append(True)
    handler = _ChangeHandler(server)

    handler.on_any_event(DummyEvent(str(server.output_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(server._staging_dir / "index.html")))
    handler.on_any_event(DummyEvent(str(tmp_path / "node_modules" / "x.js")))
    handler.on_any_event(DummyEvent(str(tmp_path / ".git" / "HEAD")))
    handler.on_any_event(DummyEvent(str(tmp_path / "_includes"), is_directory=True))
    assert called == []

    handler.on_any_event(DummyEvent(str(tmp_path / "_includes" / "nav.inc")))
    handler.on_any_event(DummyEvent(str(tmp_path / "index.shtml")))
    assert called == [True, True]


def test_rebuild_builds_into_staging_and_reloads(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    server._post_build_delay = 0.01
    calls = []

    def fake_build(root, **kwargs):
        calls.append(("build", kwargs))
        staging = kwargs["output_dir_override"]
        (staging / "index.html").write_text("new", encoding="utf-8")
        return fake_result(root, **kwargs)

    monkeypatch.setattr("ssisite.server.build_site", fake_build)
    server._broadcast_reload = lambda: calls.append("reload")
    slept = []
    monkeypatch.setattr("ssisite.server.time.sleep", lambda secs: slept.append(secs))

    server.output_dir.mkdir()
    (server.output_dir / "stale.html").write_text("old", encoding="utf-8")
    server._compute_signature = lambda: ("sig",)
    server.rebuild()

    assert calls[0][0] == "build"
    assert calls[0][1]["output_dir_override"] == server._staging_dir
    assert calls[0][1]["site_url"] == "http://localhost:4000"
    assert calls[1] == "reload"
    assert slept == [0.01]
    assert (server.output_dir / "index.html").read_text(encoding="utf-8") == "new"
    assert not (server.output_dir / "stale.html").exists()
    assert not server._staging_dir.exists()


def test_rebuild_prints_unresolved_includes(monkeypatch, tmp_path, capsys):
    server = DevServer(tmp_path)
    server._post_build_delay = 0
    server._broadcast_reload = lambda: None
    server._compute_signature = lambda: ("sig",)

    def fake_build(root, output_dir_override=None, **kwargs):
        return BuildResult(
            pages=[],
            output_dir=output_dir_override,
            unresolved={root / "index.shtml": [IncludeMarker("cyclic", "a.inc")]},
        )

    monkeypatch.setattr("ssisite.server.build_site", fake_build)
    server.rebuild()
    out = capsys.readouterr().out
    assert "Change detected; rebuilding..." in out
    assert "cyclic include a.inc" in out


def test_rebuild_guard(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    calls = []

    def fake_build(root, **kwargs):
        calls.append("built")
        return fake_result(root, **kwargs)

    monkeypatch.setattr("ssisite.server.build_site", fake_build)
    server._broadcast_reload = lambda: calls.append("reloaded")
    server._debounce_seconds = 0.0
    server._post_build_delay = 0

    sigs = [("a",), ("a",), ("b",)]

    def fake_sig():
        return sigs.pop(0) if sigs else ("b",)

    server._compute_signature = fake_sig
    server.rebuild()
    server._rebuilding = True
    server.rebuild()  # skipped due to rebuilding flag
    server._rebuilding = False
    server.rebuild()  # skipped due to same signature
    server.rebuild()  # signature changed -> rebuild
    assert calls == ["built", "reloaded", "built", "reloaded"]


def test_rebuild_reports_strict_build_failure(tmp_path, capsys):
    (tmp_path / "ssisite.yaml").write_text("strict: true\n", encoding="utf-8")
    (tmp_path / "index.shtml").write_text(
        '<!--#include virtual="gone.inc" -->', encoding="utf-8"
    )
    server = DevServer(tmp_path)
    reloads = []
    server._broadcast_reload = lambda: reloads.append("reloaded")
    server._debounce_seconds = 0.0
    server._post_build_delay = 0

    server.rebuild()

    out = capsys.readouterr().out
    assert "Build failed:" in out
    assert "File: index.shtml" in out
    assert "gone.inc" in out
    assert reloads == []
    assert server._rebuilding is False
    assert server._last_signature is None
    assert not server.output_dir.exists()


def test_compute_signature(tmp_path):
    server = DevServer(tmp_path)
    assert server._compute_signature() is None

    (tmp_path / "_includes").mkdir()
    (tmp_path / "_includes" / "nav.inc").write_text("nav", encoding="utf-8")
    (tmp_path / "index.shtml").write_text("hi", encoding="utf-8")
    (tmp_path / "public").mkdir()
    (tmp_path / "public" / "index.html").write_text("built", encoding="utf-8")
    broken = tmp_path / "dangling.txt"
    broken.symlink_to(tmp_path / "nope.txt")

    sig = server._compute_signature()
    names = [entry[0] for entry in sig]
    assert "index.shtml" in names
    assert "_includes/nav.inc" in names
    assert not any(name.startswith("public") for name in names)
    assert "dangling.txt" not in names


def test_start_watcher(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    scheduled = []

    class DummyObserver:
        def schedule(self, handler, path, recursive):
            scheduled.append(("schedule", path, recursive))

        def start(self):
            scheduled.append(("start", True, True))

    monkeypatch.setattr("ssisite.server.Observer", DummyObserver)
    server._start_watcher()
    assert scheduled == [("schedule", str(tmp_path), True), ("start", True, True)]


def test_stop_and_ws_handler(tmp_path):
    server = DevServer(tmp_path)
    server._observer = None
    server.stop()

    class DummyObserver:
        def __init__(self):
            self.calls = []

        def stop(self):
            self.calls.append("stop")

        def join(self):
            self.calls.append("join")

    server._observer = DummyObserver()
    server.stop()
    assert server._observer.calls == ["stop", "join"]

    class DummyWS:
        def __init__(self):
            self.closed = False

        async def wait_closed(self):
            self.closed = True

    ws = DummyWS()
    asyncio.run(server._ws_handler(ws))
    assert ws.closed
    assert ws not in server._ws_clients


def test_async_broadcast_tracks_stale_clients(tmp_path):
    server = DevServer(tmp_path)

    class GoodWS:
        def __init__(self):
            self.messages = []

        async def send(self, msg):
            self.messages.append(msg)

    class BadWS:
        async def send(self, msg):
            raise RuntimeError("fail")

    good = GoodWS()
    bad = BadWS()
    server._ws_clients = {good, bad}
    asyncio.run(server._async_broadcast("hello"))
    assert good.messages == ["hello"]
    assert bad not in server._ws_clients


def test_broadcast_reload_invokes_runner(monkeypatch, tmp_path):
    server = DevServer(tmp_path)
    called = {}

    def fake_runner(coro, loop):
        called["ran"] = True
        new_loop = asyncio.new_event_loop()
        try:
            return new_loop.run_until_complete(coro)
        finally:
            new_loop.close()

    monkeypatch.setattr("ssisite.server.asyncio.run_coroutine_threadsafe", fake_runner)
    server._broadcast_reload()
    assert called["ran"]


def test_ws_start_failure(monkeypatch, tmp_path, capsys):
    server = DevServer(tmp_path, http_port=5055, ws_port=5057)

    async def fake_run():
        raise OSError("bind error")

    monkeypatch.setattr(server, "_run_ws_server", fake_run)
    server._loop = asyncio.new_event_loop()
    server._start_ws()
    out = capsys.readouterr().out
    assert "failed to start" in out


def test_send_head_injects_reload_script(tmp_path):
    (tmp_path / "index.html").write_text("<html><body>Hello</body></html>", encoding="utf-8")
    handler, calls = make_handler(tmp_path, "/index.html")
    assert _ReloadHandler.send_head(handler) is None
    assert calls["responses"] == [200]
    body = handler.wfile.getvalue().decode()
    assert body.startswith("<html><body>Hello")
    assert "reload" in body
    assert body.endswith("</body></html>")


def test_send_head_without_body_tag(tmp_path):
    (tmp_path / "plain.html").write_text("<html>No body here</html>", encoding="utf-8")
    handler, _ = make_handler(tmp_path, "/plain.html")
    _ReloadHandler.send_head(handler)
    body = handler.wfile.getvalue().decode()
    assert body.startswith("<html>No body here</html>")
    assert "reload" in body


def test_send_head_serves_directory_index(tmp_path):
    (tmp_path / "blog").mkdir()
    (tmp_path / "blog" / "index.html").write_text("<body>index</body>", encoding="utf-8")
    handler, calls = make_handler(tmp_path, "/blog/")
    assert _ReloadHandler.send_head(handler) is None
    assert calls["responses"] == [200]
    assert b"index" in handler.wfile.getvalue()


def test_send_head_serves_extensionless_page(tmp_path):
    (tmp_path / "about.html").write_text("<body>about</body>", encoding="utf-8")
    handler, calls = make_handler(tmp_path, "/about")
    assert _ReloadHandler.send_head(handler) is None
    assert calls["responses"] == [200]
    assert b"about" in handler.wfile.getvalue()


def test_send_head_missing_file_triggers_404(tmp_path):
    handler, calls = make_handler(tmp_path, "/missing.html")
    assert _ReloadHandler.send_head(handler) is None
    assert calls["errors"] == [404]


def test_directory_without_index_returns_404(tmp_path):
    (tmp_path / "blog").mkdir()
    (tmp_path / "blog" / "note.txt").write_text("hi", encoding="utf-8")
    handler, calls = make_handler(tmp_path, "/blog/")
    assert _ReloadHandler.send_head(handler) is None
    assert calls["errors"] == [404]


def test_serve_404_uses_custom_page(tmp_path):
    (tmp_path / "404.html").write_text("<html><body>oops</body></html>", encoding="utf-8")
    handler, calls = make_handler(tmp_path, "/missing")
    assert _ReloadHandler.send_head(handler) is None
    assert calls["responses"] == [404]
    assert calls["errors"] == []
    body = handler.wfile.getvalue().decode()
    assert "oops" in body
    assert "reload" in body


def test_send_head_falls_back_for_static_files(tmp_path):
    (tmp_path / "style.css").write_text("body{}", encoding="utf-8")
    handler, _ = make_handler(tmp_path, "/style.css")
    result = _ReloadHandler.send_head(handler)
    assert result is not None
    result.close()


def test_prepare_staging_dir_removes_existing(tmp_path):
    server = DevServer(tmp_path)
    staging = server._staging_dir
    staging.mkdir(parents=True)
    (staging / "old_file.html").write_text("old content", encoding="utf-8")

    result = server._prepare_staging_dir()
    assert result == staging
    assert staging.exists()
    assert not (staging / "old_file.html").exists()
