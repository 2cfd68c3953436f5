import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from toxictl.cli import (
    NONE,
    CommandError,
    build_parser,
    enabled_text,
    format_width,
    main,
    parse_attributes,
    parse_toxicity,
    sorted_attributes,
)


class _State:
    def __init__(self):
        self.proxies = {}
        self.requests = []
        self.bodies = []
        self.url = ""


def _make_handler(state):
    class Handler(BaseHTTPRequestHandler):
        def log_message(self, *args):
            pass

        def _reply(self, status, payload=None):
            body = b"" if payload is None else json.dumps(payload).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def _error(self, message, status):
            self._reply(status, {"error": message, "status": status})

        def _route(self, method):
            state.requests.append((method, self.path, self.headers.get("User-Agent")))
            length = int(self.headers.get("Content-Length") or 0)
            raw = self.rfile.read(length) if length else b""
            body = json.loads(raw) if raw else None
            state.bodies.append(body)
            parts = [p for p in self.path.split("/") if p]

            if parts == ["reset"]:
                return self._reply(204)
            if parts == ["proxies"]:
                if method == "GET":
                    return self._reply(200, state.proxies)
                if not body.get("name"):
                    return self._error("missing required field: name", 400)
                if body["name"] in state.proxies:
                    return self._error("proxy already exists", 409)
                proxy = {
                    "name": body["name"],
                    "listen": body["listen"],
                    "upstream": body["upstream"],
                    "enabled": body["enabled"],
                    "toxics": [],
                }
                state.proxies[body["name"]] = proxy
                return self._reply(201, proxy)

            proxy = state.proxies.get(parts[1]) if len(parts) > 1 else None
            if proxy is None:
                return self._error("proxy not found", 404)
            if len(parts) == 2:
                if method == "GET":
                    return self._reply(200, proxy)
                if method == "DELETE":
                    del state.proxies[parts[1]]
                    return self._reply(204)
                for key in ("listen", "upstream", "enabled"):
                    proxy[key] = body[key]
                return self._reply(200, proxy)
            if len(parts) == 3:
                if method == "GET":
                    return self._reply(200, proxy["toxics"])
                stream = body.get("stream") or "downstream"
                name = body.get("name") or f"{body['type']}_{stream}"
                if any(t["name"] == name for t in proxy["toxics"]):
                    return self._error("toxic already exists", 409)
                toxic = {
                    "name": name,
                    "type": body["type"],
                    "stream": stream,
                    "toxicity": body["toxicity"],
                    "attributes": body.get("attributes") or {},
                }
                proxy["toxics"].append(toxic)
                return self._reply(200, toxic)
            toxic = next((t for t in proxy["toxics"] if t["name"] == parts[3]), None)
            if toxic is None:
                return self._error("toxic not found", 404)
            if method == "DELETE":
                proxy["toxics"].remove(toxic)
                return self._reply(204)
            if "toxicity" in body:
                toxic["toxicity"] = body["toxicity"]
            toxic["attributes"].update(body.get("attributes") or {})
            return self._reply(200, toxic)

        def do_GET(self):
            self._route("GET")

        def do_POST(self):
            self._route("POST")

        def do_PATCH(self):
            self._route("PATCH")

        def do_DELETE(self):
            self._route("DELETE")

    return Handler


@pytest.fixture
def server():
    state = _State()
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(state))
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    state.url = f"http://127.0.0.1:{httpd.server_address[1]}"
    yield state
    httpd.shutdown()
    httpd.server_close()


def _run(server, *args):
    return main(["--host", server.url, *args])


def test_parse_attributes_numbers_and_strings():
    result = parse_attributes(["latency=100", "mode=fast", "broken", "jitter=2.5"])
    assert result == {"latency": 100.0, "mode": "fast", "jitter": 2.5}


def test_parse_attributes_splits_on_first_equals():
    assert parse_attributes(["key=a=b"]) == {"key": "a=b"}


def test_parse_attributes_empty():
    assert parse_attributes([]) == {}
    assert parse_attributes(None) == {}


def test_parse_toxicity_default_and_values():
    assert parse_toxicity("", 1.0) == 1.0
    assert parse_toxicity(None, 0.25) == 0.25
    assert parse_toxicity("0.5", 1.0) == 0.5
    assert parse_toxicity("0", 1.0) == 0.0


@pytest.mark.parametrize("value", ["2", "-0.1", "abc"])
def test_parse_toxicity_rejects(value):
    with pytest.raises(CommandError) as info:
        parse_toxicity(value, 1.0)
    assert info.value.message == "toxicity should be a float between 0 and 1."
    assert info.value.exit_code == 1


def test_enabled_text():
    assert enabled_text(True) == "enabled"
    assert enabled_text(False) == "disabled"


def test_sorted_attributes_orders_by_key():
    assert sorted_attributes({"b": 1, "a": 2, "c": 3}) == [("a", 2), ("b", 1), ("c", 3)]
    assert sorted_attributes(None) == []


def test_format_width_without_tty_has_no_color_or_padding():
    assert format_width("\x1b[34m", "name", 3, False) == "name\t"


def test_format_width_tty_pads_short_text():
    assert format_width("\x1b[34m", "abc", 3, True) == "\x1b[34mabc" + NONE + "\t\t\t"


def test_format_width_tty_never_negative_padding():
    text = "x" * 40
    result = format_width("", text, 2, True)
    assert result == text + NONE + "\t"


def test_build_parser_aliases():
    parser = build_parser()
    args = parser.parse_args(["--host", "localhost:1", "ls"])
    assert args.host == "localhost:1"
    assert args.command == "ls"
    toxic = parser.parse_args(["t", "a", "-t", "latency", "-u", "p"])
    assert toxic.type == "latency"
    assert toxic.upstream is True
    assert toxic.args == ["p"]


def test_host_from_environment(monkeypatch):
    monkeypatch.setenv("TOXIPROXY_URL", "http://127.0.0.1:9999")
    args = build_parser().parse_args(["list"])
    assert args.host == "http://127.0.0.1:9999"


def test_version_flag(capsys):
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == "toxiproxy-cli version git"


def test_create_requires_name(server, capsys):
    assert _run(server, "create") == 1
    assert "Proxy name is required as the first argument." in capsys.readouterr().err
    assert server.requests == []


def test_create_requires_listen(server, capsys):
    assert _run(server, "create", "-u", "localhost:2", "foo") == 1
    assert "Required argument 'listen' was empty." in capsys.readouterr().err


def test_create_and_list(server, capsys):
    assert _run(server, "create", "-l", "localhost:1", "-u", "localhost:2", "bbb") == 0
    assert _run(server, "create", "--listen", "localhost:3", "--upstream", "localhost:4", "aaa") == 0
    out = capsys.readouterr().out
    assert "Created new proxy bbb" in out
    assert "Created new proxy aaa" in out

    assert _run(server, "list") == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "aaa\tlocalhost:3\tlocalhost:4\tenabled\t0",
        "bbb\tlocalhost:1\tlocalhost:2\tenabled\t0",
    ]


def test_user_agent_sent(server):
    assert _run(server, "list") == 0
    assert server.requests[0][2].startswith("toxiproxy-cli/git (")


def test_create_conflict_reports_error(server, capsys):
    _run(server, "create", "-l", "a:1", "-u", "b:2", "foo")
    capsys.readouterr()
    assert _run(server, "create", "-l", "a:1", "-u", "b:2", "foo") == 1
    err = capsys.readouterr().err
    assert "Failed to create proxy: Create: HTTP 409: proxy already exists" in err


def test_toggle(server, capsys):
    _run(server, "create", "-l", "a:1", "-u", "b:2", "foo")
    capsys.readouterr()
    assert _run(server, "toggle", "foo") == 0
    assert capsys.readouterr().out == "Proxy foo is now disabled\n"
    assert server.proxies["foo"]["enabled"] is False
    assert _run(server, "tog", "foo") == 0
    assert capsys.readouterr().out == "Proxy foo is now enabled\n"


def test_delete(server, capsys):
    _run(server, "create", "-l", "a:1", "-u", "b:2", "foo")
    assert _run(server, "delete", "foo") == 0
    assert "Deleted proxy foo" in capsys.readouterr().out
    assert server.proxies == {}


def test_delete_missing_proxy(server, capsys):
    assert _run(server, "d", "ghost") == 1
    err = capsys.readouterr().err
    assert err.startswith("Failed to retrieve proxy ghost: HTTP 404: proxy not found")


def test_toxic_add_both_streams_rejected(server, capsys):
    assert _run(server, "toxic", "add", "-t", "latency", "-u", "-d", "foo") == 1
    assert "Only one should be specified: upstream or downstream." in capsys.readouterr().err


def test_toxic_add_requires_type(server, capsys):
    assert _run(server, "toxic", "add", "foo") == 1
    assert "Required argument 'type' was empty." in capsys.readouterr().err


def test_toxic_add_requires_proxy(server, capsys):
    assert _run(server, "toxic", "add", "-t", "latency") == 1
    assert "Proxy name is missing." in capsys.readouterr().err


def test_toxic_add_bad_toxicity(server, capsys):
    assert _run(server, "toxic", "add", "-t", "latency", "--tox", "2", "foo") == 1
    assert "toxicity should be a float between 0 and 1." in capsys.readouterr().err


def test_toxic_add_and_inspect(server, capsys):
    _run(server, "create", "-l", "a:1", "-u", "b:2", "foo")
    capsys.readouterr()
    code = _run(
        server, "toxic", "add", "-t", "latency", "-a", "latency=100", "-a", "jitter=10", "foo"
    )
    assert code == 0
    assert (
        capsys.readouterr().out
        == "Added downstream latency toxic 'latency_downstream' on proxy 'foo'\n"
    )
    toxic = server.proxies["foo"]["toxics"][0]
    assert toxic["attributes"] == {"latency": 100.0, "jitter": 10.0}
    assert toxic["toxicity"] == 1.0

    assert _run(server, "inspect", "foo") == 0
    assert capsys.readouterr().out == (
        "latency_downstream\ttype=latency\tstream=downstream\ttoxicity=1.00\t"
        "attributes=[\tjitter=10\tlatency=100\t]\n"
    )


def test_toxic_add_comma_separated_attributes_upstream(server, capsys):
    _run(server, "create", "-l", "a:1", "-u", "b:2", "foo")
    code = _run(server, "t", "a", "-n", "slow", "-t", "latency", "-u", "-a", "latency=5,jitter=1", "foo")
    assert code == 0
    toxic = server.proxies["foo"]["toxics"][0]
    assert toxic["name"] == "slow"
    assert toxic["stream"] == "upstream"
    assert toxic["attributes"] == {"latency": 5.0, "jitter": 1.0}
    assert "Added upstream latency toxic 'slow' on proxy 'foo'" in capsys.readouterr().out


def test_toxic_update(server, capsys):
    _run(server, "create", "-l", "a:1", "-u", "b:2", "foo")
    _run(server, "toxic", "add", "-t", "latency", "-a", "latency=100", "foo")
    capsys.readouterr()
    code = _run(server, "toxic", "update", "-n", "latency_downstream", "--toxicity", "0.5", "-a", "latency=7", "foo")
    assert code == 0
    assert (
        capsys.readouterr().out
        == "Updated toxic 'latency_downstream' on proxy 'foo'\n"
    )
    toxic = server.proxies["foo"]["toxics"][0]
    assert toxic["toxicity"] == 0.5
    assert toxic["attributes"]["latency"] == 7.0


def test_toxic_remove(server, capsys):
    _run(server, "create", "-l", "a:1", "-u", "b:2", "foo")
    _run(server, "toxic", "add", "-t", "latency", "foo")
    capsys.readouterr()
    assert _run(server, "toxic", "remove", "-n", "latency_downstream", "foo") == 0
    assert (
        capsys.readouterr().out
        == "Removed toxic 'latency_downstream' on proxy 'foo'\n"
    )
    assert server.proxies["foo"]["toxics"] == []


def test_toxic_remove_unknown(server, capsys):
    _run(server, "create", "-l", "a:1", "-u", "b:2", "foo")
    capsys.readouterr()
    assert _run(server, "toxic", "delete", "-n", "nope", "foo") == 1
    err = capsys.readouterr().err
    assert "Failed to remove toxic: failed to remove toxic 'nope' from proxy 'foo'" in err
    assert "HTTP 404: toxic not found" in err


def test_list_unreachable_server(capsys):
    assert main(["--host", "http://127.0.0.1:1", "list"]) == 1
    assert capsys.readouterr().err.startswith("Failed to retrieve proxies: fail to request")