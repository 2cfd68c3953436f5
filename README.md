# toxictl

A Python client and a command-line tool for the HTTP API of a TCP proxy
server that injects network faults ("toxics") such as latency, bandwidth
limits, timeouts and connection resets. Use it in tests to check how your
application behaves when the network misbehaves.

It uses only the standard library.

## What this package does not do

It contains no proxy server. Every call and every command talks over HTTP
to a server that is already running, by default at `http://localhost:8474`.

## Installation

```
pip install toxictl
```

## Library usage

```python
from toxictl.client import Client
from toxictl.errors import ApiError, ClientError

client = Client("localhost:8474")   # "http://" is added when no scheme is given

proxy = client.create_proxy("postgresql", "localhost:35432", "localhost:5432")

toxic = proxy.add_toxic("latency_down", "latency", "downstream", 1.0, {"latency": 1000})

# A toxicity of -1 keeps the current value.
proxy.update_toxic("latency_down", -1, {"latency": 500})

for t in proxy.toxics():
    print(t.name, t.type, t.stream, t.toxicity, t.attributes)

proxy.remove_toxic("latency_down")

proxy.disable()
proxy.enable()
proxy.delete()
```

### `Client` (`toxictl.client`)

- `version()` returns the raw bytes of the server's `/version` document.
- `proxies()` returns a dict of proxy name to `Proxy`.
- `proxy(name)` fetches a single proxy.
- `new_proxy()` returns an unsaved `Proxy` bound to the client; set its
  fields and call `save()`.
- `create_proxy(name, listen, upstream)` creates an enabled proxy.
- `populate(config)` sends a list of `Proxy` objects to `/populate` in one
  request and returns the proxies the server reports.
- `add_toxic(options)`, `update_toxic(options)`, `remove_toxic(options)`
  look up the proxy named in a `ToxicOptions` record and act on it.
- `reset_state()` posts to the server's `/reset` endpoint.

Requests carry the `User-Agent` from `client.user_agent` (default
`toxiproxy-cli`) and `Content-Type: application/json`, with a 30 second
timeout.

### `Proxy` (`toxictl.proxy`)

A dataclass with `name`, `listen`, `upstream`, `enabled` and
`active_toxics`. `save()` creates the proxy on the server the first time
and updates it afterwards; `enable()` and `disable()` set `enabled` and
save. `add_toxic(name, type_name, stream, toxicity, attributes)` lets the
server choose a name (`<type>_<stream>`) when `name` is empty, and treats a
toxicity of -1 as 1. `to_dict()` and `from_dict(data, client)` convert to
and from the JSON form.

### `Toxic` and `ToxicOptions` (`toxictl.toxic`)

`Toxic` holds `name`, `type`, `stream`, `toxicity` and `attributes`, with
`to_dict()` / `from_dict()`. `ToxicOptions` holds `proxy_name`,
`toxic_name`, `toxic_type`, `stream`, `toxicity` and `attributes`.

### Errors (`toxictl.errors`)

An error status from the server is raised as `ApiError`, whose text reads
like `HTTP 404: proxy not found`; its `message` and `status` are available
as attributes. Connection failures and bad responses raise `ClientError`.
Some calls add context and re-raise as `ClientError`, keeping the status:
`create_proxy` prefixes `Create: `, `populate` prefixes `Populate: `,
`Proxy.delete` prefixes `Delete: `, `Proxy.add_toxic` prefixes
`AddToxic: `, and the `Client` toxic calls describe the failed operation.

## Command line

The package installs the same command under two names, `toxictl` and
`toxiproxy-cli`:

```
toxictl list
toxictl inspect <proxyName>
toxictl create --listen localhost:35432 --upstream localhost:5432 <proxyName>
toxictl toggle <proxyName>
toxictl delete <proxyName>

toxictl toxic add -t latency -n myToxic -a latency=100 -a jitter=50 myProxy
toxictl toxic update -n myToxic -a jitter=25 myProxy
toxictl toxic remove -n myToxic myProxy
```

Aliases: `list` (`l`, `li`, `ls`), `inspect` (`i`, `ins`), `create` (`c`,
`new`), `toggle` (`tog`), `delete` (`d`), `toxic` (`t`); under `toxic`:
`add` (`a`), `update` (`u`), `remove` (`r`, `delete`, `d`).

Global options come before the command:

- `--host`/`-h` sets the server address; otherwise `TOXIPROXY_URL` is used,
  then `http://localhost:8474`.
- `--version`/`-v` prints the version; `--help` shows help.

Toxic options:

- `--toxicName`/`-n` names the toxic.
- `--type`/`-t` (add only) is required.
- `--toxicity`/`--tox` takes a float between 0 and 1; when left out, 1.0
  is sent, for `update` as well as `add`.
- `--attribute`/`-a key=value` may be repeated, and one value may hold
  several pairs separated by commas. Values that read as numbers are sent
  as floats; entries without `=` are ignored.
- `--upstream`/`-u` or `--downstream`/`-d` (add only); downstream is the
  default and giving both is an error.

Default toxic types on the server and their attributes:

| type         | attributes                                                     |
|--------------|----------------------------------------------------------------|
| `latency`    | `latency=<ms>`, `jitter=<ms>`                                  |
| `bandwidth`  | `rate=<KB/s>`                                                  |
| `slow_close` | `delay=<ms>`                                                   |
| `timeout`    | `timeout=<ms>`                                                 |
| `reset_peer` | `timeout=<ms>`                                                 |
| `slicer`     | `average_size=<bytes>`, `size_variation=<bytes>`, `delay=<µs>` |

When standard output is a terminal, listings are coloured and aligned with
hints; otherwise plain tab-separated lines are written. Errors go to
standard error and the command exits with status 1.