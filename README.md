# shipwatch

Building blocks for a service that keeps running Docker containers on
their newest images. Given the inspect data of the containers on a host,
it works out which of them are watched, which of them must restart along
with a container they depend on, and which surplus watcher instances to
stop. It also defines and post-processes the service's options, with
defaults taken from environment variables, and offers a small
token-protected HTTP API with an update trigger endpoint.

The package has no runtime dependencies.

## Modules

| Module | Contents |
| --- | --- |
| `shipwatch.container` | `Container`, built from Docker inspect data (plain dicts): name, ID, state, image name, labels, links, lifecycle commands and timeouts, `runtime_config()`, `host_config()` and `verify_configuration()`; the errors `ContainerConfigError`, `NoImageInfoError`, `NoContainerInfoError`, `InvalidConfigError`; `contains_watchtower_label()` |
| `shipwatch.filters` | Predicates `no_filter`, `watchtower_containers_filter`, `filter_by_names`, `filter_by_enable_label`, `filter_by_disabled_label`, `filter_by_scope`, `filter_by_image`, and `build_filter` which combines them and describes the result |
| `shipwatch.flagset` | `FlagSet`, `Flag`, `FlagError`; `environment_defaults()` and `register_docker_flags`, `register_system_flags`, `register_notification_flags` |
| `shipwatch.flags` | `process_flag_aliases`, `get_secrets_from_files`, `env_config`, `read_flags`, `is_file` |
| `shipwatch.actions` | `check_for_sanity`, `check_for_multiple_watchtower_instances`, `update_implicit_restart`, the `ContainerClient` protocol and `ActionError` |
| `shipwatch.api` | `API`, `UpdateHandler`, `Request`, `Response`, `ApiError` |
| `shipwatch.ids` | `short_id`, `running_container_id_from_string`, `get_running_container_id` |
| `shipwatch.durations` | `format_duration` |
| `shipwatch.util` | `slice_equal`, `slice_subtract`, `string_map_subtract`, `struct_map_subtract`, `rand_name` |

## Labels

Containers are steered by labels:

- `com.centurylinklabs.watchtower.enable` – `true`/`false`, opt in or out
- `com.centurylinklabs.watchtower` – `true` marks a watcher instance itself
- `com.centurylinklabs.watchtower.monitor-only` – report new images but never restart
- `com.centurylinklabs.watchtower.scope` – only seen by an instance with the same scope
- `com.centurylinklabs.watchtower.depends-on` – comma-separated names this container depends on
- `com.centurylinklabs.watchtower.stop-signal` – signal used to stop the container
- `com.centurylinklabs.watchtower.lifecycle.pre-update`, `.post-update`, `.pre-check`, `.post-check` – lifecycle commands
- `com.centurylinklabs.watchtower.lifecycle.pre-update-timeout`, `.post-update-timeout` – minutes allowed for those commands (1 when unset or not a number)
- `com.centurylinklabs.zodiac.original-image` – overrides the image name

## Examples

A container from its inspect data:

```python
from shipwatch.container import Container

web = Container({
    "Id": "container_id",
    "Name": "/web",
    "Config": {"Image": "nginx", "Labels": {"com.centurylinklabs.watchtower.enable": "true"}},
    "HostConfig": {},
})
web.image_name()   # 'nginx:latest'
web.enabled()      # True  (None when the label is unset or not a boolean)
```

Choose containers by name, honouring the enable label and a scope:

```python
from shipwatch.filters import build_filter

filter_fn, description = build_filter(["web", "db"], True, "production")
print(description)
# Only checking containers which name matches "web", "db", using enable label, in scope "production"
```

The exact text joins the names with `" or "`:
`Only checking containers which name matches "web" or "db", using enable label, in scope "production"`.
Names are matched literally (with or without the leading `/`) or as
regular expressions that must cover the whole name.

Options with defaults from the environment:

```python
from shipwatch.flagset import FlagSet, environment_defaults, register_system_flags
from shipwatch.flags import process_flag_aliases

flags = FlagSet()
register_system_flags(flags, environment_defaults({}))
flags.parse(["--interval", "10", "--debug"])
process_flag_aliases(flags)
flags.get("schedule")    # '@every 10s'
flags.get("log-level")   # 'debug'
```

`process_flag_aliases` raises `FlagError` when both a schedule and an
interval are given, or for a porcelain version other than `v1`.

Propagating restarts to dependent containers:

```python
from shipwatch.actions import update_implicit_restart

update_implicit_restart(containers)  # sets linked_to_restarting on dependants
```

The update API, exercised without a network:

```python
from shipwatch.api import API, Request, UpdateHandler

api = API("token")
handler = UpdateHandler(lambda images: print("update", images))
api.register_func(handler.path, handler.handle)
api.dispatch(Request(path="/v1/update", headers={"Authorization": "Bearer token"},
                     query={"image": ["nginx,redis"]}))
# prints: update ['nginx', 'redis']
```

`API.start(block)` serves the registered endpoints on port 8080 (raising
`ApiError` when no token is set) and `API.stop()` shuts it down.

Smaller helpers:

```python
from datetime import timedelta
from shipwatch.durations import format_duration
from shipwatch.ids import short_id
from shipwatch.util import slice_subtract, string_map_subtract

format_duration(timedelta(hours=1, minutes=2))    # '1 hour, 2 minutes'
short_id("sha256:0123456789abcd00000000001111111111222222222233333333334444444444")
# '0123456789ab'
slice_subtract(["a", "b", "c"], ["a", "c"])       # ['b']
string_map_subtract({"a": "a", "c": "sea"}, {"a": "a", "c": "c"})  # {'c': 'sea'}
```

## What the package does not do

- It does not talk to Docker. `ContainerClient` in `shipwatch.actions` is
  only a protocol; you supply an object that lists, stops and removes
  containers and images.
- It does not pull images, decide staleness, stop and recreate updated
  containers, or run lifecycle commands; it only reads those commands and
  timeouts from labels.
- It does not send notifications or serve metrics; the notification
  options are defined but nothing acts on them.
- It has no scheduler and no command-line program.

## Running the tests

Install the package with its `test` extra and run `pytest` from the
project directory.