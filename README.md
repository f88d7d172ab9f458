# grafanactl

A library for working with Grafana resources as Kubernetes-style objects. It
can build resource collections, parse resource selectors and redact secrets.
It can also push, pull or delete resources through a client object that you
supply, and it can notify live-reload clients when a resource changes.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Resources (`grafanactl.resources`)

A `Resource` wraps a plain dictionary that has `apiVersion`, `kind` and
`metadata`. If the object is not a mapping, or if its `metadata` is present
but is not a mapping, `ResourceInvalidError` is raised.

```python
from grafanactl.resources import Resources, SourceInfo, from_object

dashboard = from_object(
    {
        "apiVersion": "dashboard.grafana.app/v1",
        "kind": "Dashboard",
        "metadata": {"name": "overview", "namespace": "default"},
        "spec": {"title": "Overview"},
    },
    SourceInfo(path="overview.json", format="json"),
)

print(dashboard.ref())          # dashboard.grafana.app/v1, Kind=Dashboard/default-overview
print(dashboard.api_version())  # dashboard.grafana.app/v1

collection = Resources(dashboard)
collection.on_change(lambda res: print("added:", res.ref()))
print(len(collection), collection.find("Dashboard", "overview").name())
```

A `Resource` provides these accessors: `group_version_kind()` (a
`GroupVersionKind`), `group()`, `version()`, `kind()`, `name()`,
`namespace()`, `labels()`, `annotations()`, `spec()`, `source_path()` and
`source_format()`. The remaining methods work as follows:

- `folder()` returns the `grafana.app/folder` annotation, which is the parent
  folder UID, or `""`.
- `is_folder()` is true for kind `Folder` in group `folder.grafana.app`.
- `manager_kind()` and `is_managed()` read the `grafana.app/managerId` and
  `grafana.app/managedBy` annotations. A resource without a manager identity
  counts as managed by this tool.

`Resources` is keyed by reference, so when you add a resource with the same
reference it replaces the old one. Callbacks that you register with
`on_change` run for each resource that is added. The collection also offers
`clear`, `merge`, `find` (which returns `None` when nothing matches),
`for_each`, `as_list`, `group_by_kind`, `to_unstructured_list` and iteration.
`for_each_concurrently(max_inflight, callback)` is a coroutine. It awaits an
async callback for every resource, with at most `max_inflight` running at a
time; a negative value means no limit and zero raises `ValueError`. The first
failure cancels the callbacks that are still running and is then raised.

`resources_from_unstructured(items)` builds a collection from plain objects.
`sort_unstructured(items)` sorts a list in place by group, version, kind and
name.

## Selectors (`grafanactl.selector`)

```python
from grafanactl.selector import SelectorType, parse_selectors

selectors = parse_selectors(["dashboards.v1alpha1.dashboard.grafana.app/foo,bar", "folders"])
first = selectors[0]
print(first.type is SelectorType.MULTIPLE)   # True
print(first.group_version_kind.group)        # dashboard.grafana.app
print(first.resource_uids)                   # ['foo', 'bar']
print(selectors.has_named_selectors_only())  # False
```

A selector has the form `resource[.version].group[/uid[,uid...]]`. When the
input is invalid, `InvalidSelectorError` is raised, and it is a `ValueError`.
`parse_partial_gvk` parses only the type part and raises `ValueError`.
`Selectors.is_single_target()` is true for exactly one selector with a single
UID.

## Redacting secrets (`grafanactl.redactor`)

```python
from dataclasses import dataclass
from grafanactl.redactor import redact, secret_field

@dataclass
class Credentials:
    user: str
    token: str = secret_field(default="")

creds = redact(Credentials(user="admin", token="token"))
print(creds.token)  # **REDACTED**
```

`redact` changes the value in place and returns it. It walks dataclasses,
mappings, lists, tuples and sets. In a secret field, a non-empty string or
any bytes value is replaced with `**REDACTED**`.

## Folder ordering (`grafanactl.folder_hierarchy`)

`sort_folders_by_dependency(folders)` groups folder resources by depth. Level
0 holds the folders whose parent is missing from the set, level 1 holds their
children, and so on. Folders whose levels cannot be resolved cause
`FolderHierarchyError`.

## Pushing, pulling and deleting

The three classes are `Pusher` (`grafanactl.pusher`), `Puller`
(`grafanactl.puller`) and `Deleter` (`grafanactl.deleter`). Each takes a
`client` and a `registry` that you provide. The client methods may be plain
functions or coroutines. A descriptor is either a `GroupVersionKind` or an
object with a `group_version_kind` attribute or method.

- **Push**: `await Pusher(client, registry).push(PushRequest(...))`. The
  client needs `get(descriptor, name)`, which raises `NotFoundError` for
  missing resources. It also needs `create(descriptor, obj, dry_run=...)` and
  `update(descriptor, obj, dry_run=...)`. The registry needs
  `supported_resources()`. Folders are pushed first, one hierarchy level at a
  time, and the other resources follow. Before a resource is pushed, any
  `processors` (objects with a `process(resource)` method) run on it.
  Resources that another tool manages are skipped unless `include_managed` is
  set. The result is a `PushSummary` with `pushed_count`, `failed_count` and
  `failures`.
- **Pull**: `await Puller(client, registry).pull(PullRequest(...))`. The
  client needs `list(descriptor)`, `get_multiple(descriptor, names)` and
  `get(descriptor, name)`. Each `Filter` in the request selects all resources
  of a type, several named ones, or a single one. Without filters, every type
  from `registry.preferred_resources()` is pulled. The results replace the
  contents of `request.resources`.
- **Delete**: `await Deleter(client, registry).delete(DeleteRequest(...))`.
  The client needs `delete(descriptor, name, dry_run=...)`. The result is a
  `DeleteSummary`.

```python
import asyncio
from grafanactl.pusher import NotFoundError, Pusher, PushRequest
from grafanactl.resources import GroupVersionKind, Resources

class MemoryClient:
    def __init__(self):
        self.store = {}
    def get(self, descriptor, name):
        if name not in self.store:
            raise NotFoundError(name)
        return self.store[name]
    def create(self, descriptor, obj, dry_run=False):
        self.store[obj["metadata"]["name"]] = obj
    def update(self, descriptor, obj, dry_run=False):
        self.store[obj["metadata"]["name"]] = obj

class Registry:
    def supported_resources(self):
        return [GroupVersionKind("dashboard.grafana.app", "v1", "Dashboard")]

summary = asyncio.run(Pusher(MemoryClient(), Registry()).push(PushRequest(resources=Resources(dashboard))))
print(summary.pushed_count)
```

When `stop_on_error` is set, each operation raises the first error it meets.
Otherwise the failure is logged through the standard `logging` module and the
operation carries on.

## Live reload (`grafanactl.livereload`)

A `Connection` holds a bounded queue of outgoing messages; the default size
is 256. `handle_message` queues the live-reload hello reply when a client
sends a hello command. `messages()` yields the queued messages until the
connection is closed and the queue is empty. A `Hub` registers and
unregisters connections. `broadcast` sends a message to every connection and
drops, and closes, any connection that cannot accept it.
`reload_resource(resource)` broadcasts the message built by
`reload_message`, which asks clients to reload
`/grafanactl/<apiVersion>/<kind>/<name>`.

## What this package does not do

This package is a library only. It has no command-line program and no HTTP or
websocket server, and it does not watch files. It has no API client or
resource discovery of its own, so every call to Grafana goes through the
client and registry objects you pass in. The live-reload hub only queues
messages, and sending them over a real websocket is left to you.