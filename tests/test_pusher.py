from dataclasses import dataclass

import pytest

from grafanactl.pusher import NotFoundError, PushRequest, PushSummary, Pusher
from grafanactl.resources import GroupVersionKind, Resources, SourceInfo, from_object


@dataclass(frozen=True)
class Descriptor:
    group: str
    version: str
    kind: str

    def group_version_kind(self):
        return GroupVersionKind(self.group, self.version, self.kind)


FOLDER_V1 = Descriptor("folder.grafana.app", "v1", "Folder")
FOLDER_V0 = Descriptor("folder.grafana.app", "v0alpha1", "Folder")
DASHBOARD_V1 = Descriptor("dashboard.grafana.app", "v1", "Dashboard")


class MockRegistry:
    def __init__(self, supported):
        self.supported = list(supported)

    def supported_resources(self):
        return self.supported


class MockClient:
    def __init__(self, should_fail=(), failure=None, existing=()):
        self.operations = []
        self.should_fail = set(should_fail)
        self.failure = failure
        self.existing = set(existing)
        self.dry_runs = []

    async def get(self, descriptor, name):
        if name in self.existing:
            return {"metadata": {"name": name}}
        raise NotFoundError(name)

    async def create(self, descriptor, obj, dry_run=False):
        return self._record("create", obj, dry_run)

    async def update(self, descriptor, obj, dry_run=False):
        return self._record("update", obj, dry_run)

    def _record(self, op, obj, dry_run):
        name = obj["metadata"]["name"]
        self.operations.append(f"{op}-{name}")
        self.dry_runs.append(dry_run)
        if name in self.should_fail:
            raise self.failure
        return obj


def create_folder_resource(name, version="v1"):
    return from_object(
        {
            "apiVersion": "folder.grafana.app/" + version,
            "kind": "Folder",
            "metadata": {"name": name, "namespace": "default"},
            "spec": {"title": "Test Folder " + name},
        },
        SourceInfo(),
    )


def create_folder_with_parent(name, parent_uid):
    metadata = {"name": name, "namespace": "default"}
    if parent_uid:
        metadata["annotations"] = {"grafana.app/folder": parent_uid}
    return from_object(
        {
            "apiVersion": "folder.grafana.app/v1",
            "kind": "Folder",
            "metadata": metadata,
            "spec": {"title": "Test Folder " + name},
        },
        SourceInfo(),
    )


def create_dashboard_resource(name, annotations=None):
    metadata = {"name": name, "namespace": "default"}
    if annotations:
        metadata["annotations"] = annotations
    return from_object(
        {
            "apiVersion": "dashboard.grafana.app/v1",
            "kind": "Dashboard",
            "metadata": metadata,
            "spec": {"title": "Test Dashboard " + name},
        },
        SourceInfo(),
    )


def create_test_resources():
    return Resources(
        create_folder_resource("folder-1"),
        create_folder_resource("folder-2"),
        create_dashboard_resource("dashboard-1"),
        create_dashboard_resource("dashboard-2"),
    )


def position(operations, name):
    return next(i for i, op in enumerate(operations) if op.endswith("-" + name))


@pytest.mark.asyncio
async def test_push_folders_first():
    client = MockClient()
    pusher = Pusher(client, MockRegistry([FOLDER_V1, DASHBOARD_V1]))

    summary = await pusher.push(
        PushRequest(resources=create_test_resources(), max_concurrency=2, include_managed=True)
    )

    assert summary.pushed_count == 4
    assert summary.failed_count == 0
    assert len(client.operations) == 4
    last_folder = max(position(client.operations, n) for n in ("folder-1", "folder-2"))
    first_dashboard = min(position(client.operations, n) for n in ("dashboard-1", "dashboard-2"))
    assert last_folder < first_dashboard


@pytest.mark.asyncio
async def test_push_only_folders():
    client = MockClient()
    pusher = Pusher(client, MockRegistry([FOLDER_V1, FOLDER_V0]))
    resources = Resources(
        create_folder_resource("folder-1", "v1"),
        create_folder_resource("folder-2", "v0alpha1"),
    )

    summary = await pusher.push(
        PushRequest(resources=resources, max_concurrency=2, include_managed=True)
    )

    assert summary.pushed_count == 2
    assert summary.failed_count == 0
    assert len(client.operations) == 2


@pytest.mark.asyncio
async def test_push_only_dashboards():
    client = MockClient()
    pusher = Pusher(client, MockRegistry([DASHBOARD_V1]))
    resources = Resources(
        create_dashboard_resource("dashboard-1"),
        create_dashboard_resource("dashboard-2"),
    )

    summary = await pusher.push(
        PushRequest(resources=resources, max_concurrency=2, include_managed=True)
    )

    assert summary.pushed_count == 2
    assert summary.failed_count == 0
    assert len(client.operations) == 2


@pytest.mark.asyncio
async def test_push_empty_resources():
    client = MockClient()
    pusher = Pusher(client, MockRegistry([]))

    summary = await pusher.push(PushRequest(resources=Resources(), max_concurrency=2))

    assert summary == PushSummary()
    assert client.operations == []


@pytest.mark.asyncio
async def test_push_folder_creation_error():
    client = MockClient(should_fail={"folder-1"}, failure=RuntimeError("folder creation failed"))
    pusher = Pusher(client, MockRegistry([FOLDER_V1, DASHBOARD_V1]))

    summary = await pusher.push(
        PushRequest(
            resources=create_test_resources(),
            max_concurrency=2,
            stop_on_error=False,
            include_managed=True,
        )
    )

    assert summary.pushed_count == 3
    assert summary.failed_count == 1
    assert len(summary.failures) == 1
    assert summary.failures[0].resource.name() == "folder-1"
    assert str(summary.failures[0].error) == "folder creation failed"


@pytest.mark.asyncio
async def test_push_error_with_stop_on_error_raises():
    client = MockClient(should_fail={"folder-1"}, failure=RuntimeError("folder creation failed"))
    pusher = Pusher(client, MockRegistry([FOLDER_V1, DASHBOARD_V1]))

    with pytest.raises(RuntimeError, match="folder creation failed"):
        await pusher.push(
            PushRequest(
                resources=create_test_resources(),
                max_concurrency=1,
                stop_on_error=True,
                include_managed=True,
            )
        )
    assert not any("dashboard" in op for op in client.operations)


@pytest.mark.asyncio
async def test_push_nested_folders():
    client = MockClient()
    pusher = Pusher(client, MockRegistry([FOLDER_V1]))
    resources = Resources(
        create_folder_with_parent("root-folder", ""),
        create_folder_with_parent("child-folder-1", "root-folder"),
        create_folder_with_parent("child-folder-2", "root-folder"),
        create_folder_with_parent("grandchild-folder", "child-folder-1"),
    )

    summary = await pusher.push(
        PushRequest(resources=resources, max_concurrency=2, include_managed=True)
    )

    assert summary.pushed_count == 4
    assert summary.failed_count == 0
    ops = client.operations
    assert len(ops) == 4
    assert position(ops, "root-folder") < position(ops, "child-folder-1")
    assert position(ops, "root-folder") < position(ops, "child-folder-2")
    assert position(ops, "child-folder-1") < position(ops, "grandchild-folder")


@pytest.mark.asyncio
async def test_push_multiple_folder_trees():
    client = MockClient()
    pusher = Pusher(client, MockRegistry([FOLDER_V1]))
    resources = Resources(
        create_folder_with_parent("tree-a-root", ""),
        create_folder_with_parent("tree-a-child", "tree-a-root"),
        create_folder_with_parent("tree-b-root", ""),
        create_folder_with_parent("tree-b-child", "tree-b-root"),
    )

    summary = await pusher.push(
        PushRequest(resources=resources, max_concurrency=2, include_managed=True)
    )

    assert summary.pushed_count == 4
    assert summary.failed_count == 0
    ops = client.operations
    assert len(ops) == 4
    assert position(ops, "tree-a-root") < position(ops, "tree-a-child")
    assert position(ops, "tree-b-root") < position(ops, "tree-b-child")


@pytest.mark.asyncio
async def test_push_orphaned_folder():
    client = MockClient()
    pusher = Pusher(client, MockRegistry([FOLDER_V1]))
    resources = Resources(create_folder_with_parent("orphan-folder", "non-existent-parent"))

    summary = await pusher.push(
        PushRequest(resources=resources, max_concurrency=2, include_managed=True)
    )

    assert summary.pushed_count == 1
    assert summary.failed_count == 0
    assert client.operations == ["create-orphan-folder"]


@pytest.mark.asyncio
async def test_existing_resource_is_updated_with_dry_run():
    client = MockClient(existing={"dashboard-1"})
    pusher = Pusher(client, MockRegistry([DASHBOARD_V1]))
    resources = Resources(create_dashboard_resource("dashboard-1"))

    summary = await pusher.push(PushRequest(resources=resources, dry_run=True))

    assert summary.pushed_count == 1
    assert client.operations == ["update-dashboard-1"]
    assert client.dry_runs == [True]


@pytest.mark.asyncio
async def test_unsupported_resource_is_recorded_as_failure():
    client = MockClient()
    pusher = Pusher(client, MockRegistry([FOLDER_V1]))
    resources = Resources(create_dashboard_resource("dashboard-1"))

    summary = await pusher.push(PushRequest(resources=resources))

    assert summary.pushed_count == 0
    assert summary.failed_count == 1
    assert "resource not supported by the API" in str(summary.failures[0].error)
    assert client.operations == []


@pytest.mark.asyncio
async def test_unsupported_resource_with_stop_on_error_raises():
    pusher = Pusher(MockClient(), MockRegistry([]))
    resources = Resources(create_dashboard_resource("dashboard-1"))

    with pytest.raises(LookupError, match="dashboard-1"):
        await pusher.push(PushRequest(resources=resources, stop_on_error=True))


@pytest.mark.asyncio
async def test_resource_managed_by_other_tool_is_skipped():
    client = MockClient()
    pusher = Pusher(client, MockRegistry([DASHBOARD_V1]))
    resources = Resources(
        create_dashboard_resource(
            "dashboard-1",
            {"grafana.app/managedBy": "terraform", "grafana.app/managerId": "tf"},
        )
    )

    summary = await pusher.push(PushRequest(resources=resources))

    assert (summary.pushed_count, summary.failed_count) == (0, 0)
    assert client.operations == []


@pytest.mark.asyncio
async def test_processors_modify_and_reject_resources():
    class Retitle:
        def process(self, resource):
            resource.to_unstructured()["spec"]["title"] = "changed"

    class Reject:
        def process(self, resource):
            if resource.name() == "dashboard-2":
                raise ValueError("rejected")

    client = MockClient()
    pusher = Pusher(client, MockRegistry([DASHBOARD_V1]))
    first = create_dashboard_resource("dashboard-1")
    resources = Resources(first, create_dashboard_resource("dashboard-2"))

    summary = await pusher.push(
        PushRequest(resources=resources, processors=[Retitle(), Reject()])
    )

    assert summary.pushed_count == 1
    assert summary.failed_count == 1
    assert summary.failures[0].resource.name() == "dashboard-2"
    assert first.spec()["title"] == "changed"
    assert client.operations == ["create-dashboard-1"]


@pytest.mark.asyncio
async def test_synchronous_client_is_supported():
    class SyncClient:
        def __init__(self):
            self.created = []

        def get(self, descriptor, name):
            raise NotFoundError(name)

        def create(self, descriptor, obj, dry_run=False):
            self.created.append(obj["metadata"]["name"])

        def update(self, descriptor, obj, dry_run=False):
            raise AssertionError("unexpected update")

    client = SyncClient()
    pusher = Pusher(client, MockRegistry([GroupVersionKind("folder.grafana.app", "v1", "Folder")]))

    summary = await pusher.push(PushRequest(resources=Resources(create_folder_resource("f"))))

    assert summary.pushed_count == 1
    assert client.created == ["f"]


def test_record_failure_counts():
    summary = PushSummary()
    resource = create_folder_resource("folder-1")
    error = RuntimeError("boom")

    summary.record_failure(resource, error)
    summary.record_failure(resource, error)

    assert summary.failed_count == 2
    assert [f.error for f in summary.failures] == [error, error]