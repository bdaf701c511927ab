"""End-to-end dump/restore tests with in-memory fakes for both servers."""
from __future__ import annotations

import json

import httpx
import pytest

from conftest import make_function
from fission_upgrade.client import V2Client
from fission_upgrade.errors import ConflictError, EntityCreateError, UnresolvedReferenceError
from fission_upgrade.models import v1, v2
from fission_upgrade.snapshot import load_snapshot
from fission_upgrade.upgrade import dump_state, plan_documents, restore_state


class FakeSource:
    def __init__(self, state: v1.V1State):
        self._state = state
        self.fetched: list[tuple[str, object]] = []

    def fetch_state(self) -> v1.V1State:
        return self._state

    def fetch_function(self, name, uid=None):
        self.fetched.append((name, uid))
        env = "Python_3" if name == "My_Func" else "nodejs"
        return make_function(name, env=env, uid=uid)


class FakeSink:
    def __init__(self, fail_on: str | None = None):
        self.calls: list[tuple[str, str]] = []
        self.resources: list = []
        self._fail_on = fail_on

    def _record(self, kind, resource, old_name):
        if resource.metadata.name == self._fail_on:
            raise ConflictError(kind, old_name, resource.metadata.name, 409, "exists")
        self.calls.append((kind, resource.metadata.name))
        self.resources.append(resource)
        return v2.ObjectMeta(name=resource.metadata.name, namespace=resource.metadata.namespace, resourceVersion="42")

    def create_environment(self, env, old_name):
        return self._record("environment", env, old_name)

    def create_package(self, pkg, old_name):
        return self._record("package", pkg, old_name)

    def create_function(self, fn, old_name):
        return self._record("function", fn, old_name)

    def create_http_trigger(self, t, old_name):
        return self._record("http", t, old_name)

    def create_mq_trigger(self, t, old_name):
        return self._record("mq", t, old_name)

    def create_time_trigger(self, t, old_name):
        return self._record("time", t, old_name)

    def create_watch(self, t, old_name):
        return self._record("watch", t, old_name)

    def upload_archive(self, code, *, package_name, old_name):
        return v2.Archive(literal="ZmFrZQ==")


def test_dump_builds_table_and_dedups_functions(sample_state, tmp_path):
    source = FakeSource(sample_state)
    path = str(tmp_path / "state.json")
    state = dump_state(source, path)

    assert sorted(source.fetched) == [("My_Func", "u2"), ("hello", "u0")]
    assert [f.metadata.name for f in state.functions] == ["hello", "My_Func"]
    assert state.namechanges["My_Func"] == "my-func"
    assert state.namechanges["Every Minute"] == "every-minute"
    assert len(set(state.namechanges.values())) == len(state.namechanges)
    assert load_snapshot(path) == state


def test_dump_without_path_writes_nothing(sample_state, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    dump_state(FakeSource(sample_state))
    assert list(tmp_path.iterdir()) == []


def test_restore_creates_in_dependency_order(sample_state):
    state = dump_state(FakeSource(sample_state))
    sink = FakeSink()
    result = restore_state(state, sink)

    kinds = [k for k, _ in sink.calls]
    assert kinds == [
        "environment",
        "environment",
        "package",
        "function",
        "package",
        "function",
        "http",
        "http",
        "mq",
        "time",
        "watch",
    ]
    assert result.created == len(sink.calls) == 11
    functions = [r for r in sink.resources if isinstance(r, v2.Function)]
    assert functions[1].spec.environment.name == "python-3"
    # function points at the package as created on the server
    assert functions[0].spec.package.packageref.resourceversion == "42"
    packages = [r for r in sink.resources if isinstance(r, v2.Package)]
    assert packages[0].spec.deployment.literal == "ZmFrZQ=="


def test_restore_dry_run_creates_nothing(sample_state):
    state = dump_state(FakeSource(sample_state))
    result = restore_state(state, None, dry_run=True)
    assert result.created == 0
    docs = list(plan_documents(result.plan))
    assert [d[0] for d in docs][:4] == ["environment", "environment", "package", "function"]
    assert docs[-1][1] == "pods"


def test_restore_requires_sink_when_not_dry_run(sample_state):
    state = dump_state(FakeSource(sample_state))
    with pytest.raises(ValueError):
        restore_state(state, None)


def test_restore_stops_on_conflict_without_rollback(sample_state, caplog):
    state = dump_state(FakeSource(sample_state))
    sink = FakeSink(fail_on="route-myfunc")
    with pytest.raises(ConflictError) as exc:
        restore_state(state, sink)
    assert exc.value.old_name == "route-myfunc"
    assert exc.value.kind == "http"
    # everything before the failing trigger stays created
    assert len(sink.calls) == 7
    assert "after 7 resources were created" in caplog.text


def test_restore_integrity_error_creates_nothing(sample_state):
    state = dump_state(FakeSource(sample_state))
    table = dict(state.namechanges)
    del table["pods"]
    sink = FakeSink()
    with pytest.raises(UnresolvedReferenceError):
        restore_state(state.model_copy(update={"namechanges": table}), sink)
    assert sink.calls == []


def test_restore_reports_context_when_create_gets_no_response(sample_state, caplog):
    state = dump_state(FakeSource(sample_state))

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/triggers/http":
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(201, json=json.loads(request.content)["metadata"])

    with V2Client("controller", transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(EntityCreateError) as exc:
            restore_state(state, client)
    assert exc.value.status_code is None
    assert exc.value.old_name == "route_hello"
    assert exc.value.new_name == "route-hello"
    assert "after 6 resources were created" in caplog.text
