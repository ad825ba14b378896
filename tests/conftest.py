import logging
from contextlib import contextmanager

import pytest

from tagenv.cloud.interface import VmHandle
from tagenv.config.models import TagenvConfig
from tagenv.deploy.controller import DeploymentController
from tagenv.state.store import FileStateStore

ROOT_PASSWORD = "r00t-Sup3r-s3cret-7f1c"
APP_PASSWORD = "wp-App-s3cret-92ab"

KUBECONFIG = """apiVersion: v1
kind: Config
clusters:
- cluster:
    server: https://20.0.0.10:6443
  name: default
"""


# ----------------- Fakes for the three client seams -----------------

class _Scripted:
    """
    Records calls. `fail[name]` is a list of exceptions raised by successive
    calls; `hooks[name]` runs before the call returns or raises.
    """

    def __init__(self):
        self.calls = []
        self.fail = {}
        self.hooks = {}

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        hook = self.hooks.get(name)
        if hook:
            hook()
        errs = self.fail.get(name)
        if errs:
            raise errs.pop(0)

    def names(self):
        return [c[0] for c in self.calls]


class FakeResources(_Scripted):
    def __init__(self):
        super().__init__()
        self.power_state = "running"
        self.group_exists = True

    def create_resource_group(self, name, location):
        self._call("create_resource_group", name, location)
        return f"/subscriptions/sub/resourceGroups/{name}"

    def delete_resource_group(self, name, wait_for_completion=False):
        self._call("delete_resource_group", name, wait_for_completion)
        return self.group_exists

    def create_vm(self, spec):
        self._call("create_vm", spec)
        return VmHandle(id=f"/subscriptions/sub/resourceGroups/{spec.resource_group}/vms/{spec.name}",
                        public_ip="20.0.0.10")

    def open_port(self, resource_group, vm_name, port, priority=900):
        self._call("open_port", resource_group, vm_name, port)

    def get_vm_power_state(self, resource_group, vm_name):
        self._call("get_vm_power_state", resource_group, vm_name)
        return self.power_state


class FakeBootstrapper(_Scripted):
    def install(self, host):
        self._call("install", host)
        return KUBECONFIG


class FakeCluster(_Scripted):
    def __init__(self):
        super().__init__()
        self.applied = []
        self.secrets = []
        self.address = "20.0.0.10"

    def apply_manifest(self, doc):
        self._call("apply_manifest")
        self.applied.append(doc)

    def create_secret(self, name, data):
        self._call("create_secret", name)
        self.secrets.append((name, dict(data)))

    def get_service_address(self, name):
        self._call("get_service_address", name)
        return self.address

    def wait_for_service_address(self, name, timeout_seconds, interval_seconds=5.0):
        self._call("wait_for_service_address", name)
        return self.address

    def wait_for_rollout(self, deployment, timeout_seconds):
        self._call("wait_for_rollout", deployment)


class FakeClients:
    def __init__(self):
        self.resources = FakeResources()
        self.bootstrapper = FakeBootstrapper()
        self.cluster_client = FakeCluster()
        self.opened = []

    @contextmanager
    def cluster(self, environment, kubeconfig_path):
        self.opened.append((environment.id, kubeconfig_path))
        yield self.cluster_client

    def total_calls(self):
        return (len(self.resources.calls) + len(self.bootstrapper.calls)
                + len(self.cluster_client.calls))


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)

    def kinds(self):
        return [e.__class__.__name__ for e in self.events]


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)

    def text(self):
        return "\n".join(r.getMessage() for r in self.records)


# ----------------- Fixtures -----------------

@pytest.fixture
def cfg(tmp_path):
    return TagenvConfig(state_dir=tmp_path / "state")


@pytest.fixture
def store(cfg):
    return FileStateStore(cfg.resolved_state_dir())


@pytest.fixture
def clients():
    return FakeClients()


@pytest.fixture
def capture():
    return Capture()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def controller(cfg, store, clients, capture, sleeps):
    return DeploymentController(
        config=cfg,
        store=store,
        clients=clients,
        observers=[capture],
        sleep=sleeps.append,
        http_probe=lambda url, timeout_seconds=0: 200,
    )


@pytest.fixture
def deploy_params():
    return {"root_password": ROOT_PASSWORD, "app_password": APP_PASSWORD}


@pytest.fixture
def log_records():
    """Collect everything the tagenv logger emits, at DEBUG."""
    logger = logging.getLogger("tagenv")
    handler = ListHandler()
    old_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        yield handler
    finally:
        logger.removeHandler(handler)
        logger.setLevel(old_level)
