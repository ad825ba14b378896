import pytest

from tagenv.config.models import TagenvConfig
from tagenv.deploy import clients as clients_mod
from tagenv.deploy.clients import REMOTE_KUBECONFIG, DefaultClients, vm_host
from tagenv.deploy.errors import FatalClientError
from tagenv.deploy.models import Environment, ResourceKind
from tagenv.execution.runner import CommandRunner


def _env():
    return Environment(id="e1", resource_handles={ResourceKind.PUBLIC_IP: "20.0.0.10"})


def test_vm_host_uses_recorded_address():
    cfg = TagenvConfig.model_validate({"vm": {"admin_username": "ops", "ssh_private_key_path": "/keys/id"}})
    host = vm_host(_env(), cfg)
    assert host.address == "20.0.0.10"
    assert host.hostname == "vm-wordpress-e1"
    assert host.username == "ops"
    assert str(host.pkey_path) == "/keys/id"


def test_vm_host_without_address_is_fatal():
    with pytest.raises(FatalClientError):
        vm_host(Environment(id="e1"), TagenvConfig())


def test_local_mode_uses_saved_kubeconfig(tmp_path):
    cfg = TagenvConfig.model_validate({"cluster": {"kubectl_mode": "local"},
                                       "workloads": {"namespace": "blog"}})
    with DefaultClients(cfg).cluster(_env(), tmp_path / "e1.yaml") as kc:
        assert isinstance(kc.runner, CommandRunner)
        assert kc.kubeconfig == str(tmp_path / "e1.yaml")
        assert kc.namespace == "blog"


def test_ssh_mode_runs_kubectl_on_the_vm_and_closes(monkeypatch, tmp_path):
    class FakeSSH:
        closed = False
        def close(self): self.closed = True

    opened = []

    def fake_open(host):
        opened.append(host)
        return FakeSSH()

    monkeypatch.setattr(clients_mod, "open_ssh", fake_open)
    with DefaultClients(TagenvConfig()).cluster(_env(), tmp_path / "e1.yaml") as kc:
        assert kc.kubeconfig == REMOTE_KUBECONFIG
        ssh = kc.runner
        assert not ssh.closed
    assert ssh.closed
    assert opened[0].address == "20.0.0.10"


def test_default_clients_wire_config():
    cfg = TagenvConfig.model_validate({
        "azure": {"subscription": "sub-1"},
        "cluster": {"k3s_version": "v1.29.4+k3s1", "ready_timeout_seconds": 42},
    })
    dc = DefaultClients(cfg)
    assert dc.resources.subscription == "sub-1"
    assert dc.bootstrapper.options.k3s_version == "v1.29.4+k3s1"
    assert dc.bootstrapper.options.ready_timeout_seconds == 42
