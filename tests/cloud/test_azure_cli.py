import json
import subprocess

import pytest

from tagenv.cloud.azure_cli import AzureCliResourceClient
from tagenv.cloud.errors import AzureCliError
from tagenv.cloud.interface import VmSpec


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


@pytest.fixture
def az(monkeypatch):
    """Patch subprocess.run; queue responses in `az.responses`."""
    class _Az:
        calls = []
        responses = []

    def fake_run(argv, **kw):
        _Az.calls.append(argv)
        return _Az.responses.pop(0) if _Az.responses else DummyCP(0, "{}")

    _Az.calls = []
    _Az.responses = []
    monkeypatch.setattr(subprocess, "run", fake_run)
    return _Az


def test_create_resource_group(az):
    az.responses.append(DummyCP(0, json.dumps({"id": "/subscriptions/s/resourceGroups/rg-1"})))
    rid = AzureCliResourceClient().create_resource_group("rg-1", "eastus")
    assert rid == "/subscriptions/s/resourceGroups/rg-1"
    assert az.calls[0] == ["az", "group", "create", "--name", "rg-1", "--location", "eastus", "-o", "json"]


def test_subscription_is_appended(az):
    AzureCliResourceClient(subscription="sub-1").create_resource_group("rg-1", "eastus")
    assert az.calls[0][-2:] == ["--subscription", "sub-1"]


def test_delete_is_fire_and_forget_by_default(az):
    assert AzureCliResourceClient().delete_resource_group("rg-1") is True
    assert az.calls[0] == ["az", "group", "delete", "--name", "rg-1", "--yes", "--no-wait"]


def test_delete_can_wait(az):
    AzureCliResourceClient().delete_resource_group("rg-1", wait_for_completion=True)
    assert "--no-wait" not in az.calls[0]


def test_delete_of_missing_group_is_success(az):
    az.responses.append(DummyCP(3, "", "ERROR: (ResourceGroupNotFound) Resource group 'rg-1' could not be found."))
    assert AzureCliResourceClient().delete_resource_group("rg-1") is False


def test_delete_other_errors_raise(az):
    az.responses.append(DummyCP(1, "", "ERROR: (ScopeLocked) locked"))
    with pytest.raises(AzureCliError) as ei:
        AzureCliResourceClient().delete_resource_group("rg-1")
    assert not ei.value.fatal
    assert "ScopeLocked" in str(ei.value)


def test_create_vm_builds_argv_and_parses_handle(az, tmp_path):
    key = tmp_path / "id_rsa.pub"
    az.responses.append(DummyCP(0, json.dumps({"id": "/vm/1", "publicIpAddress": "20.1.2.3"})))
    spec = VmSpec(name="vm-1", resource_group="rg-1", size="Standard_B2s",
                  image="Ubuntu2204", admin_username="azureuser", ssh_key_path=key)

    handle = AzureCliResourceClient().create_vm(spec)

    assert handle.id == "/vm/1"
    assert handle.public_ip == "20.1.2.3"
    argv = az.calls[0]
    assert argv[:3] == ["az", "vm", "create"]
    assert argv[argv.index("--size") + 1] == "Standard_B2s"
    assert argv[argv.index("--image") + 1] == "Ubuntu2204"
    assert argv[argv.index("--ssh-key-values") + 1] == str(key)
    assert "--generate-ssh-keys" not in argv


def test_create_vm_without_key_generates_one(az):
    az.responses.append(DummyCP(0, json.dumps({"id": "/vm/1", "publicIpAddress": "20.1.2.3"})))
    spec = VmSpec(name="vm-1", resource_group="rg-1", size="s", image="i", admin_username="u")
    AzureCliResourceClient().create_vm(spec)
    assert "--generate-ssh-keys" in az.calls[0]


def test_create_vm_without_public_ip_is_an_error(az):
    az.responses.append(DummyCP(0, json.dumps({"id": "/vm/1"})))
    spec = VmSpec(name="vm-1", resource_group="rg-1", size="s", image="i", admin_username="u")
    with pytest.raises(AzureCliError):
        AzureCliResourceClient().create_vm(spec)


def test_open_port(az):
    AzureCliResourceClient().open_port("rg-1", "vm-1", 80)
    assert az.calls[0] == ["az", "vm", "open-port", "--resource-group", "rg-1", "--name", "vm-1",
                           "--port", "80", "--priority", "900"]


def test_power_state(az):
    view = {"instanceView": {"statuses": [
        {"code": "ProvisioningState/succeeded"},
        {"code": "PowerState/running"},
    ]}}
    az.responses.append(DummyCP(0, json.dumps(view)))
    assert AzureCliResourceClient().get_vm_power_state("rg-1", "vm-1") == "running"

    az.responses.append(DummyCP(0, "{}"))
    assert AzureCliResourceClient().get_vm_power_state("rg-1", "vm-1") == "unknown"


def test_auth_failure_is_fatal(az):
    az.responses.append(DummyCP(1, "", "ERROR: Please run 'az login' to setup account."))
    with pytest.raises(AzureCliError) as ei:
        AzureCliResourceClient().create_resource_group("rg-1", "eastus")
    assert ei.value.fatal
