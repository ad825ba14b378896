import pytest

from tagenv.deploy.errors import RequestValidationError
from tagenv.deploy.models import Action
from tagenv.deploy.trigger import environment_id_from_version, request_from_tag


@pytest.mark.parametrize("tag,action,env_id", [
    ("deploy-1.0", Action.DEPLOY, "1-0"),
    ("destroy-1.0", Action.DESTROY, "1-0"),
    ("refs/tags/deploy-v2.3.1", Action.DEPLOY, "v2-3-1"),
    ("deploy-RC_1+build", Action.DEPLOY, "rc-1-build"),
])
def test_tag_maps_to_request(tag, action, env_id):
    req = request_from_tag(tag, {"root_password": "r", "app_password": "a"})
    assert req.action is action
    assert req.environment_id == env_id


def test_parameters_pass_through_for_deploy_only():
    params = {"root_password": "r", "app_password": "a"}
    assert dict(request_from_tag("deploy-1", params).parameters) == params
    assert dict(request_from_tag("destroy-1", params).parameters) == {}


@pytest.mark.parametrize("tag", ["v1.0", "deploy-", "release-1.0", "deploy-.1", "destroy-!"])
def test_bad_tags_rejected(tag):
    with pytest.raises(RequestValidationError):
        request_from_tag(tag)


def test_environment_id_from_version():
    assert environment_id_from_version("1.0") == "1-0"
    assert environment_id_from_version(" Feature/Login ") == "feature-login"
