"""
Unit tests for the bootstrap registry deployment.
"""
import pytest

from rkeprep.exceptions import CommandError
from rkeprep.MANAGERS.registry_bootstrap import RegistryBootstrap
from rkeprep.MODELS.settings import RegistrySettings
from rkeprep.RUNNERS.process_runner import CommandResult


class DockerRunner:
    def __init__(self, existing=(), fail=None):
        self.existing = list(existing)
        self.fail = fail
        self.commands = []

    def run(self, command, env=None, capture=False, timeout=None):
        self.commands.append(command)
        if self.fail and command[1] == self.fail:
            return CommandResult(command, 1, stderr="daemon not running")
        if command[1] == "ps":
            return CommandResult(command, 0, stdout="\n".join(self.existing) + "\n")
        return CommandResult(command, 0)


@pytest.fixture
def registry_settings(tmp_path):
    return RegistrySettings(data_dir=tmp_path / "data")


def _bootstrap(settings, runner, dependencies):
    return RegistryBootstrap(settings, runner=runner, dependencies=dependencies, echo=lambda line: None)


def test_deploy_fresh(registry_settings, dependencies):
    runner = DockerRunner()
    _bootstrap(registry_settings, runner, dependencies).deploy()
    assert dependencies.ensured == [["docker"]]
    assert registry_settings.data_dir.is_dir()
    verbs = [command[1] for command in runner.commands]
    assert verbs == ["pull", "ps", "run"]
    assert runner.commands[-1] == [
        "docker", "run", "-d",
        "--name", "altregistry",
        "--restart=always",
        "-p", "8443:5000",
        "-v", f"{registry_settings.data_dir}:/var/lib/registry",
        "-e", "REGISTRY_HTTP_ADDR=0.0.0.0:5000",
        "registry:2",
    ]


def test_deploy_replaces_existing(registry_settings, dependencies):
    runner = DockerRunner(existing=["other", "altregistry"])
    _bootstrap(registry_settings, runner, dependencies).deploy()
    verbs = [command[1] for command in runner.commands]
    assert verbs == ["pull", "ps", "stop", "rm", "run"]


def test_similar_name_not_replaced(registry_settings, dependencies):
    runner = DockerRunner(existing=["altregistry-old"])
    _bootstrap(registry_settings, runner, dependencies).deploy()
    assert "rm" not in [command[1] for command in runner.commands]


def test_pull_failure(registry_settings, dependencies):
    runner = DockerRunner(fail="pull")
    with pytest.raises(CommandError, match="daemon not running"):
        _bootstrap(registry_settings, runner, dependencies).deploy()
