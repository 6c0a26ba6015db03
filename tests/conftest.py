import dataclasses
import subprocess
from datetime import date

import pytest

from system_doctor.config.config_manager import ConfigManager
from system_doctor.core.capabilities import CapabilityRegistry
from system_doctor.core.reporter import Reporter


class FakeRunner:
    """Stands in for subprocess: records commands and replays canned output."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def run(self, args, input_text=None):
        self.calls.append((list(args), input_text))
        stdout, returncode = self.responses.get(tuple(args), ("", 1))
        return subprocess.CompletedProcess(list(args), returncode, stdout=stdout, stderr="")

    def commands(self):
        return [call[0][0] for call in self.calls]


@pytest.fixture
def make_registry():
    """Build a registry where only the named tools exist."""
    def factory(tools=(), responses=None):
        installed = set(tools)
        runner = FakeRunner(responses)
        registry = CapabilityRegistry(
            which=lambda name: f"/usr/bin/{name}" if name in installed else None,
            runner=runner,
        )
        return registry, runner
    return factory


@pytest.fixture
def home(tmp_path):
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def make_config(tmp_path, home):
    """Build a DoctorConfig rooted entirely under tmp_path."""
    def factory(**overrides):
        manager = ConfigManager()
        manager.config_data = {}
        manager._set_defaults()
        config = manager.build_doctor_config(home=str(home), hostname="testhost", run_date=date(2026, 10, 19))
        defaults = {
            'critical_dirs': (),
            'temp_root': str(tmp_path / "tmp"),
            'system_log_root': str(tmp_path / "log"),
            'report_path': str(tmp_path / "report.txt"),
        }
        defaults.update(overrides)
        return dataclasses.replace(config, **defaults)
    return factory


@pytest.fixture
def config(make_config):
    return make_config()


@pytest.fixture
def reporter(config):
    reporter = Reporter(config.log_path, echo=False)
    yield reporter
    reporter.close()


def read_log(config):
    with open(config.log_path, encoding='utf-8') as f:
        return f.read()


@pytest.fixture
def log_text(config):
    return lambda: read_log(config)
