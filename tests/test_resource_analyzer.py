import os

import pytest

from system_doctor.core.capabilities import (CapabilityRegistry, MemoryProbe, ProcessProbe, UptimeProbe,
                                             parse_free_output, parse_load_average, parse_vm_stat_free_pages)
from system_doctor.core.models import MemoryUsage, ProcessInfo
from system_doctor.core.resource_analyzer import ResourceAnalyzer

FREE_BYTES = """               total        used        free      shared  buff/cache   available
Mem:     8000000000  6560000000   500000000    10000000   940000000  1200000000
Swap:    2000000000           0  2000000000
"""

VM_STAT = """Mach Virtual Memory Statistics: (page size of 16384 bytes)
Pages free:                               65536.
Pages active:                            200000.
Pages inactive:                          150000.
"""

PS_OUTPUT = """    1   0.0 init
  200  55.5 python3
  300  12.0 Google Chrome Helper
  400   3.1 sshd
"""


class StubMemory:
    def __init__(self, usage):
        self._usage = usage

    def usage(self):
        return self._usage


class StubProcesses:
    def top(self, limit=5):
        return [ProcessInfo(pid=200, command="python3", cpu_percent=55.5)][:limit]


class StubUptime:
    def __init__(self, load, text=" 10:00:00 up 3 days,  2 users,  load average: 0.52, 0.58, 0.59"):
        self.load = load
        self.text = text

    def load_figure(self):
        return self.load

    def uptime(self):
        return self.text


def make_analyzer(config, reporter, used=50, load=0.5):
    return ResourceAnalyzer(config, reporter, StubMemory(MemoryUsage(100, used, "Mem: ...")),
                            StubProcesses(), StubUptime(load))


def test_parse_free_output():
    assert parse_free_output(FREE_BYTES) == (8000000000, 6560000000)
    assert parse_free_output("garbage") is None


@pytest.mark.parametrize("text,expected", [
    (" 10:00  up 3 days, 2 users, load average: 0.52, 0.58, 0.59", 0.52),
    ("10:00  up 14 days, 3:02, 2 users, load averages: 1.23 1.45 1.67", 1.23),
    ("10:00 up 1 day, load average: 0,52, 0,58, 0,59", 0.52),
    ("no load here", None),
])
def test_parse_load_average(text, expected):
    assert parse_load_average(text) == expected


def test_memory_from_free(make_registry):
    registry, _ = make_registry(tools=['free'], responses={
        ('free', '-b'): (FREE_BYTES, 0),
        ('free', '-h'): ("Mem: 7.5Gi 6.1Gi ...\n", 0),
    })

    usage = MemoryProbe(registry).usage()

    assert usage.percent == 82
    assert usage.detail == "Mem: 7.5Gi 6.1Gi ..."


def test_memory_from_vm_stat(make_registry):
    total = 16 * 1024 * 1024 * 1024
    registry, _ = make_registry(tools=['vm_stat', 'sysctl'], responses={
        ('vm_stat',): (VM_STAT, 0),
        ('sysctl', '-n', 'hw.memsize'): (f"{total}\n", 0),
    })

    usage = MemoryProbe(registry).usage()

    assert parse_vm_stat_free_pages(VM_STAT) == 65536
    assert usage.total_bytes == total
    assert usage.used_bytes == total - 65536 * 16384
    assert usage.percent == 93


def test_memory_unknown_without_tools(make_registry):
    registry, _ = make_registry()
    assert MemoryProbe(registry).usage() is None


def test_top_processes_sorted_by_cpu(make_registry):
    registry, runner = make_registry(tools=['ps'], responses={
        ('ps', '-A', '-o', 'pid=', '-o', '%cpu=', '-o', 'comm='): (PS_OUTPUT, 0),
    })

    top = ProcessProbe(registry).top(2)

    assert [(p.pid, p.command) for p in top] == [(200, "python3"), (300, "Google Chrome Helper")]


def test_load_falls_back_when_uptime_missing(make_registry, monkeypatch):
    registry, _ = make_registry()
    monkeypatch.setattr('os.getloadavg', lambda: (1.5, 1.0, 0.5))

    probe = UptimeProbe(registry)

    assert probe.uptime() is None
    assert probe.load_figure() == 1.5


@pytest.mark.parametrize("used,level", [(81, "WARNING: High memory usage detected: 81%"),
                                        (80, "SUCCESS: Memory usage is normal: 80%")])
def test_memory_threshold_is_strict(config, reporter, log_text, used, level):
    make_analyzer(config, reporter, used=used).report_memory()
    assert level in log_text()


@pytest.mark.parametrize("load,level", [(81, "WARNING: High CPU usage detected: 81%"),
                                        (80, "SUCCESS: CPU usage is normal: 80%"),
                                        (0.52, "SUCCESS: CPU usage is normal: 0.52%")])
def test_cpu_threshold_is_strict(config, reporter, log_text, load, level):
    make_analyzer(config, reporter, load=load).report_cpu_load()
    assert level in log_text()


def test_run_reports_all_sections(config, reporter, log_text):
    reporter.open_report(config.report_path, [])

    make_analyzer(config, reporter, used=40, load=0.52).run()

    text = log_text()
    assert "SECTION: Analyzing System Resources" in text
    assert "INFO: Memory usage: 40%" in text
    assert "INFO: CPU usage: 0.52%" in text
    assert "INFO: Uptime:" in text
    report = reporter.read_report()
    assert "Top CPU Processes:" in report
    assert "python3" in report
    assert "System Uptime:" in report


def test_undecodable_tool_output_is_replaced(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "ps"
    script.write_text("#!/bin/sh\nprintf '  42  99.0 bad\\377name\\n'\n")
    script.chmod(0o755)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ['PATH']}")

    top = ProcessProbe(CapabilityRegistry()).top()

    assert top == [ProcessInfo(pid=42, command="bad\ufffdname", cpu_percent=99.0)]
