"""Memory, CPU and uptime analysis."""

from typing import List, Optional

from .capabilities import MemoryProbe, ProcessProbe, UptimeProbe
from .models import DoctorConfig, MemoryUsage, ProcessInfo
from .reporter import Reporter
from ..utils.formatters import truncate_string


def format_process_table(processes: List[ProcessInfo]) -> str:
    lines = [f"{'PID':>7} {'COMMAND':<40} {'%CPU':>6}"]
    for process in processes:
        lines.append(f"{process.pid:>7} {truncate_string(process.command, 40):<40} {process.cpu_percent:>6.1f}")
    return "\n".join(lines)


def format_load(load: float) -> str:
    return f"{load:g}"


class ResourceAnalyzer:
    """Compares memory and CPU load against their thresholds."""

    def __init__(self, config: DoctorConfig, reporter: Reporter, memory: MemoryProbe,
                 processes: ProcessProbe, uptime: UptimeProbe):
        self.config = config
        self.reporter = reporter
        self.memory = memory
        self.processes = processes
        self.uptime = uptime

    def run(self) -> None:
        self.reporter.section("Analyzing System Resources")
        self.report_memory()
        self.report_top_processes()
        self.report_cpu_load()
        self.report_uptime()

    def report_memory(self) -> Optional[MemoryUsage]:
        usage = self.memory.usage()
        if usage is None:
            self.reporter.warning("Could not determine memory usage")
            return None

        percent = usage.percent
        self.reporter.block("Memory Usage:", usage.detail)
        self.reporter.info(f"Memory usage: {percent}%")
        self.reporter.mirror(f"Memory usage: {percent}%")

        if percent > self.config.memory_threshold:
            self.reporter.warning(f"High memory usage detected: {percent}%")
        else:
            self.reporter.success(f"Memory usage is normal: {percent}%")
        return usage

    def report_top_processes(self) -> Optional[List[ProcessInfo]]:
        top = self.processes.top(self.config.top_processes)
        if top is None:
            self.reporter.warning("Could not list processes (ps unavailable)")
            return None

        self.reporter.block("Top CPU Processes:", format_process_table(top))
        return top

    def report_cpu_load(self) -> Optional[float]:
        # Load average, not a utilization percentage; compared to the
        # percentage threshold as-is.
        load = self.uptime.load_figure()
        if load is None:
            self.reporter.warning("Could not determine CPU load")
            return None

        shown = format_load(load)
        self.reporter.info(f"CPU usage: {shown}%")
        self.reporter.mirror(f"\nCPU usage: {shown}%")

        if load > self.config.cpu_threshold:
            self.reporter.warning(f"High CPU usage detected: {shown}%")
        else:
            self.reporter.success(f"CPU usage is normal: {shown}%")
        return load

    def report_uptime(self) -> Optional[str]:
        text = self.uptime.uptime()
        if text is None:
            self.reporter.warning("Could not determine system uptime")
            return None

        self.reporter.block("System Uptime:", text)
        self.reporter.info(f"Uptime: {text}")
        return text
