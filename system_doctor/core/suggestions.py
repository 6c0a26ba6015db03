"""Advisory cleanup commands for the package and log managers present."""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .capabilities import CacheSizeProbe, CapabilityRegistry, JournalProbe
from .reporter import Reporter


@dataclass
class Suggestion:
    """One piece of advice: an optional size reading and commands to run by hand."""
    tool: str
    size_label: Optional[str] = None
    size: str = ""
    commands: Tuple[str, ...] = ()
    intro: Optional[str] = None


@dataclass
class PackageCache:
    tool: str
    label: str
    cache_path: str
    command: str


PACKAGE_CACHES = [
    PackageCache('apt-get', "APT cache size", '/var/cache/apt/archives', 'sudo apt-get clean'),
    PackageCache('pacman', "Pacman cache size", '/var/cache/pacman/pkg', 'sudo pacman -Sc'),
]

UNUSED_PACKAGE_COMMANDS = [
    ('apt-get', 'sudo apt-get autoremove --dry-run'),
    ('pacman', 'pacman -Qtdq'),
]


class SuggestionEngine:
    """Prints what a human could run to reclaim space. Runs none of it."""

    def __init__(self, reporter: Reporter, registry: CapabilityRegistry):
        self.reporter = reporter
        self.registry = registry
        self.cache_sizes = CacheSizeProbe(registry)
        self.journal = JournalProbe(registry)

    def collect(self) -> List[Suggestion]:
        suggestions = []

        for cache in PACKAGE_CACHES:
            if self.registry.available(cache.tool):
                suggestions.append(Suggestion(
                    tool=cache.tool,
                    size_label=cache.label,
                    size=self.cache_sizes.size(cache.cache_path),
                    commands=(f"You can free space with: {cache.command}",),
                ))

        if self.journal.available:
            suggestions.append(Suggestion(
                tool='journalctl',
                size_label="Journal logs size",
                size=self.journal.disk_usage(),
                commands=("You can free space with: sudo journalctl --vacuum-time=7d",),
            ))

        if self.registry.available('snapper'):
            suggestions.append(Suggestion(
                tool='snapper',
                intro="You may have old snapshots taking up space.",
                commands=("Check with: sudo snapper list",
                          "Delete old ones with: sudo snapper delete NUMBER"),
            ))

        for tool, command in UNUSED_PACKAGE_COMMANDS:
            if self.registry.available(tool):
                suggestions.append(Suggestion(
                    tool=tool,
                    commands=(f"Check for unused packages with: {command}",),
                ))
                break

        return suggestions

    def run(self) -> List[Suggestion]:
        self.reporter.section("Cleanup Suggestions")

        suggestions = self.collect()
        for suggestion in suggestions:
            self.reporter.mirror("")
            if suggestion.size_label:
                self.reporter.note(f"{suggestion.size_label}: {suggestion.size}", fg='yellow')
            if suggestion.intro:
                self.reporter.note(suggestion.intro)
            for command in suggestion.commands:
                self.reporter.note(command, fg='green')

        if not suggestions:
            self.reporter.note("No package or log manager cleanup suggestions for this host.")
        return suggestions
