"""
Timing instrumentation for analysis runs.

Usage:
    from unity_analyzer.timing import AnalyzeTimer

    timer = AnalyzeTimer()
    timer.start()

    with timer.phase("load"):
        # read dump files

    with timer.phase("process", items=len(objects)):
        # run processors

    timer.stop()
    print(timer.report())
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class PhaseStats:
    """Stats for a single phase."""
    name: str
    start_time: float = 0.0
    end_time: float = 0.0
    duration: float = 0.0
    items_processed: int = 0

    @property
    def items_per_second(self) -> float:
        if self.duration > 0:
            return self.items_processed / self.duration
        return 0.0


@dataclass
class AnalyzeTimer:
    """
    Timer for tracking analysis performance across phases.

    Phases:
    - discovery: expanding input paths to dump files
    - load: reading and validating dump JSON
    - process: running asset processors
    - commit: flushing each file's rows to the database
    """

    phases: dict = field(default_factory=dict)
    total_start: float = 0.0
    total_end: float = 0.0

    total_assets: int = 0
    shaders: int = 0
    sub_programs: int = 0
    skipped: int = 0
    db_writes: int = 0

    PHASE_ORDER = ("discovery", "load", "process", "commit")

    def start(self):
        self.total_start = time.perf_counter()

    def stop(self):
        self.total_end = time.perf_counter()

    @contextmanager
    def phase(self, name: str, items: int = 0):
        """Context manager for timing a phase. Phases may be entered repeatedly."""
        if name not in self.phases:
            self.phases[name] = PhaseStats(name=name)

        stats = self.phases[name]
        phase_start = time.perf_counter()

        try:
            yield stats
        finally:
            phase_end = time.perf_counter()
            if stats.start_time == 0:
                stats.start_time = phase_start
            stats.end_time = phase_end
            stats.duration += phase_end - phase_start
            stats.items_processed += items

    def increment_counter(self, counter_name: str, amount: int = 1):
        """Increment a counter (shaders, sub_programs, skipped, ...)."""
        if hasattr(self, counter_name):
            setattr(self, counter_name, getattr(self, counter_name) + amount)

    @property
    def total_duration(self) -> float:
        if self.total_end > 0:
            return self.total_end - self.total_start
        return time.perf_counter() - self.total_start

    def report(self) -> str:
        """Generate a timing report."""
        lines = []
        lines.append("=" * 60)
        lines.append("ANALYSIS PERFORMANCE REPORT")
        lines.append("=" * 60)
        lines.append("")

        lines.append(f"Total time: {self._format_duration(self.total_duration)}")
        lines.append(f"Total assets: {self.total_assets:,}")
        if self.total_assets > 0 and self.total_duration > 0:
            lines.append(f"Overall rate: {self.total_assets / self.total_duration:.1f} assets/sec")
        lines.append("")

        lines.append("PHASE BREAKDOWN")
        lines.append("-" * 60)

        ordered = [p for p in self.PHASE_ORDER if p in self.phases]
        ordered += [p for p in self.phases if p not in self.PHASE_ORDER]

        for phase_name in ordered:
            stats = self.phases[phase_name]
            pct = (stats.duration / self.total_duration * 100) if self.total_duration > 0 else 0
            rate_str = f" ({stats.items_per_second:.1f}/sec)" if stats.items_processed > 0 else ""
            lines.append(
                f"  {phase_name:20s}: {self._format_duration(stats.duration):>10s} "
                f"({pct:5.1f}%) - {stats.items_processed:,} items{rate_str}"
            )

        lines.append("")

        lines.append("DETAILED METRICS")
        lines.append("-" * 60)
        lines.append(f"  Shaders:            {self.shaders:,}")
        lines.append(f"  Sub-programs:       {self.sub_programs:,}")
        lines.append(f"  Skipped assets:     {self.skipped:,}")
        lines.append(f"  Database writes:    {self.db_writes:,}")

        lines.append("")
        lines.append("=" * 60)

        return "\n".join(lines)

    def _format_duration(self, seconds: float) -> str:
        """Format duration as human-readable string."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            mins = int(seconds // 60)
            secs = seconds % 60
            return f"{mins}m {secs:.0f}s"
        else:
            hours = int(seconds // 3600)
            mins = int((seconds % 3600) // 60)
            return f"{hours}h {mins}m"

    def to_dict(self) -> dict:
        """Export timing data as dict for logging/analysis."""
        return {
            "total_duration": self.total_duration,
            "total_assets": self.total_assets,
            "shaders": self.shaders,
            "sub_programs": self.sub_programs,
            "skipped": self.skipped,
            "db_writes": self.db_writes,
            "phases": {
                name: {
                    "duration": stats.duration,
                    "items": stats.items_processed,
                    "rate": stats.items_per_second,
                }
                for name, stats in self.phases.items()
            },
        }
