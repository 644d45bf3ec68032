"""
resctl-bench: whole-system resource control benchmarks

Drives a latency-sensitive workload generator and a resource-control agent
through scripted scenarios, searches for converged steady-state operating
points and records reproducible results.

Package structure:
- core/: Benchmark engine (collector, aggregator, convergence, search, orchestrator)
- models/: Data models (samples, stats, verdicts, search state, results, scenarios)
- infra/: Collaborator interfaces, adapters and host communication
- reporting/: Result artifacts, Markdown reports and plots
- frontend: Command line interface
"""

__version__ = "1.0.0"
