"""
Infrastructure for the benchmark engine.

Contains:
- collaborators: Workload generator and resource agent interfaces
- communicator: Local and SSH control-file access to the benchmarked host
- adapters: rd-hashd and resource agent adapters over control files
- sysinfo: Host description for result records
"""

from .collaborators import ConfigureResult, ResourceAgent, WorkloadGenerator
from .communicator import (
    Communicator,
    LocalCommunicator,
    SSHCommunicator,
    create_communicator,
)
from .adapters import AgentControl, HashdParams, HashdWorkload, parse_size
from .sysinfo import collect_host_info
