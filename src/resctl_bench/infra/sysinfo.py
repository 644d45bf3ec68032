"""
Host description recorded with every benchmark result.
"""

import platform
import socket
from typing import Any, Dict

import psutil


def get_memory_info() -> Dict[str, int]:
    """Returns total memory and swap in bytes."""
    mem = psutil.virtual_memory()
    swap = psutil.swap_memory()
    return {"mem_total": mem.total, "swap_total": swap.total}


def collect_host_info() -> Dict[str, Any]:
    """
    Describe the machine running the bench.

    Returns:
        Dictionary with hostname, kernel, CPU and memory information
    """
    info: Dict[str, Any] = {
        "hostname": socket.gethostname(),
        "kernel": platform.release(),
        "machine": platform.machine(),
        "python": platform.python_version(),
        "cpu_count": psutil.cpu_count(logical=True),
        "cpu_count_physical": psutil.cpu_count(logical=False),
    }
    info.update(get_memory_info())
    return info
