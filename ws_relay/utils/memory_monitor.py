"""
Process memory watchdog for the relay

A background thread samples the resident set size with psutil. Crossing the
cleanup level runs the registered release hooks (the relay registers one that
forgets finished sessions) followed by a garbage collection pass.
"""

import gc
import threading
import time
from collections import deque
from typing import Any, Callable, Dict, List, Optional

import psutil

from ..production_config import config
from .logging import get_logger

logger = get_logger(__name__)

MB = 1024 * 1024

LEVEL_OK = 'OK'
LEVEL_WARNING = 'WARNING'
LEVEL_HIGH = 'HIGH'
LEVEL_CRITICAL = 'CRITICAL'


class MemoryMonitor:
    """
    Samples RSS every check_interval seconds and reacts to three levels:
    warning (log), cleanup (run hooks) and max (run hooks, then collect again)
    """

    def __init__(self,
                 max_memory_mb: int = 1024,
                 warning_threshold_mb: int = 512,
                 check_interval: float = 30,
                 cleanup_threshold_mb: int = 768):
        self.max_memory_mb = max_memory_mb
        self.warning_threshold_mb = warning_threshold_mb
        self.cleanup_threshold_mb = cleanup_threshold_mb
        self.check_interval = check_interval

        self.process = psutil.Process()
        self.running = False
        self.monitor_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        self.history = deque(maxlen=100)
        self.cleanup_callbacks: Dict[str, Callable[[], Any]] = {}
        self.stats = {
            'peak_memory_mb': 0.0,
            'samples': 0,
            'warnings': 0,
            'cleanups': 0,
            'last_cleanup_time': None
        }

    def add_cleanup_callback(self, callback: Callable[[], Any], name: str):
        """Register a release hook; registering a name again replaces it"""
        self.cleanup_callbacks[name] = callback
        logger.debug(f"Registered memory release hook {name}")

    def level_for(self, memory_mb: float) -> str:
        if memory_mb >= self.max_memory_mb:
            return LEVEL_CRITICAL
        if memory_mb >= self.cleanup_threshold_mb:
            return LEVEL_HIGH
        if memory_mb >= self.warning_threshold_mb:
            return LEVEL_WARNING
        return LEVEL_OK

    def get_memory_usage(self) -> Dict[str, float]:
        """Current RSS/VMS in MB; zeros if the process cannot be inspected"""
        try:
            info = self.process.memory_info()
            usage = {
                'rss_mb': info.rss / MB,
                'vms_mb': info.vms / MB,
                'percent': self.process.memory_percent(),
                'available_mb': psutil.virtual_memory().available / MB
            }
        except psutil.Error as e:
            logger.error(f"Could not read process memory: {e}")
            return {'rss_mb': 0.0, 'vms_mb': 0.0, 'percent': 0.0, 'available_mb': 0.0}

        self.stats['peak_memory_mb'] = max(self.stats['peak_memory_mb'], usage['rss_mb'])
        return usage

    def check_memory(self) -> bool:
        """
        Take one sample and act on it

        Returns:
            bool: True if release hooks ran
        """
        rss_mb = self.get_memory_usage()['rss_mb']
        self.stats['samples'] += 1
        self.history.append((time.time(), rss_mb))

        level = self.level_for(rss_mb)
        if level == LEVEL_CRITICAL:
            logger.critical(f"RSS {rss_mb:.1f}MB at or above limit {self.max_memory_mb}MB")
            self.force_cleanup()
            return True
        if level == LEVEL_HIGH:
            logger.warning(f"RSS {rss_mb:.1f}MB at or above cleanup level {self.cleanup_threshold_mb}MB")
            self.trigger_cleanup()
            return True
        if level == LEVEL_WARNING:
            self.stats['warnings'] += 1
            # One line per ten consecutive warnings
            if self.stats['warnings'] % 10 == 1:
                logger.warning(f"RSS {rss_mb:.1f}MB at or above warning level {self.warning_threshold_mb}MB")
        return False

    def trigger_cleanup(self) -> List[str]:
        """Run every release hook, then collect; returns one line per hook"""
        results = []
        for name, callback in list(self.cleanup_callbacks.items()):
            try:
                results.append(f"{name}: {callback()}")
            except Exception as e:
                logger.error(f"Memory release hook {name} failed: {e}")
                results.append(f"{name}: ERROR - {e}")

        results.append(f"gc: {gc.collect()} objects")
        self.stats['cleanups'] += 1
        self.stats['last_cleanup_time'] = time.time()

        logger.info(f"Memory cleanup done ({'; '.join(results)}), "
                    f"RSS now {self.get_memory_usage()['rss_mb']:.1f}MB")
        return results

    def force_cleanup(self):
        self.trigger_cleanup()
        gc.collect(2)

        rss_mb = self.get_memory_usage()['rss_mb']
        if rss_mb >= self.max_memory_mb:
            logger.critical(f"RSS still {rss_mb:.1f}MB after forced cleanup")

    def start_monitoring(self):
        if self.running:
            return
        self.running = True
        self._stop_event.clear()
        self.monitor_thread = threading.Thread(target=self._run, name="ws-relay-memory", daemon=True)
        self.monitor_thread.start()
        logger.info(f"Memory monitor running every {self.check_interval}s "
                    f"(warn {self.warning_threshold_mb}MB, cleanup {self.cleanup_threshold_mb}MB, "
                    f"max {self.max_memory_mb}MB)")

    def stop_monitoring(self):
        self.running = False
        self._stop_event.set()
        thread = self.monitor_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=5)
        self.monitor_thread = None
        logger.info("Memory monitor stopped")

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.check_memory()
            except Exception as e:
                logger.error(f"Memory check failed: {e}")
            self._stop_event.wait(self.check_interval)

    def get_stats(self) -> Dict[str, Any]:
        usage = self.get_memory_usage()
        return {
            'current_memory': usage,
            'thresholds': {
                'warning_mb': self.warning_threshold_mb,
                'cleanup_mb': self.cleanup_threshold_mb,
                'max_mb': self.max_memory_mb
            },
            'stats': dict(self.stats),
            'status': self.level_for(usage['rss_mb'])
        }


_memory_monitor: Optional[MemoryMonitor] = None
_memory_monitor_lock = threading.Lock()


def get_memory_monitor() -> MemoryMonitor:
    """Process-wide monitor built from the configured thresholds"""
    global _memory_monitor
    with _memory_monitor_lock:
        if _memory_monitor is None:
            _memory_monitor = MemoryMonitor(
                max_memory_mb=config.MAX_MEMORY_MB,
                warning_threshold_mb=config.WARNING_MEMORY_MB,
                cleanup_threshold_mb=config.CLEANUP_MEMORY_MB,
                check_interval=config.MEMORY_CHECK_INTERVAL
            )
        return _memory_monitor
