"""Utility functions for logging."""


def _log_debug(message: str) -> None:
    """Append a simple debug line to the k8sdiag log.

    Writes timestamped lines to ``state_root()/k8sdiag.log``. Every external
    command and result relocation goes through here so a failed session on a
    node can be reconstructed afterwards. Fully exception-safe: any IO error
    is silently ignored so this function never raises or affects callers.
    """
    try:
        import time

        from ..core.config import state_root

        log_path = state_root() / "k8sdiag.log"
        log_path.parent.mkdir(parents=True, exist_ok=True)
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(f"[{timestamp}] {message}\n")
    except Exception:
        pass
