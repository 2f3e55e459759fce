"""TLS certificate hot reload"""

import os
import ssl
import threading
from typing import Optional, Tuple

from .log_service import log_service


class TLSReloader:
    """Reloads a certificate chain into a live SSLContext when the files change"""

    def __init__(self, certfile: str, keyfile: str, context: Optional[ssl.SSLContext] = None):
        self.certfile = certfile
        self.keyfile = keyfile
        self.context = context or ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self._lock = threading.Lock()
        self._mtimes: Tuple[float, float] = (0.0, 0.0)

    def _current_mtimes(self) -> Tuple[float, float]:
        return os.stat(self.certfile).st_mtime, os.stat(self.keyfile).st_mtime

    def load(self):
        """Load the keypair; raises on failure"""
        with self._lock:
            mtimes = self._current_mtimes()
            self.context.load_cert_chain(self.certfile, self.keyfile)
            self._mtimes = mtimes

    def reload(self) -> bool:
        """Swap in the keypair if it changed on disk; keep the old one on error"""
        try:
            mtimes = self._current_mtimes()
        except OSError as e:
            log_service.error(
                f"Keeping old TLS certificate because the new one could not be loaded: {e}"
            )
            return False
        if mtimes == self._mtimes:
            return False

        # validate on a scratch context so a bad pair never reaches the live one
        try:
            probe = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            probe.load_cert_chain(self.certfile, self.keyfile)
        except (OSError, ssl.SSLError) as e:
            log_service.error(
                f"Keeping old TLS certificate because the new one could not be loaded: {e}"
            )
            return False

        with self._lock:
            self.context.load_cert_chain(self.certfile, self.keyfile)
            self._mtimes = mtimes
        log_service.info(f"Reloaded TLS certificate {self.certfile}")
        return True
