"""
Barcode Scan Handling
Decoding happens in the browser; the server applies the scan cooldown and
normalises the decoded text before the catalog lookup.
"""

import time

DEFAULT_COOLDOWN_SECONDS = 1.5


def normalize_code(code):
    """Strip whitespace and scanner control characters from decoded text"""
    if code is None:
        return ''
    return ''.join(ch for ch in str(code) if ch.isprintable()).strip()


class ScanDebouncer:
    """
    Ignore scans that arrive while a previous scan is cooling down.

    A camera keeps decoding the same code while it is in frame; only the
    first decode inside a cooldown window is accepted. State is a plain dict
    so it can live in the Flask session.
    """

    def __init__(self, state=None, cooldown=DEFAULT_COOLDOWN_SECONDS, clock=time.time):
        self.state = state if state is not None else {}
        self.cooldown = cooldown
        self.clock = clock

    def accept(self, code):
        """
        Register a scan

        Args:
            code: Decoded barcode text

        Returns:
            bool: True if the scan should be processed
        """
        now = self.clock()
        last_at = self.state.get('last_scan_at')
        if last_at is not None and 0 <= now - last_at < self.cooldown:
            return False
        self.state['last_scan_at'] = now
        self.state['last_code'] = code
        return True

    def reset(self):
        self.state.pop('last_scan_at', None)
        self.state.pop('last_code', None)
