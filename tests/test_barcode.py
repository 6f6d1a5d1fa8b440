"""
Unit Tests for Barcode Scan Handling
"""

from pos_dashboard.utils.barcode import ScanDebouncer, normalize_code


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestNormalizeCode:

    def test_strips_whitespace_and_control_characters(self):
        assert normalize_code(' 1234567890123\r\n') == '1234567890123'

    def test_none_is_empty(self):
        assert normalize_code(None) == ''

    def test_numbers_are_stringified(self):
        assert normalize_code(42) == '42'


class TestScanDebouncer:

    def test_first_scan_accepted(self):
        debouncer = ScanDebouncer(clock=FakeClock())
        assert debouncer.accept('123') is True
        assert debouncer.state['last_code'] == '123'

    def test_scan_inside_cooldown_ignored(self):
        clock = FakeClock()
        debouncer = ScanDebouncer(clock=clock)
        debouncer.accept('123')
        clock.now += 1.0
        assert debouncer.accept('456') is False

    def test_scan_after_cooldown_accepted(self):
        clock = FakeClock()
        debouncer = ScanDebouncer(clock=clock)
        debouncer.accept('123')
        clock.now += 1.5
        assert debouncer.accept('123') is True

    def test_ignored_scan_does_not_extend_cooldown(self):
        clock = FakeClock()
        debouncer = ScanDebouncer(clock=clock)
        debouncer.accept('123')
        clock.now += 1.0
        debouncer.accept('123')
        clock.now += 0.6
        assert debouncer.accept('123') is True

    def test_state_is_shared_dict(self):
        clock = FakeClock()
        state = {}
        ScanDebouncer(state, clock=clock).accept('123')
        assert ScanDebouncer(state, clock=clock).accept('123') is False

    def test_clock_going_backwards_accepts(self):
        clock = FakeClock()
        debouncer = ScanDebouncer(clock=clock)
        debouncer.accept('123')
        clock.now -= 10
        assert debouncer.accept('123') is True

    def test_reset(self):
        clock = FakeClock()
        debouncer = ScanDebouncer(clock=clock)
        debouncer.accept('123')
        debouncer.reset()
        assert debouncer.accept('123') is True
