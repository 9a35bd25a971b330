"""Tests for the host collaborators in stepper.host."""

from __future__ import annotations

from stepper.host import InMemoryHost, LoopScheduler


class TestLoopScheduler:
    def _scheduler(self):
        now = [0.0]
        return now, LoopScheduler(clock=lambda: now[0])

    def test_nothing_runs_before_due(self):
        now, scheduler = self._scheduler()
        calls = []
        scheduler.call_later(1.0, lambda: calls.append("a"))
        assert scheduler.run_pending() == 0
        assert calls == []

    def test_due_callbacks_run_in_due_order(self):
        now, scheduler = self._scheduler()
        calls = []
        scheduler.call_later(2.0, lambda: calls.append("late"))
        scheduler.call_later(1.0, lambda: calls.append("early"))
        now[0] = 5.0
        assert scheduler.run_pending() == 2
        assert calls == ["early", "late"]
        assert scheduler.pending == 0

    def test_cancelled_callbacks_do_not_run(self):
        now, scheduler = self._scheduler()
        calls = []
        handle = scheduler.call_later(1.0, lambda: calls.append("a"))
        handle.cancel()
        now[0] = 1.0
        assert scheduler.run_pending() == 0
        assert calls == []

    def test_callback_can_cancel_a_later_one(self):
        now, scheduler = self._scheduler()
        calls = []
        second = scheduler.call_later(2.0, lambda: calls.append("second"))
        scheduler.call_later(1.0, second.cancel)
        now[0] = 2.0
        assert scheduler.run_pending() == 1
        assert calls == []

    def test_rescheduling_waits_for_next_drain(self):
        now, scheduler = self._scheduler()
        calls = []

        def tick():
            calls.append(now[0])
            scheduler.call_later(1.0, tick)

        scheduler.call_later(1.0, tick)
        now[0] = 1.0
        scheduler.run_pending()
        scheduler.run_pending()
        assert calls == [1.0]
        now[0] = 2.0
        scheduler.run_pending()
        assert calls == [1.0, 2.0]


class TestInMemoryHost:
    def test_records_notifications(self):
        host = InMemoryHost({"m": 2})
        host.set_external_value("E", 18)
        host.highlight_range(3, 9)
        host.apply_variable_cue(["E"])
        host.clear_all_cues()
        host.report_error("boom")
        assert host.get_external_values() == {"m": 2, "E": 18}
        assert host.highlights == [(3, 9)]
        assert host.cues == [frozenset({"E"})]
        assert host.cleared == 1
        assert host.errors == ["boom"]
