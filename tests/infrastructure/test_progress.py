"""
Tests for the live progress channel (progress.py)
"""

from model_testbench.infrastructure.progress import ProgressChannel


class TestProgressChannel:

    def test_lines_are_kept_per_run(self):
        channel = ProgressChannel()
        channel.start(1)
        channel.append(1, "first")
        channel.append(2, "other run")
        channel.append(1, "second")
        assert channel.lines(1) == ["first", "second"]
        assert channel.lines("2") == ["other run"]

    def test_start_resets_lines(self):
        channel = ProgressChannel()
        channel.append(1, "old")
        channel.mark_completed(1, "done")
        channel.start(1)
        assert channel.lines(1) == []
        assert not channel.is_completed(1)

    def test_completion(self):
        channel = ProgressChannel()
        channel.start(1)
        channel.mark_completed(1, "3/4 passed")
        assert channel.is_completed(1)
        assert channel.result(1) == "3/4 passed"

    def test_listener_receives_events(self):
        channel = ProgressChannel()
        events = []
        channel.subscribe(events.append)
        channel.append(1, "hello")
        activity_id = channel.activity_started("gpt-4o-mini", "Question 1", test_type="question")
        channel.activity_ended(activity_id)
        assert [e.kind for e in events] == ["append", "activity_started", "activity_ended"]
        assert events[0].message == "hello"
        assert events[0].run_id == "1"

    def test_unsubscribe(self):
        channel = ProgressChannel()
        events = []
        unsubscribe = channel.subscribe(events.append)
        unsubscribe()
        channel.append(1, "hello")
        assert events == []

    def test_failing_listener_does_not_break_publishing(self):
        channel = ProgressChannel()
        events = []

        def broken(event):
            raise RuntimeError("listener down")

        channel.subscribe(broken)
        channel.subscribe(events.append)
        channel.append(1, "hello")
        assert len(events) == 1
        assert channel.lines(1) == ["hello"]

    def test_clear_forgets_run(self):
        channel = ProgressChannel()
        channel.start(1)
        channel.append(1, "hello")
        channel.mark_completed(1, "done")
        channel.clear(1)
        assert channel.lines(1) == []
        assert not channel.is_completed(1)

    def test_oldest_completed_runs_are_dropped(self):
        channel = ProgressChannel(max_runs=2)
        for run_id in (1, 2):
            channel.start(run_id)
            channel.append(run_id, f"run {run_id}")
            channel.mark_completed(run_id, "done")
        channel.start(3)
        assert channel.lines(1) == []
        assert not channel.is_completed(1)
        assert channel.lines(2) == ["run 2"]
        assert channel.is_completed(2)

    def test_running_runs_are_kept(self):
        channel = ProgressChannel(max_runs=1)
        channel.start(1)
        channel.append(1, "still running")
        channel.start(2)
        assert channel.lines(1) == ["still running"]
