"""
Tests for the scheduler tick protocol.
"""

import sys
from datetime import datetime

import pytest

from cronscheduler import Scheduler
from cronscheduler.exceptions import FilesystemError, LabelNotFoundError, ScheduleSyntaxError

AT_QUARTER_PAST = datetime(2024, 5, 6, 10, 15, 0)
AT_SIXTEEN_PAST = datetime(2024, 5, 6, 10, 16, 0)


def test_shell_job_runs_only_when_due(tmp_path):
    scheduler = Scheduler(lock_dir=tmp_path)
    scheduler.raw('ping', 'echo pong').hourly(15)

    report = scheduler.tick(AT_QUARTER_PAST)
    assert report.count == 1
    assert 'ping' in report.jobs
    assert report.jobs['ping'].elapsed >= 0
    assert report.jobs['ping'].output.strip() == 'pong'
    assert report.elapsed >= 0
    assert report.end >= report.start
    assert not (tmp_path / 'cron-ping.lock').exists()

    report = scheduler.tick(AT_SIXTEEN_PAST)
    assert report.count == 0
    assert 'ping' not in report.jobs


def test_default_job_runs_every_tick():
    scheduler = Scheduler()
    scheduler.call('counter', lambda: 'tick')

    for minute in range(3):
        report = scheduler.tick(datetime(2024, 1, 1, 0, minute))
        assert report.count == 1


def test_locked_job_is_skipped(tmp_path):
    scheduler = Scheduler(lock_dir=tmp_path)
    scheduler.call('busy', lambda: 'ran')
    (tmp_path / 'cron-busy.lock').write_text('')

    report = scheduler.tick(AT_QUARTER_PAST)
    assert report.count == 0
    assert (tmp_path / 'cron-busy.lock').exists()


def test_always_job_ignores_lock(tmp_path):
    scheduler = Scheduler(lock_dir=tmp_path)
    scheduler.call('busy', lambda: 'ran').always()
    (tmp_path / 'cron-busy.lock').write_text('')

    report = scheduler.tick(AT_QUARTER_PAST)
    assert report.count == 1
    assert report.jobs['busy'].output == 'ran'
    assert (tmp_path / 'cron-busy.lock').exists()


def test_always_job_creates_no_lock(tmp_path):
    seen = []
    scheduler = Scheduler(lock_dir=tmp_path)
    scheduler.call('free', lambda: seen.append(list(tmp_path.iterdir()))).always()

    scheduler.tick(AT_QUARTER_PAST)
    assert seen == [[]]


def test_all_locks_are_taken_before_any_job_runs(tmp_path):
    observed = {}

    def first():
        observed['second_locked'] = (tmp_path / 'cron-second.lock').exists()
        observed['first_locked'] = (tmp_path / 'cron-first.lock').exists()

    scheduler = Scheduler(lock_dir=tmp_path)
    scheduler.call('first', first)
    scheduler.call('second', lambda: None)

    report = scheduler.tick(AT_QUARTER_PAST)
    assert report.count == 2
    assert list(report.jobs) == ['first', 'second']
    assert observed == {'first_locked': True, 'second_locked': True}
    assert list(tmp_path.iterdir()) == []


def test_locking_disabled_without_directory(tmp_path):
    scheduler = Scheduler()
    scheduler.call('job', lambda: 'ok')

    report = scheduler.tick(AT_QUARTER_PAST)
    assert report.count == 1
    assert not scheduler.locks.enabled


def test_guard_excludes_job_from_count():
    scheduler = Scheduler()
    scheduler.call('yes', lambda: 'y').when(lambda: True)
    scheduler.call('no', lambda: 'n').when(lambda: False)
    scheduler.call('truthy', lambda: 't').when(lambda flag: flag, 'not a bool')

    report = scheduler.tick(AT_QUARTER_PAST)
    assert report.count == 1
    assert list(report.jobs) == ['yes']


def test_guard_is_not_called_for_jobs_that_are_not_due():
    calls = []
    scheduler = Scheduler()
    scheduler.call('job', lambda: None).hourly(0).when(lambda: calls.append(1) or True)

    scheduler.tick(AT_QUARTER_PAST)
    assert calls == []


def test_output_is_appended_to_default_file(tmp_path):
    output_file = tmp_path / 'logs' / 'cron.log'
    scheduler = Scheduler(output_file=output_file)
    scheduler.call('hello', lambda: 'hello\n')

    scheduler.tick(AT_QUARTER_PAST)
    scheduler.tick(AT_SIXTEEN_PAST)

    assert output_file.read_text() == 'hello\nhello\n'


def test_job_output_file_overrides_default(tmp_path):
    default_file = tmp_path / 'default.log'
    job_file = tmp_path / 'jobs' / 'special.log'
    scheduler = Scheduler(output_file=default_file)
    scheduler.call('special', lambda: 'special\n').output(str(job_file))
    scheduler.call('plain', lambda: 'plain\n')

    scheduler.tick(AT_QUARTER_PAST)

    assert job_file.read_text() == 'special\n'
    assert default_file.read_text() == 'plain\n'


def test_empty_or_non_text_output_is_not_written(tmp_path):
    output_file = tmp_path / 'cron.log'
    scheduler = Scheduler(output_file=output_file)
    scheduler.call('empty', lambda: '')
    scheduler.call('none', lambda: None)
    scheduler.call('number', lambda: 42)

    report = scheduler.tick(AT_QUARTER_PAST)

    assert report.count == 3
    assert report.jobs['number'].output == 42
    assert not output_file.exists()


def test_output_discarded_without_any_file(tmp_path):
    scheduler = Scheduler()
    scheduler.raw('echo', 'echo discarded')

    report = scheduler.tick(AT_QUARTER_PAST)
    assert report.jobs['echo'].output.strip() == 'discarded'


def test_failing_actions_are_reported_like_successes(tmp_path):
    def explode():
        raise RuntimeError("boom")

    scheduler = Scheduler(lock_dir=tmp_path)
    scheduler.call('explode', explode)
    scheduler.raw('exit', 'echo failing; exit 3')

    report = scheduler.tick(AT_QUARTER_PAST)

    assert report.count == 2
    assert report.jobs['explode'].output is None
    assert report.jobs['exit'].output.strip() == 'failing'
    assert list(tmp_path.iterdir()) == []


def test_script_job(tmp_path):
    script = tmp_path / 'hello.py'
    script.write_text("print('from script')\n")

    scheduler = Scheduler()
    scheduler.script('script', script)

    report = scheduler.tick(AT_QUARTER_PAST)
    assert report.jobs['script'].output.strip() == 'from script'
    assert scheduler.executor.interpreter == sys.executable


def test_filesystem_error_aborts_remaining_jobs(tmp_path):
    lock_dir = tmp_path / 'locks'
    lock_dir.mkdir()
    blocker = tmp_path / 'not-a-directory'
    blocker.write_text('')

    ran = []
    scheduler = Scheduler(lock_dir=lock_dir)
    scheduler.call('ok', lambda: ran.append('ok'))
    scheduler.call('broken', lambda: 'output').output(str(blocker / 'out.log'))
    scheduler.call('later', lambda: ran.append('later'))

    with pytest.raises(FilesystemError) as exc_info:
        scheduler.tick(AT_QUARTER_PAST)

    assert ran == ['ok']
    assert list(exc_info.value.report.jobs) == ['ok']
    assert not (lock_dir / 'cron-broken.lock').exists()
    assert (lock_dir / 'cron-later.lock').exists()


def test_failing_guard_releases_locks_taken_in_snapshot(tmp_path):
    scheduler = Scheduler(lock_dir=tmp_path)
    scheduler.call('first', lambda: 'first')
    scheduler.call('second', lambda: 'second').when(lambda: 1 / 0)

    with pytest.raises(ZeroDivisionError):
        scheduler.tick(AT_QUARTER_PAST)

    assert list(tmp_path.iterdir()) == []

    retry = Scheduler(lock_dir=tmp_path)
    retry.call('first', lambda: 'first')
    report = retry.tick(AT_SIXTEEN_PAST)
    assert report.count == 1
    assert report.jobs['first'].output == 'first'


def test_malformed_expression_releases_locks_taken_in_snapshot(tmp_path):
    ran = []
    scheduler = Scheduler(lock_dir=tmp_path)
    scheduler.call('first', lambda: ran.append('first'))
    scheduler.call('second', lambda: ran.append('second')).at('61 * * * *')

    with pytest.raises(ScheduleSyntaxError):
        scheduler.tick(AT_QUARTER_PAST)

    assert ran == []
    assert not (tmp_path / 'cron-first.lock').exists()


def test_lock_creation_failure_aborts_tick_before_any_job_runs(tmp_path):
    lock_dir = tmp_path / 'locks'
    lock_dir.mkdir()

    ran = []
    scheduler = Scheduler(lock_dir=lock_dir)
    scheduler.call('first', lambda: ran.append('first'))
    scheduler.call('second', lambda: ran.append('second'))

    lock_dir.rmdir()
    lock_dir.write_text('')

    with pytest.raises(FilesystemError) as exc_info:
        scheduler.tick(AT_QUARTER_PAST)

    assert ran == []
    assert exc_info.value.report.jobs == {}
    assert exc_info.value.report.count == 0


def test_lock_removed_externally_aborts_tick(tmp_path):
    scheduler = Scheduler(lock_dir=tmp_path)
    scheduler.call('vanishing', lambda: (tmp_path / 'cron-vanishing.lock').unlink())

    with pytest.raises(FilesystemError):
        scheduler.tick(AT_QUARTER_PAST)


def test_unwritable_lock_dir_fails_construction(tmp_path):
    with pytest.raises(FilesystemError):
        Scheduler(lock_dir=tmp_path / 'missing')


def test_previous_and_next_run():
    scheduler = Scheduler()
    scheduler.raw('report', 'true').monday('16:30')

    reference = datetime(2024, 5, 8, 12, 0)  # Wednesday
    assert scheduler.previous_run('report', reference_time=reference) == '2024-05-06 16:30:00'
    assert scheduler.next_run('report', reference_time=reference) == '2024-05-13 16:30:00'
    assert scheduler.next_run('report', '%d/%m/%Y', reference) == '13/05/2024'


def test_previous_and_next_run_round_trip():
    reference = datetime(2024, 5, 8, 12, 7, 30)
    scheduler = Scheduler()

    for index, raw in enumerate(('*/5 * * * *', '0 */2 * * *', '15 3 1 * *', '0 0 1 1 *')):
        scheduler.raw(f"job {index}", 'true').at(raw)
        previous = scheduler.previous_run(f"job {index}", reference_time=reference)
        upcoming = scheduler.next_run(f"job {index}", reference_time=reference)

        assert previous != upcoming
        assert previous < reference.strftime('%Y-%m-%d %H:%M:%S') < upcoming


def test_run_queries_fail_for_unknown_or_invalid_jobs():
    scheduler = Scheduler()
    scheduler.raw('broken', 'true').at('61 * * * *')

    with pytest.raises(LabelNotFoundError):
        scheduler.next_run('missing')
    with pytest.raises(ScheduleSyntaxError):
        scheduler.previous_run('broken')
    with pytest.raises(ScheduleSyntaxError):
        scheduler.tick(AT_QUARTER_PAST)


def test_get_jobs_lists_resolved_configuration():
    scheduler = Scheduler()
    scheduler.raw('Nightly Backup', 'backup.sh').daily('2:30').always().output('/tmp/backup.log')
    scheduler.call('check', len, 'abc').when(lambda: True)

    jobs = scheduler.get_jobs()
    assert list(jobs) == ['nightly-backup', 'check']
    assert jobs['nightly-backup'] == {
        'action': 'ShellCommand',
        'target': 'backup.sh',
        'schedule': '30 2 * * *',
        'overlap': 'always_run',
        'output': '/tmp/backup.log',
        'guard': False,
    }
    assert jobs['check']['guard'] is True
    assert jobs['check']['schedule'] == '* * * * *'


def test_report_to_dict():
    scheduler = Scheduler()
    scheduler.call('text', lambda: 'out')
    scheduler.call('number', lambda: 3)

    data = scheduler.tick(AT_QUARTER_PAST).to_dict()
    assert data['count'] == 2
    assert data['jobs']['text']['output'] == 'out'
    assert data['jobs']['number']['output'] is None
    assert set(data) == {'jobs', 'start', 'end', 'elapsed', 'count'}
