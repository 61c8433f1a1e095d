"""
Tests for the job registry and job handles.
"""

import pytest

from cronscheduler.exceptions import LabelExistsError, LabelNotFoundError
from cronscheduler.models import OverlapPolicy, ShellCommand
from cronscheduler.registry import JobRegistry, normalize_label


@pytest.mark.parametrize("label", ["Send Mail", "send_mail", "sendMail", "  send--mail  ", "SEND MAIL"])
def test_normalize_label(label):
    assert normalize_label(label) == 'send-mail'


def test_normalize_label_rejects_empty():
    with pytest.raises(ValueError):
        normalize_label(' -- ')


def test_duplicate_label_is_rejected():
    registry = JobRegistry()
    registry.register('Send Mail', ShellCommand('mail'))

    with pytest.raises(LabelExistsError):
        registry.register('send_mail', ShellCommand('other'))

    assert len(registry) == 1
    assert registry.lookup('send-mail').action == ShellCommand('mail')


def test_lookup_unknown_label():
    registry = JobRegistry()

    with pytest.raises(LabelNotFoundError):
        registry.lookup('missing')
    with pytest.raises(LabelNotFoundError):
        registry.lookup('---')


def test_registration_order_and_defaults():
    registry = JobRegistry()
    for label in ('c', 'a', 'b'):
        registry.register(label, ShellCommand(f"echo {label}"))

    jobs = registry.all()
    assert [job.label for job in jobs] == ['c', 'a', 'b']
    assert all(str(job.schedule) == '* * * * *' for job in jobs)
    assert all(job.overlap is OverlapPolicy.SKIP_IF_LOCKED for job in jobs)
    assert 'A' in registry


def test_handle_modifies_only_its_own_job():
    registry = JobRegistry()
    first = registry.register('first', ShellCommand('one'))
    registry.register('second', ShellCommand('two'))

    first.daily('9:00').always().output('/tmp/first.log')

    job = registry.lookup('first')
    assert str(job.schedule) == '0 9 * * *'
    assert job.overlap is OverlapPolicy.ALWAYS_RUN
    assert job.output == '/tmp/first.log'

    other = registry.lookup('second')
    assert str(other.schedule) == '* * * * *'
    assert other.overlap is OverlapPolicy.SKIP_IF_LOCKED
    assert other.output is None


def test_handle_schedule_shortcuts():
    registry = JobRegistry()
    handle = registry.register('report', ShellCommand('report'))

    assert str(handle.monday('16:30').job.schedule) == '30 16 * * 1'
    assert str(handle.march(2, '7:05').job.schedule) == '5 7 2 3 *'
    assert str(handle.every_months(6).job.schedule) == '0 0 1 */6 *'
    assert str(handle.at('0 */2 * * *').job.schedule) == '0 */2 * * *'


def test_guard_requires_literal_true():
    registry = JobRegistry()
    handle = registry.register('guarded', ShellCommand('x'))

    handle.when(lambda value: value, 1)
    assert not handle.job.guard.allows()

    handle.when(lambda a, b: a == b, 'x', 'x')
    assert handle.job.guard.allows()
