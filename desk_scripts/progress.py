import logging
import sys
import time

from progressbar import ProgressBar
from progressbar.widgets import Bar, Counter, Percentage, Variable

logger = logging.getLogger(__name__)


def _quietly(fn, *args, **kwargs):
    # Progress output is cosmetic, a broken terminal must not stop a bulk run.
    try:
        fn(*args, **kwargs)
    except Exception as e:
        logger.debug(f'progress output failed: {e}')


class DotProgress:
    """One character per unit of work: `.` normally, `-` every 10th unit and `|` every 100th."""

    def __init__(self, stream=None):
        self.stream = stream
        self.count = 0

    def _write(self, text):
        stream = self.stream or sys.stdout
        stream.write(text)
        stream.flush()

    def advance(self, label=None):
        self.count += 1
        if self.count % 100 == 0:
            marker = '|'
        elif self.count % 10 == 0:
            marker = '-'
        else:
            marker = '.'
        _quietly(self._write, marker)

    def finish(self):
        if self.count:
            _quietly(self._write, '\n')


class BarProgress:
    """A bounded bar showing `current/total`, the percentage and the label of the last unit."""

    def __init__(self, total, label='', fd=None):
        self.total = total
        self.count = 0
        widgets = [
            label,
            Counter(format='%(value)d/%(max_value)d'),
            ' ',
            Percentage(),
            ' ',
            Bar(),
            ' ',
            Variable('current', format='{formatted_value}', width=30),
        ]
        self.bar = ProgressBar(
            widgets=widgets, max_value=total, fd=fd or sys.stderr
        )
        _quietly(self.bar.start)

    def advance(self, label=None):
        self.count += 1
        value = self.count
        if value > self.total:
            logger.debug(f'progress overflow: {value} of {self.total}')
            value = self.total
        _quietly(self.bar.update, value, current=label or '')

    def finish(self):
        _quietly(self.bar.finish)


def countdown(seconds, sleep=None, fd=None, tick=0.1):
    """Block for `seconds`, drawing a bar that shrinks as the time runs out."""
    sleep = sleep or time.sleep
    ticks = int(round(seconds / tick))
    bar = ProgressBar(
        widgets=[f'Next pass in {seconds}s ', Bar()], max_value=ticks, fd=fd or sys.stderr
    )
    _quietly(bar.start)
    for elapsed in range(ticks):
        _quietly(bar.update, ticks - elapsed)
        sleep(tick)
    _quietly(bar.update, 0)
    _quietly(bar.finish, dirty=True)
