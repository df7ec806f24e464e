"""Test fixtures for mipmodel tests."""

import pytest

from mipmodel import Model
from mipmodel.engine import Engine


class RecordingEngine(Engine):
    """Engine that records every problem-definition call it receives."""

    def __init__(self, name=""):
        self.calls = []
        super().__init__(name)

    def _log_call(self, method, *args):
        self.calls.append((method,) + args)

    def add_column(self, *args):
        self._log_call('add_column', *args)
        super().add_column(*args)

    def add_row(self, *args):
        self._log_call('add_row', *args)
        super().add_row(*args)

    def set_row_lower(self, *args):
        self._log_call('set_row_lower', *args)
        super().set_row_lower(*args)

    def set_row_upper(self, *args):
        self._log_call('set_row_upper', *args)
        super().set_row_upper(*args)

    def set_objective_coefficient(self, *args):
        self._log_call('set_objective_coefficient', *args)
        super().set_objective_coefficient(*args)

    def set_objective_sense(self, *args):
        self._log_call('set_objective_sense', *args)
        super().set_objective_sense(*args)

    def add_sos(self, *args):
        self._log_call('add_sos', *args)
        super().add_sos(*args)

    def set_max_seconds(self, *args):
        self._log_call('set_max_seconds', *args)
        super().set_max_seconds(*args)

    def calls_to(self, method):
        return [call[1:] for call in self.calls if call[0] == method]


@pytest.fixture
def model():
    """Fresh model, freed after the test."""
    m = Model("test")
    yield m
    m.free()


@pytest.fixture
def recording_model(monkeypatch):
    """Model whose engine records the calls made to it."""
    monkeypatch.setattr('mipmodel.model.Engine', RecordingEngine)
    m = Model("recorded")
    yield m
    m.free()
