"""Tests for the actuator."""

import logging

import pytest

from colony_kernel.actuation.fabric import ActuationError, Actuator
from colony_kernel.models.actuation import CommandVerb
from colony_kernel.models.world import Position


class TestActuator:
    def setup_method(self):
        self.tick = 7
        self.actuator = Actuator(clock=lambda: self.tick)

    def test_issue_records_command(self):
        command = self.actuator.issue("w1", CommandVerb.HARVEST, target_id="s1")
        assert command.success
        assert command.tick == 7
        assert self.actuator.issued == [command]

    def test_verb_may_be_given_as_text(self):
        command = self.actuator.issue(
            "w1", "move", position=Position(x=1, y=2, region="W1N1"),
        )
        assert command.verb == CommandVerb.MOVE
        assert command.position.y == 2

    def test_unknown_verb_raises(self):
        with pytest.raises(ActuationError):
            self.actuator.issue("w1", "teleport")
        assert self.actuator.issued == []

    def test_custom_executor_receives_command(self):
        received = []
        self.actuator.register_executor(CommandVerb.SAY, received.append)
        self.actuator.issue("w1", CommandVerb.SAY, text="hello")
        assert received[0].params == {"text": "hello"}

    def test_executor_failure_is_captured(self, caplog):
        def refuse(command):
            raise RuntimeError("not in range")

        self.actuator.register_executor(CommandVerb.BUILD, refuse)
        with caplog.at_level(logging.WARNING, logger="colony_kernel.actuation"):
            command = self.actuator.issue("w1", CommandVerb.BUILD, target_id="site")
        assert not command.success
        assert command.error == "not in range"
        assert "Command failed" in caplog.text
        assert self.actuator.issued == [command]

    def test_issued_for_and_clear(self):
        self.actuator.issue("w1", CommandVerb.SAY, text="a")
        self.actuator.issue("w2", CommandVerb.SAY, text="b")
        assert [c.agent_id for c in self.actuator.issued_for("w2")] == ["w2"]
        self.actuator.clear()
        assert self.actuator.issued == []
