import matplotlib

matplotlib.use("Agg")

import pytest

from explorer.grid import ArenaMap


def open_arena(rows=20, cols=15, obstacles=()):
    """Fully explored arena with the given obstacle cells."""
    return ArenaMap.from_obstacles(list(obstacles), rows, cols, start=(1, 1), goal=(rows - 2, cols - 2))


class FakeTransport:
    """
    Stands in for RPiTransport. Replies to moves with readings computed from
    a ground-truth arena (or from a scripted list) and acknowledges "C".
    """

    def __init__(self, truth=None, replies=None):
        self.truth = truth
        self.replies = list(replies or [])
        self.robot = None
        self.sent = []
        self.connected = True
        self._last = None

    def send_msg(self, msg, msg_type=None):
        self.sent.append(f"{msg_type},{msg}" if msg_type else msg)
        self._last = msg
        return True

    def recv_msg(self):
        if self.replies:
            return self.replies.pop(0)
        if self._last == "C":
            self._last = None
            return "ok"
        if self.truth is not None and self.robot is not None:
            return ",".join(str(s.distance_in(self.truth)) for s in self.robot.sensors)
        return ""


@pytest.fixture
def arena():
    return open_arena()
