# robot.py
# Robot pose + actuation. One interface, two bodies:
#   SimulatedRobot  senses against a ground-truth ArenaMap
#   HardwareRobot   drives the physical robot through an injected transport

import logging
import time
from enum import Enum

from explorer.comm import AR, parse_sensor_reply
from explorer.constants import START, START_HEADING, GOAL, MOVE_DELAY_S
from explorer.headings import to_grid, turn_left, turn_right
from explorer.sensor import build_sensors

logger = logging.getLogger(__name__)


class Move(Enum):
    FORWARD = "F"
    BACKWARD = "B"
    RIGHT = "R"
    LEFT = "L"
    CALIBRATE = "C"
    FORCED_RIGHT = "r"      # pledge escape turns
    FORCED_LEFT = "l"

    @property
    def is_translation(self):
        return self in (Move.FORWARD, Move.BACKWARD)

    @property
    def is_turn(self):
        return self in (Move.RIGHT, Move.LEFT, Move.FORCED_RIGHT, Move.FORCED_LEFT)


def apply_move(pose, move):
    """Pose (r, c, heading) after executing move."""
    r, c, heading = pose
    if move is Move.FORWARD or move is Move.BACKWARD:
        step = 1 if move is Move.FORWARD else -1
        dr, dc = to_grid(heading, step)
        return r + dr, c + dc, heading
    if move in (Move.RIGHT, Move.FORCED_RIGHT):
        return r, c, turn_right(heading)
    if move in (Move.LEFT, Move.FORCED_LEFT):
        return r, c, turn_left(heading)
    return pose


class Robot:
    is_hardware = False

    def __init__(self, row=START[0], col=START[1], heading=START_HEADING, goal=GOAL, sensors=None):
        self.row = row
        self.col = col
        self.heading = heading
        self.goal = tuple(goal)
        self.touched_goal = (row, col) == self.goal
        self.sensors = sensors if sensors is not None else build_sensors()
        self.last_readings = []
        self._place_sensors()

    @property
    def pose(self):
        return self.row, self.col, self.heading

    @property
    def position(self):
        return self.row, self.col

    def _place_sensors(self):
        for sensor in self.sensors:
            sensor.place(self.row, self.col, self.heading)

    def move(self, move):
        # pose is updated locally; the transport round-trip does not gate it
        self.row, self.col, self.heading = apply_move(self.pose, move)
        if self.position == self.goal:
            self.touched_goal = True
        self._place_sensors()
        self._actuate(move)

    def _actuate(self, move):
        raise NotImplementedError

    def sense(self, explored):
        """Take one reading from every sensor and fold it into explored."""
        raise NotImplementedError

    def start(self):
        """Called once before the first reading of a run."""

    def calibrate(self):
        return False

    def wait_for_start(self):
        return ""

    def __repr__(self):
        return f"{type(self).__name__}(pose={self.pose})"


class SimulatedRobot(Robot):
    def __init__(self, truth, delay=MOVE_DELAY_S, **kwargs):
        self.truth = truth
        self.delay = delay
        super().__init__(**kwargs)

    def _actuate(self, move):
        if self.delay > 0:
            time.sleep(self.delay)

    def sense(self, explored):
        readings = [sensor.sense_simulated(explored, self.truth) for sensor in self.sensors]
        self.last_readings = readings
        return readings


class HardwareRobot(Robot):
    is_hardware = True

    def __init__(self, transport, **kwargs):
        self.transport = transport
        super().__init__(**kwargs)

    def _actuate(self, move):
        self.transport.send_msg(move.value, AR)

    def start(self):
        # the first sensor reply answers AR,start
        self.transport.send_msg("start", AR)

    def sense(self, explored):
        reply = self.transport.recv_msg()
        readings = parse_sensor_reply(reply, expected=len(self.sensors))
        if readings is None:
            logger.warning("[Robot] No usable sensor reply (%r); keeping the map as is.", reply)
            self.last_readings = []
            return []
        for sensor, value in zip(self.sensors, readings):
            sensor.sense_reading(explored, value)
        self.last_readings = readings
        return readings

    def calibrate(self):
        self.move(Move.CALIBRATE)
        ack = self.transport.recv_msg()
        if not ack:
            logger.warning("[Robot] Calibration was not acknowledged.")
        return bool(ack)

    def wait_for_start(self):
        """Block until the controller sends any message (the start signal)."""
        while True:
            msg = self.transport.recv_msg()
            if msg:
                logger.info("[Robot] Start signal received: %s", msg)
                return msg
            if not self.transport.connected:
                logger.error("[Robot] Link closed while waiting for the start signal.")
                return ""
