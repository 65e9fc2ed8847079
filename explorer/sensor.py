# sensor.py
# Short-range IR sensors mounted on the robot body.
#
# A sensor only writes into the map it is given; it owns no grid state.

from explorer.constants import SENSOR_NEAR, SENSOR_FAR, NO_READING, DIRS
from explorer.headings import to_grid


class Sensor:
    def __init__(self, name, forward, right, facing, near=SENSOR_NEAR, far=SENSOR_FAR):
        self.name = name
        self.forward = forward      # body-frame mount offset
        self.right = right
        self.facing = facing        # degrees relative to the robot heading
        self.near = near
        self.far = far
        self.row = None
        self.col = None
        self.heading = None

    def place(self, r, c, heading):
        dr, dc = to_grid(heading, self.forward, self.right)
        self.row, self.col = r + dr, c + dc
        self.heading = (heading + self.facing) % 360

    def ray(self):
        """(distance, (r, c)) pairs covered by this sensor, nearest first."""
        dr, dc = DIRS[self.heading]
        for i in range(self.near, self.far + 1):
            yield i, (self.row + dr * i, self.col + dc * i)

    def distance_in(self, truth):
        """Reading this sensor would report against a fully known arena."""
        for i, (r, c) in self.ray():
            if not truth.is_valid(r, c) or truth.is_obstacle(r, c):
                return i
        return NO_READING

    def sense_simulated(self, explored, truth):
        for i, (r, c) in self.ray():
            if not truth.is_valid(r, c):
                return i
            explored.set_explored(r, c)
            if truth.is_obstacle(r, c):
                explored.set_obstacle(r, c, True)
                return i
        return NO_READING

    def sense_reading(self, explored, value):
        """
        Fold one hardware reading into the map. Every covered cell gets an
        evidence observation, a hit only at the reported distance.
        """
        if value != NO_READING and value < self.near:
            return
        for i, (r, c) in self.ray():
            if not explored.is_valid(r, c):
                break
            hit = value == i
            explored.observe(r, c, hit)
            if hit:
                break

    def __repr__(self):
        return f"Sensor({self.name}, at=({self.row}, {self.col}), heading={self.heading})"


def build_sensors(near=SENSOR_NEAR, far=SENSOR_FAR):
    """Five sensors in reply order: left, front-left, front-centre, front-right, right."""
    return [
        Sensor("L", 1, -1, 270, near, far),
        Sensor("FL", 1, -1, 0, near, far),
        Sensor("FC", 1, 0, 0, near, far),
        Sensor("FR", 1, 1, 0, near, far),
        Sensor("R", 1, 1, 90, near, far),
    ]
