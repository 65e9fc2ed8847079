# recognition.py
# Decides when an obstacle face is in front of the camera so an image can be
# taken. The recognition itself happens elsewhere.

import logging
from dataclasses import dataclass

from explorer.constants import CAMERA_RANGE, HEADINGS, INFLATE_RADIUS, SIDE_FOR_HEADING, SIDE_INDEX, DIRS
from explorer.headings import reverse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecognitionEvent:
    row: int
    col: int
    side: str       # face of the obstacle that points at the robot

    def to_message(self):
        return f"{self.row},{self.col},{self.side}"


class RecognitionTrigger:
    def __init__(self, camera_range=CAMERA_RANGE, on_event=None):
        self.camera_range = camera_range
        self.on_event = on_event
        self.events = []

    def scan(self, arena, pose):
        """
        Look outward from the footprint edge in all four directions and report
        each newly seen obstacle face once.
        """
        r, c = pose[0], pose[1]
        found = []
        for heading in HEADINGS:
            dr, dc = DIRS[heading]
            side = SIDE_FOR_HEADING[reverse(heading)]
            for d in range(1, self.camera_range + 1):
                cr = r + dr * (INFLATE_RADIUS + d)
                cc = c + dc * (INFLATE_RADIUS + d)
                if not arena.is_explored(cr, cc):
                    break
                cell = arena.get(cr, cc)
                if not cell.is_obstacle:
                    continue
                idx = SIDE_INDEX[side]
                if not cell.processed[idx]:
                    cell.processed[idx] = True
                    event = RecognitionEvent(cr, cc, side)
                    found.append(event)
                    logger.info("[Recognition] Obstacle face %s at (%d, %d).", side, cr, cc)
                    if self.on_event is not None:
                        self.on_event(event)
                break
        self.events.extend(found)
        return found
