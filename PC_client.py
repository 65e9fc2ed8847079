import logging
import threading
import time

from explorer import descriptor
from explorer.comm import AN, AR, IR, RPiTransport
from explorer.constants import (
    RPI_HOST, RPI_PORT, START_HEADING, TIME_LIMIT_S, COVERAGE_LIMIT, IMAGE_TARGET,
)
from explorer.exploration import ExplorationEngine
from explorer.grid import ArenaMap
from explorer.pathing import RoutePlanner, compress_moves
from explorer.recognition import RecognitionTrigger
from explorer.robot import HardwareRobot

# Configuration
REQUIRE_GOAL = True         # touch the goal zone before heading home
WAIT_FOR_WAYPOINT = True    # wait for "WP,x,y" from the tablet before the fastest path
STOP_AFTER_IMAGES = False   # end the lap once IMAGE_TARGET faces have been captured


class PCClient:
    """
    Hardware run: explore with the physical robot, report the map descriptor
    to the tablet, then send the fastest path as one command string.
    """

    def __init__(self, host=RPI_HOST, port=RPI_PORT):
        self.transport = RPiTransport(host, port)
        self.arena = ArenaMap()
        self.robot = HardwareRobot(self.transport)
        self.summary = None
        self.engine = ExplorationEngine(
            self.arena, self.robot,
            time_limit=TIME_LIMIT_S,
            coverage_limit=COVERAGE_LIMIT,
            require_goal=REQUIRE_GOAL,
            recognition=RecognitionTrigger(on_event=self.on_recognition),
            image_target=IMAGE_TARGET if STOP_AFTER_IMAGES else None,
            wait_for_start=True,
        )

    def connect(self):
        while not self.transport.connect():
            print("[PC Client] Still unable to reach the RPi, retrying...")
            time.sleep(1)
        print("[PC Client] Connected to RPi successfully.")

    def disconnect(self):
        self.transport.disconnect()

    def on_recognition(self, event):
        self.transport.send_msg(event.to_message(), IR)

    def send_descriptor(self):
        part1, part2 = descriptor.encode(self.arena)
        self.transport.send_msg(f"MDF|{part1}|{part2}", AN)
        print("[PC Client] Sent map descriptor to tablet.")

    def explore(self):
        print("[PC Client] Waiting for the start signal...")
        self.summary = self.engine.run()
        s = self.summary
        print(f"[PC Client] Exploration finished ({s.stop_reason}): "
              f"{s.moves} moves, {s.restarts} restarts, coverage {s.coverage_before_guess:.1%}")
        if s.image_coverage is not None:
            print(f"[PC Client] Image coverage {s.image_coverage:.1%} of {s.image_faces} faces")
        if s.return_failed:
            print("[PC Client] WARNING: robot did not make it back to the start.")
        self.send_descriptor()

    def read_waypoint(self):
        """Block until the tablet sends "WP,x,y"; returns (row, col) or None."""
        while True:
            msg = self.transport.recv_msg()
            if not msg:
                if not self.transport.connected:
                    return None
                continue
            parts = msg.split(",")
            if parts[0] != "WP":
                print("[PC Client] Ignoring message while waiting for waypoint:", msg[:100])
                continue
            try:
                return int(parts[2]), int(parts[1])
            except (IndexError, ValueError):
                print("[PC Client] Bad waypoint message:", msg)

    def fastest_path(self, waypoint=None):
        planner = RoutePlanner(self.arena)
        start = (self.arena.start[0], self.arena.start[1], START_HEADING)
        targets = [waypoint, self.arena.goal] if waypoint is not None else [self.arena.goal]
        route = planner.plan_via(start, targets)
        if route is None:
            print("[PC Client] ERROR: no fastest path through", targets)
            return None
        tokens = compress_moves(route.moves)
        self.transport.send_msg("".join(tokens), AR)
        print(f"[PC Client] Fastest path (cost {route.cost}):", " ".join(tokens))
        return route

    def run(self):
        explore_thread = threading.Thread(target=self.explore, name="PC-Client_explore_thread")
        explore_thread.start()
        print("[PC Client] Exploration thread started successfully")
        explore_thread.join()

        waypoint = self.read_waypoint() if WAIT_FOR_WAYPOINT else None
        self.fastest_path(waypoint)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    client = PCClient()
    client.connect()
    try:
        client.run()
    finally:
        client.disconnect()
