# arena.py
# Ground-truth arenas for simulation, built from START_TASK-style payloads:
#
#   {"data": {"rows": 20, "cols": 15,
#             "obstacles": [{"x": col, "y": row}, ...],
#             "robot": {"x": 1, "y": 1, "dir": "N"}}}
#
# or from a descriptor pair: {"data": {"descriptor": {"part1": "...", "part2": "..."}}}

from explorer import descriptor
from explorer.constants import MAP_ROWS, MAP_COLS, START, START_HEADING, HEADING_FOR_SIDE
from explorer.grid import ArenaMap


def _data(payload):
    if not isinstance(payload, dict):
        raise TypeError("arena payload must be a dict")
    return payload.get("data", payload)


def obstacles_from_payload(payload):
    """Extract obstacle cells [(r, c), ...] from a payload dict."""
    cells = []
    for o in _data(payload).get("obstacles", []):
        try:
            r = int(o.get("y"))  # y = row
            c = int(o.get("x"))  # x = col
        except (TypeError, ValueError):
            raise ValueError(f"obstacle needs integer x and y: {o!r}")
        cells.append((r, c))
    return cells


def start_from_payload(payload):
    """Robot start (r, c, heading) from payload["data"]["robot"], or the default start."""
    robot = _data(payload).get("robot") or {}
    if not robot:
        return START[0], START[1], START_HEADING
    try:
        r = int(robot.get("y", START[0]))
        c = int(robot.get("x", START[1]))
    except (TypeError, ValueError):
        raise ValueError(f"robot start needs integer x and y: {robot!r}")
    side = str(robot.get("dir", "N")).upper()
    if side not in HEADING_FOR_SIDE:
        raise ValueError(f"unknown robot heading {side!r}")
    return r, c, HEADING_FOR_SIDE[side]


def arena_from_payload(payload):
    """Build (truth_map, start_pose) from a payload dict."""
    data = _data(payload)
    rows = int(data.get("rows", MAP_ROWS))
    cols = int(data.get("cols", MAP_COLS))
    sr, sc, heading = start_from_payload(payload)
    goal = (rows - 2, cols - 2)

    desc = data.get("descriptor")
    if desc:
        truth = ArenaMap(rows, cols, start=(sr, sc), goal=goal, mark_zones=False)
        descriptor.decode(desc.get("part1", ""), desc.get("part2", ""), truth)
        truth.set_all_explored()
    else:
        truth = ArenaMap.from_obstacles(obstacles_from_payload(payload), rows, cols,
                                        start=(sr, sc), goal=goal)

    if not truth.footprint_free(sr, sc):
        raise ValueError(f"robot start ({sr}, {sc}) does not fit in the arena")
    return truth, (sr, sc, heading)
