# simulate.py
# Headless simulated run: explore a ground-truth arena, then plan the fastest
# path start -> waypoint -> goal over the explored map.
#
# usage: python -m explorer.simulate arena.json [--show]

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from explorer import descriptor
from explorer.arena import arena_from_payload
from explorer.constants import START_HEADING, COVERAGE_LIMIT, TIME_LIMIT_S
from explorer.exploration import ExplorationEngine, RunSummary
from explorer.grid import ArenaMap, MapSnapshot
from explorer.pathing import Route, RoutePlanner, compress_moves
from explorer.recognition import RecognitionTrigger
from explorer.robot import SimulatedRobot

logger = logging.getLogger(__name__)

TRACE_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "exploration_trace.json")


@dataclass
class SimulationResult:
    truth: ArenaMap
    explored: ArenaMap
    summary: RunSummary
    fastest_path: Optional[Route] = None
    frames: List[MapSnapshot] = field(default_factory=list)


def _waypoint_from_payload(data):
    wp = data.get("waypoint")
    if not wp:
        return None
    try:
        return int(wp["y"]), int(wp["x"])
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"waypoint needs integer x and y: {wp!r}")


def fastest_path(explored, waypoint=None):
    """Cheapest route from the start (facing north) through waypoint to the goal."""
    planner = RoutePlanner(explored)
    start = (explored.start[0], explored.start[1], START_HEADING)
    targets = [waypoint, explored.goal] if waypoint is not None else [explored.goal]
    route = planner.plan_via(start, targets)
    if route is None and waypoint is not None:
        logger.warning("[Sim] Waypoint %s unreachable; planning straight to the goal.", waypoint)
        route = planner.plan_via(start, [explored.goal])
    return route


def run_simulation(payload, record_frames=False, **engine_kwargs):
    truth, (sr, sc, heading) = arena_from_payload(payload)
    data = payload.get("data", payload)
    engine_kwargs.setdefault("coverage_limit", float(data.get("coverage_limit", COVERAGE_LIMIT)))
    engine_kwargs.setdefault("time_limit", float(data.get("time_limit", TIME_LIMIT_S)))
    if data.get("image_target") is not None:
        engine_kwargs.setdefault("image_target", int(data["image_target"]))

    explored = ArenaMap(truth.rows, truth.cols, start=truth.start, goal=truth.goal)
    robot = SimulatedRobot(truth, row=sr, col=sc, heading=heading, goal=truth.goal)
    frames = []
    engine = ExplorationEngine(
        explored, robot,
        recognition=RecognitionTrigger(),
        on_update=frames.append if record_frames else None,
        **engine_kwargs,
    )
    summary = engine.run()
    route = fastest_path(explored, _waypoint_from_payload(data))
    return SimulationResult(truth, explored, summary, route, frames)


def build_trace(result):
    part1, part2 = descriptor.encode(result.explored)
    fp = result.fastest_path
    return {
        "type": "EXPLORATION",
        "data": {
            "descriptor": {"part1": part1, "part2": part2},
            "summary": result.summary.to_dict(),
            "path": [[c, r] for (r, c, _) in result.summary.path],
            "fastest_path": {
                "commands": compress_moves(fp.moves) if fp else [],
                "cost": fp.cost if fp else None,
                "path": [[c, r] for (r, c, _) in fp.poses] if fp else [],
            },
        },
    }


def save_trace(trace, path=TRACE_FILE):
    with open(path, "w") as f:
        json.dump(trace, f, indent=2)
    return path


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    if not argv or not os.path.exists(argv[0]):
        print("usage: python -m explorer.simulate arena.json [--show]")
        return 2
    with open(argv[0], "r") as f:
        payload = json.load(f)

    show = "--show" in argv
    result = run_simulation(payload, record_frames=show)
    trace = build_trace(result)
    outfile = save_trace(trace)

    s = result.summary
    print(f"\n=== EXPLORATION ({s.stop_reason}) ===")
    print(f"moves={s.moves} restarts={s.restarts} pledges={s.pledges} "
          f"coverage={s.coverage_before_guess:.1%} guessed={s.guessed_cells}")
    print("MDF part1:", trace["data"]["descriptor"]["part1"])
    print("MDF part2:", trace["data"]["descriptor"]["part2"])
    print("\n=== FASTEST PATH ===")
    print(" ".join(trace["data"]["fastest_path"]["commands"]))
    print(f"\nSaved JSON trace to: {outfile}")

    if show:
        from explorer.display import animate_run
        animate_run(result.frames, truth=result.truth)
    return 0


if __name__ == "__main__":
    sys.exit(main())
