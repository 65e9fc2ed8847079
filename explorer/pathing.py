# pathing.py
# Turn-aware route search over (row, col, heading) states.
#
# Costs: MOVE_COST per forward/backward cell, TURN_COST per 90° turn in place.
# A pose is traversable when the 3x3 footprint fits (see ArenaMap.footprint_free);
# the whole mask is computed up front with a numpy inflate of the blocked cells.

import heapq
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from explorer.constants import MOVE_COST, TURN_COST, INFLATE_RADIUS, DIRS
from explorer.headings import quarter_turns
from explorer.robot import Move, apply_move

logger = logging.getLogger(__name__)

Pose = Tuple[int, int, int]


@dataclass
class Route:
    moves: List[Move]
    cost: int
    poses: List[Pose] = field(default_factory=list)

    @property
    def target(self):
        return self.poses[-1] if self.poses else None

    def extend(self, other):
        poses = self.poses + (other.poses[1:] if self.poses else other.poses)
        return Route(self.moves + other.moves, self.cost + other.cost, poses)


def move_cost(move, move_cost=MOVE_COST, turn_cost=TURN_COST):
    if move.is_translation:
        return move_cost
    if move.is_turn:
        return turn_cost
    return 0


def route_cost(moves):
    return sum(move_cost(m) for m in moves)


def compress_moves(moves):
    """
    Merge consecutive forward/backward cells into single tokens:
      [F, F, F, R, F] -> ["F3", "R", "F1"]
    """
    tokens = []
    run_move, run_len = None, 0
    for m in moves:
        if m.is_translation and m is run_move:
            run_len += 1
            continue
        if run_move is not None:
            tokens.append(f"{run_move.value}{run_len}")
            run_move, run_len = None, 0
        if m.is_translation:
            run_move, run_len = m, 1
        else:
            tokens.append(m.value)
    if run_move is not None:
        tokens.append(f"{run_move.value}{run_len}")
    return tokens


def inflate_blocked(grid, radius=INFLATE_RADIUS):
    """Morphological inflate: mark blocked any cell whose (2*radius+1)^2 neighborhood hits a blocked cell."""
    if radius <= 0:
        return grid.copy()
    rows, cols = grid.shape
    padded = np.pad(grid, radius, mode="constant", constant_values=False)
    inflated = np.zeros_like(grid)
    for dr in range(-radius, radius + 1):
        for dc in range(-radius, radius + 1):
            inflated |= padded[radius + dr:radius + dr + rows, radius + dc:radius + dc + cols]
    return inflated


class RoutePlanner:
    """Optimal A* (and uniform-cost variants) over a shared ArenaMap."""

    MOVES = (Move.FORWARD, Move.BACKWARD, Move.RIGHT, Move.LEFT)

    def __init__(self, arena, move_cost=MOVE_COST, turn_cost=TURN_COST, allow_backward=True):
        self.arena = arena
        self.move_cost = move_cost
        self.turn_cost = turn_cost
        self.moves = self.MOVES if allow_backward else (Move.FORWARD, Move.RIGHT, Move.LEFT)

    def occupancy(self, exploring=False):
        """Boolean mask of cells a robot centre may stand on."""
        blocked = self.arena.obstacle_array()
        if not exploring:
            blocked = blocked | ~self.arena.explored_array()
        return ~inflate_blocked(blocked) & ~self.arena.virtual_wall_array()

    def _step_cost(self, move):
        return move_cost(move, self.move_cost, self.turn_cost)

    def _successors(self, state, free):
        rows, cols = free.shape
        for move in self.moves:
            nxt = apply_move(state, move)
            if move.is_translation:
                r, c = nxt[0], nxt[1]
                if not (0 <= r < rows and 0 <= c < cols) or not free[r, c]:
                    continue
            yield nxt, move, self._step_cost(move)

    def _heuristic(self, state, target, target_heading):
        r, c, heading = state
        dr, dc = target[0] - r, target[1] - c
        fdr, fdc = DIRS[heading]
        if dr and dc:
            turns = 1
        elif (dr and fdr == 0) or (dc and fdc == 0):
            turns = 1
        else:
            turns = 0
        if target_heading is not None:
            turns = max(turns, quarter_turns(heading, target_heading))
        return (abs(dr) + abs(dc)) * self.move_cost + turns * self.turn_cost

    def _search(self, start, is_goal, h, free):
        start = tuple(start)
        openq = []
        g_cost = {start: 0}
        parent = {start: None}
        push_id = 0
        heapq.heappush(openq, (h(start), push_id, start))
        closed_best_g = {}

        while openq:
            _, _, cur = heapq.heappop(openq)
            gcurr = g_cost[cur]
            if cur in closed_best_g and gcurr >= closed_best_g[cur]:
                continue
            closed_best_g[cur] = gcurr

            if is_goal(cur):
                return self._build_route(cur, parent, gcurr)

            for nxt, move, step_cost in self._successors(cur, free):
                ng = gcurr + step_cost
                if ng < g_cost.get(nxt, float("inf")):
                    g_cost[nxt] = ng
                    parent[nxt] = (cur, move)
                    push_id += 1
                    heapq.heappush(openq, (ng + h(nxt), push_id, nxt))
        return None

    @staticmethod
    def _build_route(end, parent, cost):
        moves, poses = [], [end]
        k = end
        while parent[k] is not None:
            k, move = parent[k]
            moves.append(move)
            poses.append(k)
        return Route(moves[::-1], cost, poses[::-1])

    def plan(self, start, target, exploring=False, target_heading=None) -> Optional[Route]:
        """
        Cheapest route from start pose (r, c, heading) to target cell (r, c).
        exploring=True lets the route cross unexplored cells that are not
        known obstacles. Returns None when the target cannot be reached.
        """
        target = tuple(target[:2])
        free = self.occupancy(exploring)
        if tuple(start[:2]) != target:
            if not self.arena.is_valid(*target) or not free[target]:
                logger.debug("[Path] Target %s is not a valid robot centre.", target)
                return None

        def is_goal(state):
            return state[:2] == target and (target_heading is None or state[2] == target_heading)

        route = self._search(start, is_goal, lambda s: self._heuristic(s, target, target_heading), free)
        if route is None:
            logger.debug("[Path] No route %s -> %s (exploring=%s).", tuple(start), target, exploring)
        return route

    def search_nearest(self, start, accept, exploring=False) -> Optional[Route]:
        """Uniform-cost search to the cheapest pose for which accept(pose) is true."""
        free = self.occupancy(exploring)
        return self._search(start, accept, lambda s: 0, free)

    def plan_via(self, start, targets, exploring=False) -> Optional[Route]:
        """Chain legs through each target in turn (e.g. waypoint then goal)."""
        route = Route([], 0, [tuple(start)])
        for target in targets:
            leg = self.plan(route.target, target, exploring=exploring)
            if leg is None:
                return None
            route = route.extend(leg)
        return route
