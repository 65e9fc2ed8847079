# grid.py
# Occupancy grid shared by the exploration engine, the planner and the display.

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from explorer.constants import (
    MAP_ROWS, MAP_COLS, START, GOAL, INFLATE_RADIUS, OBSTACLE_EVIDENCE_RATIO,
)

NEIGHBOURS_4 = [(-1, 0), (1, 0), (0, -1), (0, 1)]
NEIGHBOURS_8 = [(dr, dc) for dr in (-1, 0, 1) for dc in (-1, 0, 1) if (dr, dc) != (0, 0)]


class Cell:
    """
    One grid square.

    The obstacle flag is either set directly (simulation, descriptor decoding)
    or derived from accumulated sensor evidence via observe().
    """

    def __init__(self, row, col, border=False):
        self.row = row
        self.col = col
        self.border = border
        self.explored = False
        self.visited = False
        self.position_count = 0
        self.pledged = False
        self.processed = [False] * 4    # N, E, S, W faces
        self.hits = 0
        self.observations = 0
        self._obstacle = False
        self._virtual_wall = border

    @property
    def is_obstacle(self):
        return self._obstacle

    def set_obstacle(self, value):
        self._obstacle = bool(value)

    def observe(self, hit):
        self.observations += 1
        if hit:
            self.hits += 1
        self._obstacle = self.hits / self.observations > OBSTACLE_EVIDENCE_RATIO

    @property
    def virtual_wall(self):
        return self._virtual_wall

    @virtual_wall.setter
    def virtual_wall(self, value):
        # the border ring stays a virtual wall
        if not value and self.border:
            return
        self._virtual_wall = bool(value)

    def reset(self):
        self.explored = False
        self.visited = False
        self.position_count = 0
        self.pledged = False
        self.processed = [False] * 4
        self.hits = 0
        self.observations = 0
        self._obstacle = False
        self._virtual_wall = self.border

    def __repr__(self):
        return f"Cell({self.row}, {self.col}, explored={self.explored}, obstacle={self._obstacle})"


@dataclass
class MapSnapshot:
    """Read-only copy of the map handed to observers (display, API)."""
    explored: np.ndarray
    obstacle: np.ndarray
    virtual_wall: np.ndarray
    visited: np.ndarray
    start: Tuple[int, int]
    goal: Tuple[int, int]
    pose: Optional[Tuple[int, int, int]] = None

    @property
    def coverage(self):
        return float(self.explored.mean()) if self.explored.size else 0.0


class ArenaMap:
    def __init__(self, rows=MAP_ROWS, cols=MAP_COLS, start=START, goal=GOAL, mark_zones=True):
        if rows < 3 or cols < 3:
            raise ValueError(f"arena must be at least 3x3, got {rows}x{cols}")
        self.rows = rows
        self.cols = cols
        self.start = tuple(start)
        self.goal = tuple(goal)
        self.mark_zones = mark_zones
        self.grid = [
            [Cell(r, c, border=(r in (0, rows - 1) or c in (0, cols - 1))) for c in range(cols)]
            for r in range(rows)
        ]
        if mark_zones:
            self._mark_zones()

    @classmethod
    def from_obstacles(cls, obstacles, rows=MAP_ROWS, cols=MAP_COLS, start=START, goal=GOAL):
        """Fully explored ground-truth map with the given (r, c) obstacle cells."""
        arena = cls(rows, cols, start=start, goal=goal)
        arena.set_all_explored()
        for r, c in obstacles:
            if arena.is_valid(r, c):
                arena.set_obstacle(r, c, True)
        return arena

    # =========================
    # Cell access
    # =========================
    def is_valid(self, r, c):
        return 0 <= r < self.rows and 0 <= c < self.cols

    def get(self, r, c):
        if not self.is_valid(r, c):
            raise IndexError(f"cell ({r}, {c}) is outside the {self.rows}x{self.cols} arena")
        return self.grid[r][c]

    def cells(self):
        for row in self.grid:
            yield from row

    def footprint(self, r, c):
        rr = range(-INFLATE_RADIUS, INFLATE_RADIUS + 1)
        return [(r + dr, c + dc) for dr in rr for dc in rr]

    def in_start_zone(self, r, c):
        return abs(r - self.start[0]) <= INFLATE_RADIUS and abs(c - self.start[1]) <= INFLATE_RADIUS

    def in_goal_zone(self, r, c):
        return abs(r - self.goal[0]) <= INFLATE_RADIUS and abs(c - self.goal[1]) <= INFLATE_RADIUS

    def _mark_zones(self):
        for centre in (self.start, self.goal):
            for r, c in self.footprint(*centre):
                if self.is_valid(r, c):
                    self.grid[r][c].explored = True

    # =========================
    # Mutation
    # =========================
    def set_explored(self, r, c):
        # explored never reverts within a pass; reset_explored() starts a new one
        self.get(r, c).explored = True

    def set_obstacle(self, r, c, value=True):
        cell = self.get(r, c)
        before = cell.is_obstacle
        cell.set_obstacle(value)
        if cell.is_obstacle != before:
            self._refresh_virtual_walls(r, c)

    def observe(self, r, c, hit):
        """Record one sensor observation of (r, c): hit=True saw an obstacle there."""
        cell = self.get(r, c)
        before = cell.is_obstacle
        cell.explored = True
        cell.observe(hit)
        if cell.is_obstacle != before:
            self._refresh_virtual_walls(r, c)

    def set_virtual_wall(self, r, c, value):
        self.get(r, c).virtual_wall = value

    def _refresh_virtual_walls(self, r, c):
        for dr in (-1, 0, 1):
            for dc in (-1, 0, 1):
                nr, nc = r + dr, c + dc
                if not self.is_valid(nr, nc):
                    continue
                near = any(self.is_obstacle(nr + er, nc + ec) for er, ec in NEIGHBOURS_8)
                self.grid[nr][nc].virtual_wall = near

    def set_all_explored(self):
        for cell in self.cells():
            cell.explored = True

    def reset_explored(self):
        for cell in self.cells():
            cell.reset()
        if self.mark_zones:
            self._mark_zones()

    def clear_all_positions(self):
        for cell in self.cells():
            cell.position_count = 0
            cell.visited = False

    # =========================
    # Queries (invalid coordinates answer "not free", never raise)
    # =========================
    def is_obstacle(self, r, c):
        return self.is_valid(r, c) and self.grid[r][c].is_obstacle

    def is_obstacle_or_wall(self, r, c):
        return not self.is_valid(r, c) or self.grid[r][c].is_obstacle

    def is_explored(self, r, c):
        return self.is_valid(r, c) and self.grid[r][c].explored

    def is_explored_free(self, r, c):
        return self.is_explored(r, c) and not self.grid[r][c].is_obstacle

    def is_virtual_wall(self, r, c):
        return self.is_valid(r, c) and self.grid[r][c].virtual_wall

    def footprint_free(self, r, c, exploring=False):
        """
        True if a robot centred on (r, c) fits: the centre is not a virtual wall
        and every footprint cell is obstacle-free (and explored unless exploring).
        """
        if not self.is_valid(r, c) or self.grid[r][c].virtual_wall:
            return False
        for fr, fc in self.footprint(r, c):
            if not self.is_valid(fr, fc):
                return False
            cell = self.grid[fr][fc]
            if cell.is_obstacle or not (exploring or cell.explored):
                return False
        return True

    def explored_count(self):
        return sum(1 for cell in self.cells() if cell.explored)

    def unexplored_count(self):
        return self.rows * self.cols - self.explored_count()

    def coverage(self):
        return self.explored_count() / (self.rows * self.cols)

    def possible_faces(self):
        """Obstacle faces that look onto explored free space, i.e. could carry an image."""
        return sum(
            1
            for cell in self.cells() if cell.explored and cell.is_obstacle
            for dr, dc in NEIGHBOURS_4 if self.is_explored_free(cell.row + dr, cell.col + dc)
        )

    def guess_unexplored_cells(self):
        """
        Classify every unexplored cell. Cells reachable through 4-neighbours
        from explored free space are assumed free; whatever is left is walled
        in by obstacles and assumed obstacle. Returns the number of guesses.
        """
        guessed = 0
        changed = True
        while changed:
            changed = False
            for cell in self.cells():
                if cell.explored:
                    continue
                if any(self.is_explored_free(cell.row + dr, cell.col + dc) for dr, dc in NEIGHBOURS_4):
                    cell.explored = True
                    self.set_obstacle(cell.row, cell.col, False)
                    guessed += 1
                    changed = True
        for cell in self.cells():
            if not cell.explored:
                cell.explored = True
                self.set_obstacle(cell.row, cell.col, True)
                guessed += 1
        return guessed

    # =========================
    # Array views
    # =========================
    def explored_array(self):
        return np.array([[cell.explored for cell in row] for row in self.grid], dtype=bool)

    def obstacle_array(self):
        return np.array([[cell.is_obstacle for cell in row] for row in self.grid], dtype=bool)

    def virtual_wall_array(self):
        return np.array([[cell.virtual_wall for cell in row] for row in self.grid], dtype=bool)

    def visited_array(self):
        return np.array([[cell.visited for cell in row] for row in self.grid], dtype=bool)

    def snapshot(self, pose=None):
        return MapSnapshot(
            explored=self.explored_array(),
            obstacle=self.obstacle_array(),
            virtual_wall=self.virtual_wall_array(),
            visited=self.visited_array(),
            start=self.start,
            goal=self.goal,
            pose=tuple(pose) if pose is not None else None,
        )
