# exploration.py
# Exploration state machine: right-hand wall following with pledge escape,
# stuck recovery, calibration (hardware only), a frontier sweep and the
# return home.

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from explorer.constants import (
    COVERAGE_LIMIT, COMPLETENESS_THRESHOLD, TIME_LIMIT_S, RESTART_LIMIT, MAX_RESTARTS,
    CALIBRATE_INTERVAL, MAX_MOVES, RETURN_REPLANS, START_HEADING, DIRS,
    SENSOR_NEAR, INFLATE_RADIUS,
)
from explorer.headings import to_grid, turn_left, turn_right, reverse
from explorer.pathing import Route, RoutePlanner, compress_moves, route_cost
from explorer.recognition import RecognitionEvent
from explorer.robot import Move, apply_move

logger = logging.getLogger(__name__)


class ExplorationState(Enum):
    IDLE = "idle"
    EXPLORING = "exploring"
    PLEDGE_ESCAPE = "pledge_escape"
    CALIBRATING = "calibrating"
    RETURNING = "returning"
    DONE = "done"


@dataclass
class RunSummary:
    stop_reason: str = ""
    coverage: float = 0.0
    coverage_before_guess: float = 0.0
    moves: int = 0
    restarts: int = 0
    pledges: int = 0
    calibrations: int = 0
    frontier_trips: int = 0
    guessed_cells: int = 0
    unclassified: int = 0
    touched_goal: bool = False
    return_route: Optional[Route] = None
    return_failed: bool = False
    recognition_events: List[RecognitionEvent] = field(default_factory=list)
    image_faces: int = 0
    elapsed_s: float = 0.0
    final_pose: Optional[tuple] = None
    commands: List[str] = field(default_factory=list)
    path: List[list] = field(default_factory=list)

    @property
    def return_cost(self):
        return self.return_route.cost if self.return_route is not None else None

    @property
    def image_coverage(self):
        """Share of image-capable obstacle faces that were captured."""
        if not self.image_faces:
            return None
        return min(1.0, len(self.recognition_events) / self.image_faces)

    def to_dict(self):
        return {
            "stop_reason": self.stop_reason,
            "coverage": self.coverage,
            "coverage_before_guess": self.coverage_before_guess,
            "moves": self.moves,
            "restarts": self.restarts,
            "pledges": self.pledges,
            "calibrations": self.calibrations,
            "frontier_trips": self.frontier_trips,
            "guessed_cells": self.guessed_cells,
            "unclassified": self.unclassified,
            "touched_goal": self.touched_goal,
            "return_commands": compress_moves(self.return_route.moves) if self.return_route else [],
            "return_cost": self.return_cost,
            "return_failed": self.return_failed,
            "recognition_events": [
                {"row": e.row, "col": e.col, "side": e.side} for e in self.recognition_events
            ],
            "image_faces": self.image_faces,
            "image_coverage": self.image_coverage,
            "elapsed_s": round(self.elapsed_s, 3),
            "final_pose": list(self.final_pose) if self.final_pose else None,
            "commands": list(self.commands),
            "path": [list(p) for p in self.path],
        }


def _step_from(r, c, heading):
    dr, dc = DIRS[heading]
    return r + dr, c + dc


def turns_between(current, target):
    """Turn moves that rotate current onto target: one turn, or two rights."""
    d = (target - current) % 360
    if d == 90:
        return [Move.RIGHT]
    if d == 270:
        return [Move.LEFT]
    if d == 180:
        return [Move.RIGHT, Move.RIGHT]
    return []


def _undo_turns(turns):
    inverse = {Move.RIGHT: Move.LEFT, Move.LEFT: Move.RIGHT}
    if len(turns) == 2:
        return list(turns)
    return [inverse[t] for t in turns]


class ExplorationEngine:
    """
    Runs one exploration pass of robot over arena (the robot's own map).

    The engine owns the run; observers get read-only snapshots through
    on_update(snapshot) after every move.
    """

    def __init__(self, arena, robot, planner=None, *, coverage_limit=COVERAGE_LIMIT,
                 time_limit=TIME_LIMIT_S, completeness=COMPLETENESS_THRESHOLD,
                 restart_limit=RESTART_LIMIT, max_restarts=MAX_RESTARTS,
                 calibrate_interval=CALIBRATE_INTERVAL, max_moves=MAX_MOVES,
                 require_goal=False, recognition=None, image_target=None,
                 on_update=None, wait_for_start=False, clock=time.monotonic):
        self.arena = arena
        self.robot = robot
        self.planner = planner if planner is not None else RoutePlanner(arena)
        self.coverage_limit = coverage_limit
        self.time_limit = time_limit
        self.completeness = completeness
        self.restart_limit = restart_limit
        self.max_restarts = max_restarts
        self.calibrate_interval = calibrate_interval
        self.max_moves = max_moves
        self.require_goal = require_goal
        self.recognition = recognition
        self.image_target = image_target
        self.on_update = on_update
        self.wait_for_start = wait_for_start
        self.clock = clock
        self.pledge_step_limit = 2 * (arena.rows + arena.cols)

        self.state = ExplorationState.IDLE
        self.summary = RunSummary()
        self._deadline = None
        self._moves_since_calibration = 0
        self._calibrating = False

    # =========================
    # Run
    # =========================
    def run(self):
        if self.wait_for_start:
            self.robot.wait_for_start()
        started = self.clock()
        self._deadline = started + self.time_limit
        self.state = ExplorationState.EXPLORING
        logger.info("[Explore] Starting at %s, limits: coverage %.0f%%, %.0fs.",
                    self.robot.pose, self.coverage_limit * 100, self.time_limit)
        self.robot.start()
        self._sense()
        self._notify()

        self.summary.stop_reason = self._explore_loop()
        logger.info("[Explore] Wall following stopped: %s (coverage %.1f%%).",
                    self.summary.stop_reason, self.arena.coverage() * 100)
        if self.summary.stop_reason != "images-found":
            self._sweep_frontiers()

        self._return_home()
        self.summary.coverage_before_guess = self.arena.coverage()
        self.summary.image_faces = self.arena.possible_faces()
        self.summary.guessed_cells = self.arena.guess_unexplored_cells()

        self.state = ExplorationState.DONE
        self.summary.coverage = self.arena.coverage()
        self.summary.unclassified = self.arena.unexplored_count()
        self.summary.touched_goal = self.robot.touched_goal
        self.summary.final_pose = self.robot.pose
        self.summary.elapsed_s = self.clock() - started
        self._notify()
        logger.info("[Explore] Done: %d moves, %d restarts, coverage %.1f%% (%d guessed).",
                    self.summary.moves, self.summary.restarts,
                    self.summary.coverage_before_guess * 100, self.summary.guessed_cells)
        return self.summary

    def _explore_loop(self):
        while True:
            if self.summary.moves >= self.max_moves:
                return "move-limit"
            self.step()
            if self._found_enough_images():
                return "images-found"
            coverage = self.arena.coverage()
            if self.robot.position == self.arena.start and coverage >= self.completeness:
                return "returned-to-start"
            if coverage >= self.coverage_limit:
                return "coverage-limit"
            if self._out_of_time():
                return "time-limit"
            if self.is_stuck():
                if self.summary.restarts >= self.max_restarts:
                    return "restart-limit"
                self._recover()

    def _found_enough_images(self):
        return self.image_target is not None and \
            len(self.summary.recognition_events) >= self.image_target

    def _out_of_time(self):
        return self._deadline is not None and self.clock() > self._deadline

    # =========================
    # Moving + sensing
    # =========================
    def execute(self, move, sense=True):
        self.robot.move(move)
        self.summary.moves += 1
        self.summary.commands.append(move.value)
        self.summary.path.append(list(self.robot.pose))
        if move.is_translation:
            self._mark_position()
        if sense:
            self._sense()
        if move is Move.FORWARD:
            self._calibrate_if_needed()
        self._notify()

    def _sense(self):
        readings = self.robot.sense(self.arena)
        if self.recognition is not None:
            self.summary.recognition_events.extend(self.recognition.scan(self.arena, self.robot.pose))
        return readings

    def _notify(self):
        if self.on_update is not None:
            self.on_update(self.arena.snapshot(self.robot.pose))

    def _mark_position(self):
        r, c = self.robot.position
        self.arena.get(r, c).visited = True
        for fr, fc in self.arena.footprint(r, c):
            if self.arena.is_valid(fr, fc):
                self.arena.get(fr, fc).position_count += 1

    def is_stuck(self):
        r, c = self.robot.position
        return any(
            self.arena.get(fr, fc).position_count > self.restart_limit
            for fr, fc in self.arena.footprint(r, c) if self.arena.is_valid(fr, fc)
        )

    def _free_ahead(self, exploring=False):
        r, c, heading = self.robot.pose
        return self.arena.footprint_free(*_step_from(r, c, heading), exploring=exploring)

    def _follow(self, route, exploring=False):
        """Drive route with fresh sensing; stop early if new knowledge blocks it. Returns moves done."""
        done = 0
        for move in route.moves:
            if move.is_translation:
                nr, nc, _ = apply_move(self.robot.pose, move)
                if not self.arena.footprint_free(nr, nc, exploring=exploring):
                    logger.info("[Explore] Route blocked at (%d, %d); replanning.", nr, nc)
                    break
            self.execute(move)
            done += 1
        return done

    # =========================
    # Wall following
    # =========================
    def decide(self):
        """
        Right-hand rule from the current pose. Returns (turns, destination);
        destination is None for a U-turn in place.
        """
        r, c, heading = self.robot.pose
        right = _step_from(r, c, turn_right(heading))
        if self.arena.footprint_free(*right) and not self.arena.get(*right).visited:
            return [Move.RIGHT], right
        ahead = _step_from(r, c, heading)
        if self.arena.footprint_free(*ahead):
            return [], ahead
        left = _step_from(r, c, turn_left(heading))
        if self.arena.footprint_free(*left):
            return [Move.LEFT], left
        return [Move.RIGHT, Move.RIGHT], None

    def step(self):
        turns, dest = self.decide()
        if self._should_pledge(dest):
            self.pledge_escape()
            return
        for turn in turns:
            self.execute(turn)
        if dest is not None and self._free_ahead():
            self.execute(Move.FORWARD)

    def _should_pledge(self, dest):
        readings = self.robot.last_readings
        if len(readings) < 5:
            return False
        if readings[0] != SENSOR_NEAR or readings[-1] != SENSOR_NEAR:
            return False
        if self.arena.get(*self.robot.position).pledged:
            return False
        return dest is None or self.arena.get(*dest).visited

    # =========================
    # Pledge escape
    # =========================
    def _at_edge(self):
        r, c = self.robot.position
        return r in (INFLATE_RADIUS, self.arena.rows - 1 - INFLATE_RADIUS) or \
            c in (INFLATE_RADIUS, self.arena.cols - 1 - INFLATE_RADIUS)

    def pledge_escape(self):
        """
        Keep the obstacle on the left and trace its perimeter until back at the
        entry cell, at the arena edge, or out of steps. Returns steps taken.
        """
        self.state = ExplorationState.PLEDGE_ESCAPE
        self.summary.pledges += 1
        origin = self.robot.position
        self.arena.get(*origin).pledged = True
        logger.info("[Explore] Pledge escape from %s.", self.robot.pose)

        r, c, heading = self.robot.pose
        if self.arena.footprint_free(*_step_from(r, c, reverse(heading))):
            self.execute(Move.BACKWARD)
        self.execute(Move.FORCED_RIGHT)

        steps = 0
        while steps < self.pledge_step_limit and not self._out_of_time():
            r, c, heading = self.robot.pose
            self.arena.get(r, c).pledged = True
            left = _step_from(r, c, turn_left(heading))
            if self.arena.footprint_free(*left) and not self.arena.get(*left).pledged:
                self.execute(Move.FORCED_LEFT)
            elif not self._free_ahead():
                self.execute(Move.FORCED_RIGHT)
                if not self.arena.footprint_free(*_step_from(r, c, turn_right(heading))):
                    self.execute(Move.FORCED_RIGHT)
            if self._free_ahead():
                self.execute(Move.FORWARD)
            steps += 1
            if self.robot.position == origin or self._at_edge():
                break

        self.arena.get(*self.robot.position).pledged = True
        self.state = ExplorationState.EXPLORING
        logger.info("[Explore] Pledge escape ended at %s after %d steps.", self.robot.pose, steps)
        return steps

    # =========================
    # Calibration (hardware only)
    # =========================
    def can_calibrate_facing(self, heading):
        r, c = self.robot.position
        for side in (-1, 0, 1):
            dr, dc = to_grid(heading, INFLATE_RADIUS + 1, side)
            if not self.arena.is_obstacle_or_wall(r + dr, c + dc):
                return False
        return True

    def _calibration_heading(self):
        heading = self.robot.heading
        for candidate in (turn_right(heading), turn_left(heading), reverse(heading)):
            if self.can_calibrate_facing(candidate):
                return candidate
        return None

    def _calibrate(self):
        if self.robot.calibrate():
            self.summary.calibrations += 1
        self.summary.commands.append(Move.CALIBRATE.value)
        self._moves_since_calibration = 0

    def _calibrate_if_needed(self):
        if not self.robot.is_hardware or self._calibrating:
            return
        self._calibrating = True
        previous = self.state
        self.state = ExplorationState.CALIBRATING
        try:
            if self.can_calibrate_facing(self.robot.heading):
                self._calibrate()
                return
            self._moves_since_calibration += 1
            if self._moves_since_calibration < self.calibrate_interval:
                return
            target = self._calibration_heading()
            if target is None:
                return
            turns = turns_between(self.robot.heading, target)
            for turn in turns:
                self.execute(turn)
            self._calibrate()
            for turn in _undo_turns(turns):
                self.execute(turn)
        finally:
            self._calibrating = False
            self.state = previous

    # =========================
    # Stuck recovery
    # =========================
    def _recover(self):
        self.summary.restarts += 1
        logger.warning("[Explore] Stuck at %s; recovery %d/%d.",
                       self.robot.pose, self.summary.restarts, self.max_restarts)
        start = self.arena.start
        home = self.planner.plan(self.robot.pose, start)
        if not self.robot.touched_goal:
            to_goal = self.planner.plan(self.robot.pose, self.arena.goal)
            if to_goal is not None and (home is None or to_goal.cost <= home.cost):
                self._follow(to_goal)
                home = self.planner.plan(self.robot.pose, start)
        exploring = False
        if home is None:
            exploring = True
            home = self.planner.plan(self.robot.pose, start, exploring=True)
        if home is None:
            logger.warning("[Explore] Recovery found no route home; resuming in place.")
        else:
            self._follow(home, exploring=exploring)
        self.arena.clear_all_positions()
        self.state = ExplorationState.EXPLORING

    # =========================
    # Frontier sweep
    # =========================
    def sees_unexplored(self, pose):
        """True if some sensor at pose would reach an unexplored cell."""
        r, c, heading = pose
        for sensor in self.robot.sensors:
            dr, dc = to_grid(heading, sensor.forward, sensor.right)
            fdr, fdc = DIRS[(heading + sensor.facing) % 360]
            for i in range(sensor.near, sensor.far + 1):
                cr, cc = r + dr + fdr * i, c + dc + fdc * i
                if not self.arena.is_valid(cr, cc):
                    break
                cell = self.arena.get(cr, cc)
                if not cell.explored:
                    return True
                if cell.is_obstacle:
                    break
        return False

    def _sweep_frontiers(self):
        trips = 0
        while trips < self.arena.rows * self.arena.cols:
            if self.arena.coverage() >= self.coverage_limit or self._out_of_time():
                break
            if self.summary.moves >= self.max_moves:
                break
            route = self.planner.search_nearest(self.robot.pose, self.sees_unexplored)
            if route is None or not route.moves:
                break
            trips += 1
            self._follow(route)
        self.summary.frontier_trips = trips
        if trips:
            logger.info("[Explore] Frontier sweep: %d trips, coverage %.1f%%.",
                        trips, self.arena.coverage() * 100)

    # =========================
    # Return home
    # =========================
    def _drive_to(self, target):
        """Route to target, replanning when newly sensed obstacles block the way."""
        driven = Route([], 0, [self.robot.pose])
        for _ in range(RETURN_REPLANS + 1):
            if self.robot.position == tuple(target):
                return driven
            exploring = False
            route = self.planner.plan(self.robot.pose, target)
            if route is None:
                exploring = True
                route = self.planner.plan(self.robot.pose, target, exploring=True)
            if route is None:
                logger.error("[Explore] No route from %s to %s.", self.robot.pose, tuple(target))
                return None
            done = self._follow(route, exploring=exploring)
            moves = route.moves[:done]
            driven = driven.extend(Route(moves, route_cost(moves), route.poses[:done + 1]))
        if self.robot.position == tuple(target):
            return driven
        return None

    def _return_home(self):
        self.state = ExplorationState.RETURNING
        targets = []
        if self.require_goal and not self.robot.touched_goal:
            targets.append(self.arena.goal)
        targets.append(self.arena.start)

        total = Route([], 0, [self.robot.pose])
        for target in targets:
            leg = self._drive_to(target)
            if leg is None:
                self.summary.return_failed = True
                logger.error("[Explore] Return home failed at %s.", self.robot.pose)
                break
            total = total.extend(leg)
        else:
            turns = turns_between(self.robot.heading, START_HEADING)
            poses = [self.robot.pose]
            for turn in turns:
                self.execute(turn)
                poses.append(self.robot.pose)
            total = total.extend(Route(turns, route_cost(turns), poses))
        self.summary.return_route = total
