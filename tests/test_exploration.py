import json

from conftest import FakeTransport, open_arena

from explorer.constants import MOVE_COST
from explorer.exploration import ExplorationEngine, ExplorationState, turns_between
from explorer.grid import ArenaMap
from explorer.pathing import RoutePlanner
from explorer.recognition import RecognitionTrigger
from explorer.robot import HardwareRobot, Move, SimulatedRobot


def engine_at(arena, row, col, heading, **kwargs):
    robot = SimulatedRobot(arena, row=row, col=col, heading=heading, goal=arena.goal)
    return ExplorationEngine(arena, robot, **kwargs)


class CountingPlanner(RoutePlanner):
    def __init__(self, arena):
        super().__init__(arena)
        self.calls = 0

    def plan(self, *args, **kwargs):
        self.calls += 1
        return super().plan(*args, **kwargs)


# =========================
# Wall-following decisions
# =========================
def test_prefers_right_turn_into_unvisited_space():
    engine = engine_at(open_arena(), 5, 5, 0)
    assert engine.decide() == ([Move.RIGHT], (5, 6))


def test_goes_straight_when_right_was_visited():
    arena = open_arena()
    arena.get(5, 6).visited = True
    engine = engine_at(arena, 5, 5, 0)
    assert engine.decide() == ([], (6, 5))


def test_turns_left_when_right_and_ahead_are_blocked():
    engine = engine_at(open_arena(obstacles=[(5, 7), (7, 5)]), 5, 5, 0)
    assert engine.decide() == ([Move.LEFT], (5, 4))


def test_u_turn_in_a_dead_end():
    engine = engine_at(open_arena(obstacles=[(5, 7), (7, 5), (5, 3)]), 5, 5, 0)
    assert engine.decide() == ([Move.RIGHT, Move.RIGHT], None)


def test_turns_between_headings():
    assert turns_between(0, 90) == [Move.RIGHT]
    assert turns_between(0, 270) == [Move.LEFT]
    assert turns_between(90, 270) == [Move.RIGHT, Move.RIGHT]
    assert turns_between(180, 180) == []


def test_wall_following_alone_maps_a_simply_connected_arena():
    # two-cell spur off the west wall; the free space has no island
    truth = open_arena(9, 7, [(4, 1), (4, 2)])
    explored = ArenaMap(9, 7, start=(1, 1), goal=(7, 5))
    robot = SimulatedRobot(truth, goal=(7, 5))
    engine = ExplorationEngine(explored, robot, completeness=1.0, coverage_limit=1.0,
                               time_limit=120, max_restarts=0)
    perimeter = 2 * (explored.rows + explored.cols)

    engine._sense()
    reason = engine._explore_loop()

    assert reason == "coverage-limit"
    assert engine.summary.restarts == 0
    assert engine.summary.pledges == 0
    assert engine.summary.moves <= perimeter
    assert explored.explored_array().all()
    assert (explored.obstacle_array() == truth.obstacle_array()).all()
    assert robot.touched_goal


# =========================
# Pledge escape
# =========================
def test_pledge_escape_terminates_around_l_shape():
    obstacles = [(8, c) for c in range(5, 10)] + [(r, 9) for r in range(8, 13)]
    arena = open_arena(obstacles=obstacles)
    engine = engine_at(arena, 6, 7, 0)

    steps = engine.pledge_escape()

    assert 0 < steps <= engine.pledge_step_limit
    assert engine.state is ExplorationState.EXPLORING
    assert engine.summary.pledges == 1
    assert arena.get(6, 7).pledged
    assert arena.footprint_free(*engine.robot.position)


def test_pledge_escape_terminates_inside_u_shape():
    obstacles = [(10, c) for c in range(5, 10)] + [(r, 5) for r in range(6, 11)] + [(r, 9) for r in range(6, 11)]
    arena = open_arena(obstacles=obstacles)
    engine = engine_at(arena, 8, 7, 0)

    steps = engine.pledge_escape()

    assert 0 < steps <= engine.pledge_step_limit
    assert engine.state is ExplorationState.EXPLORING
    assert arena.footprint_free(*engine.robot.position)
    assert set(engine.summary.commands) <= {"F", "B", "l", "r"}


# =========================
# Full simulated runs
# =========================
def test_single_obstacle_arena_is_fully_mapped_and_robot_returns():
    block = [(r, c) for r in range(5, 8) for c in range(5, 8)]
    truth = open_arena(obstacles=block)
    explored = ArenaMap()
    robot = SimulatedRobot(truth)
    recognition = RecognitionTrigger()
    engine = ExplorationEngine(explored, robot, time_limit=120, recognition=recognition)

    summary = engine.run()

    assert engine.state is ExplorationState.DONE
    assert not summary.return_failed
    assert robot.pose == (1, 1, 0)
    assert summary.coverage == 1.0
    assert summary.unclassified == 0
    assert (explored.obstacle_array() == truth.obstacle_array()).all()

    r0, c0, _ = summary.return_route.poses[0]
    assert summary.return_cost >= (abs(r0 - 1) + abs(c0 - 1)) * MOVE_COST

    faces = [(e.row, e.col, e.side) for e in summary.recognition_events]
    assert len(faces) == len(set(faces))
    assert all((r, c) in block for r, c, _ in faces)
    assert summary.image_faces == 12
    assert 0.0 <= summary.image_coverage <= 1.0
    assert summary.image_coverage == len(faces) / 12

    json.dumps(summary.to_dict())


def test_ring_arena_triggers_stuck_recovery():
    block = [(r, c) for r in range(3, 6) for c in range(3, 6)]
    truth = open_arena(9, 9, block)
    explored = ArenaMap(9, 9, start=(1, 1), goal=(7, 7))
    planner = CountingPlanner(explored)
    robot = SimulatedRobot(truth, goal=(7, 7))
    engine = ExplorationEngine(explored, robot, planner, completeness=1.0, coverage_limit=1.0,
                               time_limit=120, max_restarts=2)

    summary = engine.run()

    assert summary.restarts >= 1
    assert summary.stop_reason == "restart-limit"
    assert planner.calls >= 1
    assert robot.pose == (1, 1, 0)
    assert explored.is_obstacle(4, 4)


def test_time_limit_stops_the_run():
    ticks = iter(range(0, 100000, 10))
    truth = open_arena()
    engine = ExplorationEngine(ArenaMap(), SimulatedRobot(truth), time_limit=25,
                               clock=lambda: next(ticks))
    summary = engine.run()
    assert summary.stop_reason == "time-limit"
    assert summary.frontier_trips == 0


def test_require_goal_routes_through_goal_before_home():
    truth = open_arena(9, 9)
    explored = ArenaMap(9, 9, start=(1, 1), goal=(7, 7))
    robot = SimulatedRobot(truth, goal=(7, 7))
    engine = ExplorationEngine(explored, robot, coverage_limit=0.05, require_goal=True)

    summary = engine.run()

    assert summary.stop_reason == "coverage-limit"
    assert robot.touched_goal
    assert robot.pose == (1, 1, 0)
    assert not summary.return_failed


# =========================
# Calibration (hardware only)
# =========================
def hardware_engine(truth, row, col, heading, **kwargs):
    transport = FakeTransport(truth=truth)
    robot = HardwareRobot(transport, row=row, col=col, heading=heading, goal=truth.goal)
    transport.robot = robot
    return ExplorationEngine(truth, robot, **kwargs), transport


def test_calibrates_on_the_spot_against_a_wall():
    engine, transport = hardware_engine(open_arena(), 2, 1, 180)
    engine.execute(Move.FORWARD)
    assert transport.sent == ["AR,F", "AR,C"]
    assert engine.summary.calibrations == 1


def test_calibrates_sideways_after_interval():
    engine, transport = hardware_engine(open_arena(9, 9), 4, 7, 0, calibrate_interval=1)
    engine.execute(Move.FORWARD)
    assert transport.sent == ["AR,F", "AR,R", "AR,C", "AR,L"]
    assert engine.robot.pose == (5, 7, 0)
    assert engine.state is ExplorationState.IDLE


def test_no_calibration_without_a_flat_surface():
    engine, transport = hardware_engine(open_arena(9, 9), 3, 4, 0, calibrate_interval=2)
    engine.execute(Move.FORWARD)
    assert transport.sent == ["AR,F"]
    assert engine.summary.calibrations == 0


def test_simulated_robot_never_calibrates():
    engine = engine_at(open_arena(), 2, 1, 180)
    engine.execute(Move.FORWARD)
    assert engine.summary.calibrations == 0
    assert engine.summary.commands == ["F"]


def test_hardware_run_explores_and_returns():
    truth = open_arena(9, 9)
    transport = FakeTransport(truth=truth)
    robot = HardwareRobot(transport, goal=(7, 7))
    transport.robot = robot
    explored = ArenaMap(9, 9, start=(1, 1), goal=(7, 7))
    engine = ExplorationEngine(explored, robot, time_limit=120)

    summary = engine.run()

    assert robot.pose == (1, 1, 0)
    assert not summary.return_failed
    assert summary.calibrations >= 1
    assert summary.unclassified == 0
    assert not explored.obstacle_array().any()


class CommandDrivenTransport(FakeTransport):
    """Answers exactly one read per command sent, like the real controller."""

    def __init__(self, truth):
        super().__init__(truth=truth)
        self.unanswered = 0
        self.starved_reads = 0

    def send_msg(self, msg, msg_type=None):
        self.unanswered += 1
        return super().send_msg(msg, msg_type)

    def recv_msg(self):
        if self.unanswered == 0:
            self.starved_reads += 1
            return ""
        self.unanswered -= 1
        return super().recv_msg()


def test_hardware_run_prompts_the_controller_before_the_first_reading():
    truth = open_arena(9, 9)
    transport = CommandDrivenTransport(truth)
    robot = HardwareRobot(transport, goal=(7, 7))
    transport.robot = robot
    engine = ExplorationEngine(ArenaMap(9, 9, start=(1, 1), goal=(7, 7)), robot, time_limit=120)

    summary = engine.run()

    assert transport.sent[0] == "AR,start"
    assert transport.starved_reads == 0
    assert not summary.return_failed
    assert robot.pose == (1, 1, 0)


# =========================
# Image capture
# =========================
def test_stops_once_enough_images_are_found():
    arena = open_arena(obstacles=[(1, 4)])
    recognition = RecognitionTrigger()
    engine = engine_at(arena, 1, 1, 0, recognition=recognition, image_target=1)

    summary = engine.run()

    assert summary.stop_reason == "images-found"
    assert summary.frontier_trips == 0
    assert recognition.events[0].side == "W"
    assert engine.robot.pose == (1, 1, 0)
    assert len(summary.recognition_events) == 1
    assert summary.image_faces == 4
    assert summary.image_coverage == 0.25
    assert summary.to_dict()["image_coverage"] == 0.25


def test_image_coverage_is_empty_without_obstacle_faces():
    engine = engine_at(open_arena(7, 7), 1, 1, 0, coverage_limit=0.5)
    summary = engine.run()
    assert summary.image_faces == 0
    assert summary.image_coverage is None
    assert summary.to_dict()["image_coverage"] is None
