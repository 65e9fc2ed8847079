import matplotlib.pyplot as plt
from conftest import open_arena

from explorer.display import animate_run, cell_codes, draw_snapshot, save_snapshot
from explorer.grid import ArenaMap


def test_cell_codes_classify_snapshot():
    arena = ArenaMap()
    arena.set_explored(5, 5)
    arena.set_obstacle(5, 5)
    codes = cell_codes(arena.snapshot())
    assert codes[5, 5] == 2
    assert codes[1, 1] == 1
    assert codes[0, 0] == 3      # border ring
    assert codes[10, 10] == 0


def test_draw_snapshot_does_not_touch_the_map(tmp_path):
    truth = open_arena(obstacles=[(8, 8)])
    arena = ArenaMap()
    snap = arena.snapshot(pose=(1, 1, 90))
    before = snap.explored.copy()

    fig, ax = plt.subplots()
    draw_snapshot(ax, snap, truth=truth)
    plt.close(fig)

    assert (snap.explored == before).all()
    assert (arena.explored_array() == before).all()
    path = save_snapshot(snap, tmp_path / "map.png", truth=truth)
    assert path.exists()


def test_animate_run_returns_animation():
    arena = ArenaMap()
    frames = [arena.snapshot(pose=(1, 1, 0)), arena.snapshot(pose=(2, 1, 0))]
    ani = animate_run(frames, show=False)
    assert ani is not None
    plt.close("all")
    assert animate_run([], show=False) is None
