# display.py
# Read-only rendering of map snapshots (bottom-left origin, x = col, y = row).
# Requires: numpy, matplotlib

import math

import numpy as np
import matplotlib.pyplot as plt
from matplotlib import animation
from matplotlib.colors import ListedColormap
from matplotlib.patches import FancyArrow

from explorer.constants import INFLATE_RADIUS, ROBOT_FOOTPRINT

# 0 unexplored, 1 free, 2 obstacle, 3 virtual wall (free but no centre)
CELL_COLOURS = ListedColormap(["0.55", "white", "tab:red", "#fde7c4"])


def draw_grid(ax, rows, cols):
    for r in range(rows + 1):
        ax.plot([0, cols], [r, r], '-', lw=0.5, color='0.8', zorder=0)
    for c in range(cols + 1):
        ax.plot([c, c], [0, rows], '-', lw=0.5, color='0.8', zorder=0)
    ax.plot([0, cols, cols, 0, 0], [0, 0, rows, rows, 0], 'k-', lw=1.0, zorder=1)


def cell_center_xy(rc):
    r, c = rc
    return c + 0.5, r + 0.5


def draw_zone(ax, centre, label, color):
    r, c = centre
    ax.add_patch(plt.Rectangle((c - INFLATE_RADIUS, r - INFLATE_RADIUS), ROBOT_FOOTPRINT, ROBOT_FOOTPRINT,
                               facecolor=color, alpha=0.12, edgecolor=color, lw=1.5, zorder=2))
    x, y = cell_center_xy(centre)
    ax.text(x, y, label, color=color, fontsize=8, ha='center', va='center', zorder=3)


def robot_poly(rc):
    r, c = rc
    x0, y0 = c - INFLATE_RADIUS, r - INFLATE_RADIUS
    xs = [x0, x0 + ROBOT_FOOTPRINT, x0 + ROBOT_FOOTPRINT, x0, x0]
    ys = [y0, y0, y0 + ROBOT_FOOTPRINT, y0 + ROBOT_FOOTPRINT, y0]
    return xs, ys


def heading_arrow(pose):
    r, c, theta = pose
    x, y = cell_center_xy((r, c))
    rad = math.radians(theta)
    return FancyArrow(x, y, 0.8 * math.sin(rad), 0.8 * math.cos(rad),
                      width=0.1, length_includes_head=True,
                      head_width=0.4, head_length=0.4, color="orange", zorder=5)


def cell_codes(snapshot):
    codes = np.zeros(snapshot.explored.shape, dtype=int)
    codes[snapshot.explored] = 1
    codes[snapshot.explored & snapshot.virtual_wall] = 3
    codes[snapshot.explored & snapshot.obstacle] = 2
    return codes


def draw_snapshot(ax, snapshot, truth=None, title=None):
    """Draw one snapshot onto ax. truth (an ArenaMap) outlines the real obstacles."""
    rows, cols = snapshot.explored.shape
    ax.clear()
    ax.set_xlim(0, cols)
    ax.set_ylim(0, rows)
    ax.set_aspect('equal', adjustable='box')
    ax.imshow(cell_codes(snapshot), cmap=CELL_COLOURS, vmin=0, vmax=3, origin='lower',
              extent=(0, cols, 0, rows), interpolation='nearest', zorder=0)
    draw_grid(ax, rows, cols)
    draw_zone(ax, snapshot.start, "START", 'tab:blue')
    draw_zone(ax, snapshot.goal, "GOAL", 'tab:green')

    if truth is not None:
        for r, c in np.argwhere(truth.obstacle_array()):
            ax.plot([c, c + 1, c + 1, c, c], [r, r, r + 1, r + 1, r], color='tab:red', lw=1.5)

    if snapshot.pose is not None:
        xs, ys = robot_poly(snapshot.pose[:2])
        ax.plot(xs, ys, 'k-', lw=2, zorder=4)
        ax.add_patch(heading_arrow(snapshot.pose))

    ax.set_title(title or f"explored {snapshot.coverage:.0%}")
    return ax


def save_snapshot(snapshot, path, truth=None):
    fig, ax = plt.subplots(figsize=(6, 8))
    draw_snapshot(ax, snapshot, truth=truth)
    fig.savefig(path, bbox_inches='tight')
    plt.close(fig)
    return path


def animate_run(frames, truth=None, interval=80, show=True):
    """Replay the snapshots recorded through ExplorationEngine(on_update=...)."""
    if not frames:
        return None
    rows, cols = frames[0].explored.shape
    fig, ax = plt.subplots(figsize=(6, 6 * rows / cols))

    def update(i):
        snap = frames[i]
        draw_snapshot(ax, snap, truth=truth,
                      title=f"move {i}/{len(frames) - 1}  |  explored {snap.coverage:.0%}")
        return ax.patches

    ani = animation.FuncAnimation(fig, update, frames=len(frames), interval=interval, repeat=False)
    if show:
        plt.show()
    return ani
