# headings.py
# Heading arithmetic. Body-frame offsets are (forward, right) in cells.

from explorer.constants import DIRS


def turn_right(heading):
    return (heading + 90) % 360


def turn_left(heading):
    return (heading - 90) % 360


def reverse(heading):
    return (heading + 180) % 360


def to_grid(heading, forward, right=0):
    """Rotate a body-frame offset into a (dr, dc) grid delta."""
    fdr, fdc = DIRS[heading]
    rdr, rdc = DIRS[turn_right(heading)]
    return forward * fdr + right * rdr, forward * fdc + right * rdc


def quarter_turns(a, b):
    """Minimum number of 90° turns between two headings (0..2)."""
    d = (b - a) % 360
    return min(d, 360 - d) // 90
