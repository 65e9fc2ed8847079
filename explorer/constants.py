# constants.py
# Arena, robot and run parameters shared by the exploration package.
#
# Coordinates are (row, col) with (0,0) at the BOTTOM-LEFT; rows grow north,
# cols grow east. Headings are multiples of 90: 0=N, 90=E, 180=S, 270=W.

import os

# =========================
# Arena
# =========================
MAP_ROWS = 20
MAP_COLS = 15
CELL_CM = 10.0              # each cell = 10cm

ROBOT_FOOTPRINT = 3         # robot is 3x3 cells
INFLATE_RADIUS = (ROBOT_FOOTPRINT - 1) // 2  # = 1

START = (1, 1)
GOAL = (MAP_ROWS - 2, MAP_COLS - 2)   # (18, 13)
START_HEADING = 0

# =========================
# Headings
# =========================
HEADINGS = [0, 90, 180, 270]
DIRS = {
    0:   (+1,  0),  # N (row+1)
    90:  ( 0, +1),  # E (col+1)
    180: (-1,  0),  # S
    270: ( 0, -1),  # W
}
SIDE_FOR_HEADING = {0: 'N', 90: 'E', 180: 'S', 270: 'W'}
HEADING_FOR_SIDE = {s: h for h, s in SIDE_FOR_HEADING.items()}
SIDE_INDEX = {'N': 0, 'E': 1, 'S': 2, 'W': 3}

# =========================
# Costs
# =========================
MOVE_COST = 10              # one cell forward or backward
TURN_COST = 20              # one 90° turn
INFINITE_COST = 9999

# =========================
# Sensors
# =========================
SENSOR_NEAR = 1             # range in cells, measured from the sensor
SENSOR_FAR = 3
NO_READING = -1             # nothing within range
CAMERA_RANGE = 2            # recognition trigger reach beyond the footprint edge
IMAGE_TARGET = 6            # images to find before a recognition run can stop early
OBSTACLE_EVIDENCE_RATIO = 0.5

# =========================
# Exploration
# =========================
COVERAGE_LIMIT = 1.0                    # fraction of cells
COMPLETENESS_THRESHOLD = 100 / (MAP_ROWS * MAP_COLS)
TIME_LIMIT_S = 360.0
RESTART_LIMIT = 5           # position_count above this means stuck
MAX_RESTARTS = 3
CALIBRATE_INTERVAL = 5      # forward moves without a flat surface
MAX_MOVES = 5000
RETURN_REPLANS = 3
MOVE_DELAY_S = 0.0          # simulated actuation delay

# =========================
# Link to the robot controller
# =========================
RPI_HOST = os.getenv("RPI_HOST", "192.168.4.4")
RPI_PORT = int(os.getenv("RPI_PORT", "5050"))
NUM_OF_RETRIES = 3
