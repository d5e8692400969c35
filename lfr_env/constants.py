from __future__ import annotations

# Scale: one track pixel is one millimetre
PIXELS_PER_METER: float = 1000.0

# Track tiles
TRACK_PART_SIZE_PX: int = 350
TAPE_WIDTH_PX: int = 20

# Robot geometry (meters)
ROBOT_WHEELBASE_M: float = 0.10
ROBOT_LENGTH_M: float = 0.12
SENSOR_OFFSET_M: float = 0.05
SENSOR_SPREAD_M: float = 0.03
SENSOR_DIAMETER_M: float = 0.005
SENSOR_COUNT: int = 3

# Simulation
DT_S: float = 0.02
MAX_ROBOT_SPEED_MPS: float = 0.5
MOTOR_EFFICIENCY: float = 0.85
MOTOR_RESPONSE_FACTOR: float = 0.1
MOTOR_DEADBAND_PWM: int = 10
PWM_MAX: int = 255
MIN_WHEELBASE_M: float = 0.001

# Line classification
LINE_THRESHOLD: float = 100.0
ALPHA_CUTOFF: int = 128

# Lap timing
MIN_LAP_TIME_S: float = 2.0
LAP_HISTORY_LEN: int = 10
TRAIL_MAX_LEN: int = 300

# Digital pins
MOTOR_LEFT_PIN: int = 6
MOTOR_RIGHT_PIN: int = 5
FIRST_SENSOR_PIN: int = 2
