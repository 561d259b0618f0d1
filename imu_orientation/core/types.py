"""Data types for IMU orientation estimation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Tuple
import numpy as np
from numpy.typing import NDArray


class SensorKind(str, Enum):
    """Logical sensor roles feeding the estimator."""
    GYRO = "gyro"
    ACC = "acc"
    MAG = "mag"


@dataclass(frozen=True)
class SensorSample:
    """Timestamped 3-axis reading from a single sensor.

    Timestamps are monotonic integer microseconds as delivered by the
    sensor backend.
    """
    kind: ClassVar[SensorKind]

    timestamp_us: int
    x: float
    y: float
    z: float

    @property
    def vec(self) -> NDArray[np.float64]:
        """Reading as a vector [x, y, z]."""
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @property
    def norm(self) -> float:
        """Euclidean norm of the reading."""
        return float(np.sqrt(self.x**2 + self.y**2 + self.z**2))


@dataclass(frozen=True)
class GyroSample(SensorSample):
    """Angular velocity in rad/s."""
    kind: ClassVar[SensorKind] = SensorKind.GYRO

    @classmethod
    def from_degrees(cls, timestamp_us: int, x: float, y: float, z: float) -> "GyroSample":
        """Create from an angular rate given in deg/s."""
        return cls(
            timestamp_us=timestamp_us,
            x=float(np.deg2rad(x)),
            y=float(np.deg2rad(y)),
            z=float(np.deg2rad(z)),
        )


@dataclass(frozen=True)
class AccSample(SensorSample):
    """Linear acceleration in m/s^2."""
    kind: ClassVar[SensorKind] = SensorKind.ACC


@dataclass(frozen=True)
class MagSample(SensorSample):
    """Magnetic flux density in uT (microtesla)."""
    kind: ClassVar[SensorKind] = SensorKind.MAG

    @classmethod
    def from_tesla(cls, timestamp_us: int, x: float, y: float, z: float) -> "MagSample":
        """Create from a flux density given in tesla."""
        return cls(timestamp_us=timestamp_us, x=x * 1e6, y=y * 1e6, z=z * 1e6)


SAMPLE_TYPES = {
    SensorKind.GYRO: GyroSample,
    SensorKind.ACC: AccSample,
    SensorKind.MAG: MagSample,
}


@dataclass
class Quaternion:
    """Quaternion representing orientation.

    Convention: [w, x, y, z] where w is the scalar component.
    """
    w: float
    x: float
    y: float
    z: float

    @classmethod
    def identity(cls) -> "Quaternion":
        """Return identity quaternion (no rotation)."""
        return cls(w=1.0, x=0.0, y=0.0, z=0.0)

    @classmethod
    def from_array(cls, arr: NDArray[np.float64]) -> "Quaternion":
        """Create from numpy array [w, x, y, z]."""
        return cls(w=float(arr[0]), x=float(arr[1]),
                   y=float(arr[2]), z=float(arr[3]))

    def to_array(self) -> NDArray[np.float64]:
        """Convert to numpy array [w, x, y, z]."""
        return np.array([self.w, self.x, self.y, self.z], dtype=np.float64)

    @property
    def norm(self) -> float:
        """Euclidean norm of quaternion."""
        return float(np.sqrt(self.w**2 + self.x**2 + self.y**2 + self.z**2))

    def is_valid(self, tolerance: float = 0.01) -> bool:
        """Check if quaternion is unit quaternion within tolerance."""
        return abs(self.norm - 1.0) <= tolerance and self.is_finite()

    def is_finite(self) -> bool:
        """Check all components are finite."""
        return bool(np.all(np.isfinite([self.w, self.x, self.y, self.z])))


@dataclass(frozen=True)
class EulerAngles:
    """Euler angles in radians.

    Convention: ZYX (yaw-pitch-roll) intrinsic rotations.
    """
    roll: float   # Rotation about X axis
    pitch: float  # Rotation about Y axis
    yaw: float    # Rotation about Z axis

    @property
    def roll_deg(self) -> float:
        """Roll angle in degrees."""
        return float(np.rad2deg(self.roll))

    @property
    def pitch_deg(self) -> float:
        """Pitch angle in degrees."""
        return float(np.rad2deg(self.pitch))

    @property
    def yaw_deg(self) -> float:
        """Yaw angle in degrees."""
        return float(np.rad2deg(self.yaw))


@dataclass(frozen=True)
class Rotation:
    """Orientation exported to consumers.

    The axis is a unit vector, or the zero vector when there is no
    rotation. The angle is in degrees, within [0, 360).
    """
    axis: Tuple[float, float, float]
    angle_deg: float
    quaternion: Quaternion
    euler: EulerAngles
    timestamp_us: int

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "t_us": self.timestamp_us,
            "axis": list(self.axis),
            "angle_deg": self.angle_deg,
            "qw": self.quaternion.w,
            "qx": self.quaternion.x,
            "qy": self.quaternion.y,
            "qz": self.quaternion.z,
            "roll": self.euler.roll_deg,
            "pitch": self.euler.pitch_deg,
            "yaw": self.euler.yaw_deg,
        }


@dataclass
class ValidationResult:
    """Result of sensor data validation."""
    is_valid: bool
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.is_valid = False
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)
