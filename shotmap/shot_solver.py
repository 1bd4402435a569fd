#!/usr/bin/env python3
"""
FRC 2026 Shot Feasibility Solver
================================
Decides whether a robot driving across the field can score into the hub:
finds a launch speed, hood angle and turret (azimuth) correction that put the
ball at the target height with no lateral drift, under a ceiling, while
descending fast enough.

Pipeline for one field position:
    SweepSeeder (coarse vacuum search) -> NewtonRefiner -> ShotValidator

Coordinate frame of a single shot (origin at the shooter exit):
    x = along the line of fire (toward the target)
    y = lateral (sideways drift)
    z = height above the shooter exit

Author: FRC Trajectory Tools
License: MIT
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, Optional, Tuple

import numpy as np


# Field geometry (meters)
FIELD_LENGTH = 16.54
FIELD_WIDTH = 8.07
DISPLAY_BUFFER = 1.5  # shown past the target on the field view

GRAVITY = 9.8  # m/s²

MIN_RANGE = 0.3  # closer than this is "on top of the hub"
MIN_EFFECTIVE_SPEED = 0.1  # m/s toward the target
RK4_DT = 0.002  # s
RK4_MAX_TIME = 5.0  # s
TRAJECTORY_STEPS = 60


class SpeedMode(Enum):
    """Whether the shooter wheel speed is free or locked."""
    VARIABLE = "variable"
    FIXED = "fixed"


class AngleMode(Enum):
    """Whether the hood angle is free or locked."""
    VARIABLE = "variable"
    FIXED = "fixed"


class GamePiece(Enum):
    """FRC game pieces with known physical properties."""
    # 2026 game piece
    FUEL = "fuel"
    # Previous years for reference
    CARGO_2022 = "cargo_2022"  # 2022 Rapid React
    POWER_CELL_2020 = "power_cell_2020"  # 2020 Infinite Recharge


@dataclass(frozen=True)
class GamePieceProperties:
    """Physical properties of a game piece."""
    name: str
    mass: float  # kg
    diameter: float  # meters
    drag_coefficient: float  # dimensionless

    @property
    def cross_section(self) -> float:
        """Frontal area (m²)."""
        return np.pi * (self.diameter / 2) ** 2

    @classmethod
    def from_game_piece(cls, piece: GamePiece) -> 'GamePieceProperties':
        """Get properties for standard FRC game pieces."""
        properties = {
            GamePiece.FUEL: cls(
                name="Fuel (2026)",
                mass=0.2268,  # 0.5 lb
                diameter=0.150,  # 5.91 in
                drag_coefficient=0.47,  # smooth sphere
            ),
            GamePiece.CARGO_2022: cls(
                name="Cargo (2022)",
                mass=0.27,
                diameter=0.24,  # 9.5 in
                drag_coefficient=0.47,
            ),
            GamePiece.POWER_CELL_2020: cls(
                name="Power Cell (2020)",
                mass=0.141,
                diameter=0.1778,  # 7 in
                drag_coefficient=0.47,
            ),
        }
        return properties[piece]


@dataclass(frozen=True)
class EnvironmentConditions:
    """Environmental conditions affecting the flight."""
    gravity: float = GRAVITY  # m/s²
    temperature_celsius: float = 15.0
    altitude_meters: float = 0.0

    @property
    def air_density(self) -> float:
        """Air density (kg/m³) from a barometric approximation."""
        scale_height = 8500  # meters
        temp_kelvin = self.temperature_celsius + 273.15
        standard_temp = 288.15  # K (15°C)

        pressure_ratio = np.exp(-self.altitude_meters / scale_height)
        temp_ratio = standard_temp / temp_kelvin

        return float(1.225 * pressure_ratio * temp_ratio)


def drag_constant(piece: GamePieceProperties, environment: EnvironmentConditions) -> float:
    """
    Quadratic drag constant k = ½ρCdA / m  (1/m).

    Drag deceleration is then  a = -k |v| v.
    """
    return (0.5 * environment.air_density * piece.drag_coefficient
            * piece.cross_section / piece.mass)


@dataclass(frozen=True)
class ShotConfig:
    """
    Everything one feasibility evaluation depends on.

    Angles are in degrees, speeds in m/s, lengths in meters. Heights are
    measured from the carpet. ``max_descent_velocity`` is signed: a shot is
    only accepted when its vertical velocity at the target is at most this
    value (negative = must be coming down). ``max_lateral_drift`` of 0
    disables the drift check.
    """
    speed_mode: SpeedMode = SpeedMode.VARIABLE
    min_speed: float = 6.0
    max_speed: float = 12.0
    fixed_speed: float = 9.0

    angle_mode: AngleMode = AngleMode.VARIABLE
    min_angle: float = 20.0
    max_angle: float = 70.0
    fixed_angle: float = 45.0

    tangential_velocity: float = 0.0
    radial_velocity: float = 0.0

    grid_resolution: float = 0.25
    platform_height: float = 0.5

    target_x: float = 4.63
    target_y: float = 4.03
    target_height: float = 1.83

    ceiling_height: float = 4.0
    max_descent_velocity: float = -1.0
    max_lateral_drift: float = 0.0

    drag_enabled: bool = False
    game_piece: GamePieceProperties = field(
        default_factory=lambda: GamePieceProperties.from_game_piece(GamePiece.FUEL))
    environment: EnvironmentConditions = field(default_factory=EnvironmentConditions)

    @property
    def speed_fixed(self) -> bool:
        return self.speed_mode is SpeedMode.FIXED

    @property
    def angle_fixed(self) -> bool:
        return self.angle_mode is AngleMode.FIXED

    @property
    def speed_bounds(self) -> Tuple[float, float]:
        """Active (min, max) shot speed."""
        if self.speed_fixed:
            return self.fixed_speed, self.fixed_speed
        return self.min_speed, self.max_speed

    @property
    def angle_bounds(self) -> Tuple[float, float]:
        """Active (min, max) hood angle in degrees."""
        if self.angle_fixed:
            return self.fixed_angle, self.fixed_angle
        return self.min_angle, self.max_angle

    @property
    def height_difference(self) -> float:
        return self.target_height - self.platform_height

    @property
    def gravity(self) -> float:
        return self.environment.gravity

    @property
    def drag_k(self) -> float:
        """Drag constant, 0 when drag is disabled."""
        if not self.drag_enabled:
            return 0.0
        return drag_constant(self.game_piece, self.environment)

    def with_platform_velocity(self, tangential: float, radial: float) -> 'ShotConfig':
        """Copy of this configuration with the robot velocity replaced."""
        return replace(self, tangential_velocity=tangential, radial_velocity=radial)

    def with_overrides(self, **changes) -> 'ShotConfig':
        """Copy of this configuration with arbitrary fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class ShotResult:
    """A feasible shot. Infeasible shots are represented by ``None``."""
    shot_speed: float  # m/s
    hood_angle_deg: float
    azimuth_rad: float  # turret correction for the robot's sideways motion
    flight_time: float  # s
    height_error: float  # m
    descent_velocity: float  # vertical velocity at the target (m/s)
    descent_angle_deg: float  # positive = coming down
    apex_height: float  # m above the carpet
    lateral_drift: float  # m
    range_distance: float  # m

    @property
    def hood_angle_rad(self) -> float:
        return float(np.radians(self.hood_angle_deg))


@dataclass(frozen=True)
class TargetCrossing:
    """State of the ball when it crosses the target range."""
    height: float  # above the shooter exit
    lateral_offset: float
    time: float
    vx: float  # along the line of fire
    vy: float  # lateral
    vz: float  # vertical
    apex_height: float  # above the shooter exit


@dataclass(frozen=True)
class TrajectorySample:
    """A single point along a sampled trajectory."""
    x: float  # along line of fire
    z: float  # height above the carpet
    y: float  # lateral drift
    t: float  # time since launch


@dataclass(frozen=True)
class SweepSeed:
    """Best starting point found by the coarse sweep."""
    speed: float
    angle: float  # radians
    error: float


@dataclass(frozen=True)
class RefineResult:
    """Output of the Newton refinement."""
    angle: float  # radians
    flight_time: float
    azimuth_rad: float


@dataclass(frozen=True)
class DetailedShot:
    """Full detail of a feasible shot for the side/top/back views."""
    speed: float
    angle_rad: float
    hood_angle_deg: float
    h_speed: float
    v_launch: float
    azimuth_rad: float
    eff_radial_speed: float
    range_distance: float
    flight_time: float
    platform_height: float
    target_height: float
    ceiling_height: float
    tangential_velocity: float
    radial_velocity: float
    drag_enabled: bool
    trajectory: Tuple[TrajectorySample, ...]
    # Vacuum trajectory for comparison, only set when drag is enabled
    vacuum_trajectory: Optional[Tuple[TrajectorySample, ...]]
    vx_launch: float
    vz_launch: float
    vy_launch: float
    vx_target: float
    vz_target: float
    vy_target: float
    t_apex: float
    x_apex: float
    z_apex: float
    apex_height: float
    descent_velocity: float


class TrajectoryModel:
    """
    Where is the ball at time t, and when does it cross a given range.

    Vacuum flights use the closed-form parabola. With a non-zero drag
    constant the flight is integrated with fixed-step RK4.
    """

    def __init__(
            self,
            gravity: float = GRAVITY,
            drag_k: float = 0.0,
            platform_height: float = 0.0,
            tangential_velocity: float = 0.0,
            radial_velocity: float = 0.0,
            dt: float = RK4_DT,
            max_time: float = RK4_MAX_TIME
    ):
        self.gravity = gravity
        self.drag_k = drag_k
        self.platform_height = platform_height
        self.tangential_velocity = tangential_velocity
        self.radial_velocity = radial_velocity
        self.dt = dt
        self.max_time = max_time

    @classmethod
    def from_config(cls, config: ShotConfig, with_drag: bool = True) -> 'TrajectoryModel':
        return cls(
            gravity=config.gravity,
            drag_k=config.drag_k if with_drag else 0.0,
            platform_height=config.platform_height,
            tangential_velocity=config.tangential_velocity,
            radial_velocity=config.radial_velocity,
        )

    @property
    def drag_enabled(self) -> bool:
        return self.drag_k > 0.0

    def launch_components(
            self, speed: float, theta: float, phi: float
    ) -> Tuple[float, float, float]:
        """
        Ground-frame launch velocity (along range, lateral, vertical).

        The turret correction phi rotates the horizontal component; the
        robot's own velocity is then added on top.
        """
        h_speed = speed * math.cos(theta)
        along = h_speed * math.cos(phi) + self.radial_velocity
        lateral = h_speed * math.sin(phi) + self.tangential_velocity
        return along, lateral, speed * math.sin(theta)

    def cross_target(
            self, speed: float, theta: float, phi: float, range_distance: float
    ) -> Optional[TargetCrossing]:
        """State at the target range, or None if the ball never gets there."""
        along, lateral, vertical = self.launch_components(speed, theta, phi)
        if along <= MIN_EFFECTIVE_SPEED:
            return None

        if self.drag_enabled:
            return self.simulate_to_range(
                along, lateral, vertical, range_distance,
                self.platform_height, self.drag_k
            )

        g = self.gravity
        t = range_distance / along
        return TargetCrossing(
            height=vertical * t - 0.5 * g * t * t,
            lateral_offset=lateral * t,
            time=t,
            vx=along,
            vy=lateral,
            vz=vertical - g * t,
            apex_height=vertical * vertical / (2 * g),
        )

    def _acceleration(
            self, vx: float, vy: float, vz: float, drag_k: float
    ) -> Tuple[float, float, float]:
        """Gravity plus quadratic drag: a = g - k|v|v."""
        speed = math.sqrt(vx * vx + vy * vy + vz * vz)
        drag = drag_k * speed
        return -drag * vx, -drag * vy, -self.gravity - drag * vz

    def _rk4_step(
            self,
            x: float, y: float, z: float,
            vx: float, vy: float, vz: float,
            drag_k: float
    ) -> Tuple[float, float, float, float, float, float]:
        """Fourth-order Runge-Kutta integration step."""
        dt = self.dt

        # k1
        ax1, ay1, az1 = self._acceleration(vx, vy, vz, drag_k)

        # k2
        vx2 = vx + 0.5 * dt * ax1
        vy2 = vy + 0.5 * dt * ay1
        vz2 = vz + 0.5 * dt * az1
        ax2, ay2, az2 = self._acceleration(vx2, vy2, vz2, drag_k)

        # k3
        vx3 = vx + 0.5 * dt * ax2
        vy3 = vy + 0.5 * dt * ay2
        vz3 = vz + 0.5 * dt * az2
        ax3, ay3, az3 = self._acceleration(vx3, vy3, vz3, drag_k)

        # k4
        vx4 = vx + dt * ax3
        vy4 = vy + dt * ay3
        vz4 = vz + dt * az3
        ax4, ay4, az4 = self._acceleration(vx4, vy4, vz4, drag_k)

        # Combine
        x_new = x + (dt / 6.0) * (vx + 2 * vx2 + 2 * vx3 + vx4)
        y_new = y + (dt / 6.0) * (vy + 2 * vy2 + 2 * vy3 + vy4)
        z_new = z + (dt / 6.0) * (vz + 2 * vz2 + 2 * vz3 + vz4)
        vx_new = vx + (dt / 6.0) * (ax1 + 2 * ax2 + 2 * ax3 + ax4)
        vy_new = vy + (dt / 6.0) * (ay1 + 2 * ay2 + 2 * ay3 + ay4)
        vz_new = vz + (dt / 6.0) * (az1 + 2 * az2 + 2 * az3 + az4)

        return x_new, y_new, z_new, vx_new, vy_new, vz_new

    def simulate_to_range(
            self,
            vx0: float, vy0: float, vz0: float,
            range_distance: float,
            platform_height: float,
            drag_k: float
    ) -> Optional[TargetCrossing]:
        """
        Integrate a drag-affected flight until it reaches ``range_distance``.

        Returns the linearly interpolated crossing state, or None if the ball
        hits the carpet (z < -platform_height) first or is still short of the
        range after ``max_time`` seconds.
        """
        x = y = z = 0.0
        vx, vy, vz = vx0, vy0, vz0
        t = 0.0
        apex = 0.0

        for _ in range(int(round(self.max_time / self.dt))):
            nx, ny, nz, nvx, nvy, nvz = self._rk4_step(x, y, z, vx, vy, vz, drag_k)

            if nx >= range_distance:
                # Interpolate to find exact crossing point
                alpha = (range_distance - x) / (nx - x)
                height = z + alpha * (nz - z)
                return TargetCrossing(
                    height=height,
                    lateral_offset=y + alpha * (ny - y),
                    time=t + alpha * self.dt,
                    vx=vx + alpha * (nvx - vx),
                    vy=vy + alpha * (nvy - vy),
                    vz=vz + alpha * (nvz - vz),
                    apex_height=max(apex, height),
                )

            if nz < -platform_height:
                return None

            x, y, z, vx, vy, vz = nx, ny, nz, nvx, nvy, nvz
            t += self.dt
            apex = max(apex, z)

        return None

    def sample_vacuum(
            self, speed: float, theta: float, phi: float,
            flight_time: float, steps: int = TRAJECTORY_STEPS
    ) -> Iterator[TrajectorySample]:
        """Evenly spaced points of the closed-form flight."""
        along, lateral, vertical = self.launch_components(speed, theta, phi)
        for i in range(steps + 1):
            t = (i / steps) * flight_time
            yield TrajectorySample(
                x=along * t,
                z=self.platform_height + vertical * t - 0.5 * self.gravity * t * t,
                y=lateral * t,
                t=t,
            )

    def sample_drag(
            self, speed: float, theta: float, phi: float,
            range_distance: float, steps: int = TRAJECTORY_STEPS
    ) -> Iterator[TrajectorySample]:
        """
        Points of the integrated flight, starting with the launch point.

        Ends exactly at the target range. A flight that never gets there is
        sampled until it drops below the carpet or times out.
        """
        vx, vy, vz = self.launch_components(speed, theta, phi)
        crossing = self.simulate_to_range(
            vx, vy, vz, range_distance, self.platform_height, self.drag_k)
        end_time = crossing.time if crossing is not None else self.max_time

        stride = max(1, int(round(end_time / self.dt / steps)))
        x = y = z = 0.0
        t = 0.0
        n = 0
        yield TrajectorySample(x=0.0, z=self.platform_height, y=0.0, t=0.0)
        while t + self.dt < end_time:
            x, y, z, vx, vy, vz = self._rk4_step(x, y, z, vx, vy, vz, self.drag_k)
            t += self.dt
            n += 1
            if crossing is None and z < -self.platform_height:
                # Landed short
                yield TrajectorySample(x=x, z=self.platform_height + z, y=y, t=t)
                return
            if n % stride == 0:
                yield TrajectorySample(x=x, z=self.platform_height + z, y=y, t=t)

        if crossing is None:
            return
        yield TrajectorySample(
            x=range_distance,
            z=self.platform_height + crossing.height,
            y=crossing.lateral_offset,
            t=crossing.time,
        )


class SweepSeeder:
    """
    Coarse brute-force search over (speed, angle) for a Newton starting point.

    Always uses the vacuum model: the seed only has to be close. Candidates
    are evaluated as numpy arrays in scan order (speed outer, angle inner);
    ``np.argmin`` returns the first minimum, so ties resolve exactly as a
    sequential scan with strict comparisons would.
    """

    DESCENT_THRESHOLD = -0.5  # m/s; slower than this is "not descending"
    VIABLE_ERROR = 0.5  # m; close enough for Newton to converge
    ANGLE_STEP = 0.01  # rad (~0.55°)
    SPEED_STEP = 0.1
    FINE_SPEED_STEP = 0.05  # speed is the only free variable

    def __init__(self, config: ShotConfig):
        self.config = config

    def speed_samples(self) -> np.ndarray:
        s_min, s_max = self.config.speed_bounds
        if self.config.speed_fixed:
            return np.array([s_min])

        step_size = self.FINE_SPEED_STEP if self.config.angle_fixed else self.SPEED_STEP
        steps = max(2, int(math.floor((s_max - s_min) / step_size + 0.5)) + 1)
        return s_min + np.arange(steps) * ((s_max - s_min) / (steps - 1))

    def angle_samples(self) -> np.ndarray:
        a_min, a_max = np.radians(self.config.angle_bounds)
        if a_max - a_min < 0.002:
            return np.array([a_min])

        steps = int(math.floor((a_max - a_min + 0.001) / self.ANGLE_STEP)) + 1
        return np.minimum(a_min + np.arange(steps) * self.ANGLE_STEP, a_max)

    def seed(self, range_distance: float) -> SweepSeed:
        cfg = self.config
        g = cfg.gravity

        speeds, angles = np.meshgrid(self.speed_samples(), self.angle_samples(), indexing='ij')
        speeds = speeds.ravel()
        angles = angles.ravel()

        v_vert = speeds * np.sin(angles)
        apex = cfg.platform_height + v_vert ** 2 / (2 * g)

        h_speed = speeds * np.cos(angles)
        azimuth = np.arctan2(-cfg.tangential_velocity, h_speed)
        eff_speed = h_speed * np.cos(azimuth) + cfg.radial_velocity

        usable = (apex <= cfg.ceiling_height) & (eff_speed > MIN_EFFECTIVE_SPEED)

        t = range_distance / np.where(usable, eff_speed, 1.0)
        height = v_vert * t - 0.5 * g * t * t
        error = np.abs(height - cfg.height_difference)
        vy_target = v_vert - g * t

        descending = usable & (vy_target < self.DESCENT_THRESHOLD)
        viable = descending & (error < self.VIABLE_ERROR)

        if viable.any():
            # High-arc bias: steepest descent among viable seeds
            idx = int(np.argmin(np.where(viable, vy_target, np.inf)))
        elif descending.any():
            idx = int(np.argmin(np.where(descending, error, np.inf)))
        elif usable.any():
            idx = int(np.argmin(np.where(usable, error, np.inf)))
        else:
            s_min, s_max = cfg.speed_bounds
            a_min, a_max = np.radians(cfg.angle_bounds)
            return SweepSeed(speed=(s_min + s_max) / 2, angle=float(a_min + a_max) / 2,
                             error=float('inf'))

        return SweepSeed(speed=float(speeds[idx]), angle=float(angles[idx]),
                         error=float(error[idx]))


class NewtonRefiner:
    """
    Joint Newton refinement of hood angle (theta) and turret correction (phi).

    Zeros the residual pair
        f1 = height at target - required height
        f2 = lateral drift at target
    with a forward-difference 2x2 Jacobian. With a fixed hood angle only phi
    is solved (1D Newton on f2).
    """

    FD_STEP = 1e-4
    MAX_ITERATIONS = 25
    MAX_ATTEMPTS = 2
    CONVERGENCE = 1e-3
    MIN_DETERMINANT = 1e-10
    MIN_SLOPE = 1e-4
    DEGENERATE_BACKOFF = 0.1  # rad
    ASCENT_BUMP = 0.15  # rad
    ANGLE_MARGIN = 0.05  # rad kept away from 0 and 90°

    def __init__(self, config: ShotConfig, model: TrajectoryModel):
        self.config = config
        self.model = model

        a_min, a_max = np.radians(config.angle_bounds)
        self.theta_min = max(float(a_min), self.ANGLE_MARGIN)
        self.theta_max = min(float(a_max), np.pi / 2 - self.ANGLE_MARGIN)
        self.phi_limit = np.pi / 2 - self.ANGLE_MARGIN

    def _residuals(
            self, speed: float, theta: float, phi: float, range_distance: float
    ) -> Optional[Tuple[float, float, TargetCrossing]]:
        crossing = self.model.cross_target(speed, theta, phi, range_distance)
        if crossing is None:
            return None
        return crossing.height - self.config.height_difference, crossing.lateral_offset, crossing

    def seed_azimuth(self, speed: float, theta: float) -> float:
        """Geometric turret correction cancelling the robot's sideways motion."""
        return math.atan2(-self.config.tangential_velocity, speed * math.cos(theta))

    def _clamp_theta(self, theta: float) -> float:
        return min(max(theta, self.theta_min), self.theta_max)

    def _clamp_phi(self, phi: float) -> float:
        return min(max(phi, -self.phi_limit), self.phi_limit)

    def refine(self, speed: float, initial_theta: float, range_distance: float) -> RefineResult:
        fixed_theta = self.config.angle_fixed
        h = self.FD_STEP

        theta = initial_theta
        phi = self.seed_azimuth(speed, theta)
        flight_time = 0.0

        for _ in range(self.MAX_ATTEMPTS):
            for _ in range(self.MAX_ITERATIONS):
                r0 = self._residuals(speed, theta, phi, range_distance)
                if r0 is None:
                    # Too slow toward the target: flatten to gain horizontal speed
                    if not fixed_theta:
                        theta = max(theta - self.DEGENERATE_BACKOFF, self.theta_min)
                    phi = self.seed_azimuth(speed, theta)
                    continue

                f1, f2, crossing = r0
                flight_time = crossing.time

                if abs(f1) < self.CONVERGENCE and abs(f2) < self.CONVERGENCE:
                    break

                if fixed_theta:
                    r_phi = self._residuals(speed, theta, phi + h, range_distance)
                    if r_phi is None:
                        break

                    df2_dphi = (r_phi[1] - f2) / h
                    if abs(df2_dphi) < self.MIN_SLOPE:
                        break

                    phi = self._clamp_phi(phi - f2 / df2_dphi)
                else:
                    r_theta = self._residuals(speed, theta + h, phi, range_distance)
                    r_phi = self._residuals(speed, theta, phi + h, range_distance)
                    if r_theta is None or r_phi is None:
                        break

                    # Jacobian entries
                    df1_dtheta = (r_theta[0] - f1) / h
                    df1_dphi = (r_phi[0] - f1) / h
                    df2_dtheta = (r_theta[1] - f2) / h
                    df2_dphi = (r_phi[1] - f2) / h

                    det = df1_dtheta * df2_dphi - df1_dphi * df2_dtheta
                    if abs(det) < self.MIN_DETERMINANT:
                        break

                    d_theta = (df2_dphi * f1 - df1_dphi * f2) / det
                    d_phi = (-df2_dtheta * f1 + df1_dtheta * f2) / det

                    theta = self._clamp_theta(theta - d_theta)
                    phi = self._clamp_phi(phi - d_phi)

            final = self.model.cross_target(speed, theta, phi, range_distance)
            if final is not None:
                flight_time = final.time
                if final.vz < 0:
                    break

            # Still climbing at the target: only the low arc was found
            if fixed_theta:
                break
            theta = min(theta + self.ASCENT_BUMP, self.theta_max)
            phi = self.seed_azimuth(speed, theta)

        return RefineResult(angle=theta, flight_time=flight_time, azimuth_rad=phi)


class ShotValidator:
    """Final feasibility gate for a refined (speed, angle, azimuth)."""

    TOLERANCE = 0.05  # m
    FIXED_ANGLE_TOLERANCE = 0.15  # m, only phi is free to correct with

    def __init__(self, config: ShotConfig, model: TrajectoryModel):
        self.config = config
        self.model = model

    @property
    def tolerance(self) -> float:
        return self.FIXED_ANGLE_TOLERANCE if self.config.angle_fixed else self.TOLERANCE

    def validate(
            self, speed: float, theta: float, phi: float, range_distance: float
    ) -> Optional[ShotResult]:
        cfg = self.config
        crossing = self.model.cross_target(speed, theta, phi, range_distance)
        if crossing is None:
            return None

        height_error = abs(crossing.height - cfg.height_difference)
        if height_error > self.tolerance:
            return None

        apex_height = cfg.platform_height + crossing.apex_height
        if apex_height > cfg.ceiling_height:
            return None

        if crossing.vz > cfg.max_descent_velocity:
            return None

        lateral_drift = crossing.lateral_offset
        if cfg.max_lateral_drift > 0 and abs(lateral_drift) > cfg.max_lateral_drift:
            return None

        return ShotResult(
            shot_speed=speed,
            hood_angle_deg=math.degrees(theta),
            azimuth_rad=phi,
            flight_time=crossing.time,
            height_error=height_error,
            descent_velocity=crossing.vz,
            descent_angle_deg=math.degrees(math.atan2(-crossing.vz, crossing.vx)),
            apex_height=apex_height,
            lateral_drift=lateral_drift,
            range_distance=range_distance,
        )


class ShotEvaluator:
    """
    Feasibility query for one robot position and velocity state.

    Holds no state between calls besides the immutable configuration, so a
    single evaluator can be reused across a whole grid scan.
    """

    # Speeds tried around a neighbor's hint. Offsets reproduce a 0.2 m/s step
    # accumulated in floating point, which stops short of 0.8.
    HINT_SPEED_OFFSETS = (0.2, 0.4, 0.6)

    def __init__(self, config: ShotConfig):
        self.config = config
        self.model = TrajectoryModel.from_config(config)
        self.seeder = SweepSeeder(config)
        self.refiner = NewtonRefiner(config, self.model)
        self.validator = ShotValidator(config, self.model)

    def range_to_target(self, x: float, y: float) -> float:
        return math.hypot(self.config.target_x - x, self.config.target_y - y)

    def try_speed(
            self, speed: float, seed_angle: float, range_distance: float
    ) -> Optional[ShotResult]:
        """Newton refinement at a given speed followed by validation."""
        if self.config.angle_fixed:
            seed_angle = math.radians(self.config.fixed_angle)
        refined = self.refiner.refine(speed, seed_angle, range_distance)
        return self.validator.validate(speed, refined.angle, refined.azimuth_rad, range_distance)

    def evaluate(self, x: float, y: float) -> Optional[ShotResult]:
        """Full sweep followed by Newton refinement."""
        range_distance = self.range_to_target(x, y)
        if range_distance < MIN_RANGE:
            return None

        seed = self.seeder.seed(range_distance)
        return self.try_speed(seed.speed, seed.angle, range_distance)

    def evaluate_with_hint(
            self, x: float, y: float, hint_speed: float, hint_angle: float
    ) -> Optional[ShotResult]:
        """
        Refinement only, starting from a neighbor's (speed, angle).

        Tries the hint speed first, then nearby speeds inside the active
        bounds. Does NOT fall back to a full sweep.
        """
        range_distance = self.range_to_target(x, y)
        if range_distance < MIN_RANGE:
            return None

        direct = self.try_speed(hint_speed, hint_angle, range_distance)
        if direct is not None:
            return direct

        s_min, s_max = self.config.speed_bounds
        for offset in self.HINT_SPEED_OFFSETS:
            lo = hint_speed - offset
            hi = hint_speed + offset
            if lo >= s_min:
                result = self.try_speed(lo, hint_angle, range_distance)
                if result is not None:
                    return result
            if hi <= s_max:
                result = self.try_speed(hi, hint_angle, range_distance)
                if result is not None:
                    return result

        return None


def evaluate_shot(x: float, y: float, config: ShotConfig) -> Optional[ShotResult]:
    """Can a robot at field position (x, y) score? Returns None if not."""
    return ShotEvaluator(config).evaluate(x, y)


def evaluate_shot_with_hint(
        x: float, y: float, config: ShotConfig,
        hint_speed: float, hint_angle: float
) -> Optional[ShotResult]:
    """Refinement-only evaluation seeded from a nearby solution (angle in radians)."""
    return ShotEvaluator(config).evaluate_with_hint(x, y, hint_speed, hint_angle)


def range_chart_position(range_distance: float, config: ShotConfig) -> Tuple[float, float]:
    """Virtual field position ``range_distance`` meters from the target."""
    return config.target_x + range_distance, config.target_y


def evaluate_shot_at_range(
        range_distance: float,
        tangential_velocity: float,
        radial_velocity: float,
        config: ShotConfig
) -> Optional[ShotResult]:
    """Evaluate a shot at a given distance to the target, bypassing field position."""
    x, y = range_chart_position(range_distance, config)
    return evaluate_shot(x, y, config.with_platform_velocity(tangential_velocity, radial_velocity))


def compute_detailed_shot(
        result: ShotResult,
        tangential_velocity: float,
        radial_velocity: float,
        config: ShotConfig
) -> DetailedShot:
    """
    Expand a feasible result into trajectory samples and velocity vectors.

    Pure: neither ``result`` nor ``config`` is modified.
    """
    shot_config = config.with_platform_velocity(tangential_velocity, radial_velocity)
    model = TrajectoryModel.from_config(shot_config)
    vacuum = TrajectoryModel.from_config(shot_config, with_drag=False)

    speed = result.shot_speed
    angle_rad = result.hood_angle_rad
    phi = result.azimuth_rad
    h_speed = speed * math.cos(angle_rad)
    v_launch = speed * math.sin(angle_rad)
    eff_radial_speed, lateral_velo, _ = model.launch_components(speed, angle_rad, phi)

    vacuum_trajectory = tuple(vacuum.sample_vacuum(speed, angle_rad, phi, result.flight_time))

    if model.drag_enabled:
        trajectory = tuple(model.sample_drag(speed, angle_rad, phi, result.range_distance))
        crossing = model.cross_target(speed, angle_rad, phi, result.range_distance)
        apex = max(trajectory, key=lambda p: p.z)
        vx_target = crossing.vx if crossing else eff_radial_speed
        vy_target = crossing.vy if crossing else lateral_velo
        t_apex, x_apex, z_apex = apex.t, apex.x, apex.z
    else:
        trajectory = vacuum_trajectory
        vx_target = eff_radial_speed
        vy_target = lateral_velo
        t_apex = v_launch / shot_config.gravity
        x_apex = eff_radial_speed * t_apex
        z_apex = result.apex_height

    return DetailedShot(
        speed=speed,
        angle_rad=angle_rad,
        hood_angle_deg=result.hood_angle_deg,
        h_speed=h_speed,
        v_launch=v_launch,
        azimuth_rad=phi,
        eff_radial_speed=eff_radial_speed,
        range_distance=result.range_distance,
        flight_time=result.flight_time,
        platform_height=config.platform_height,
        target_height=config.target_height,
        ceiling_height=config.ceiling_height,
        tangential_velocity=tangential_velocity,
        radial_velocity=radial_velocity,
        drag_enabled=model.drag_enabled,
        trajectory=trajectory,
        vacuum_trajectory=vacuum_trajectory if model.drag_enabled else None,
        vx_launch=eff_radial_speed,
        vz_launch=v_launch,
        vy_launch=lateral_velo,
        vx_target=vx_target,
        vz_target=result.descent_velocity,
        vy_target=vy_target,
        t_apex=t_apex,
        x_apex=x_apex,
        z_apex=z_apex,
        apex_height=result.apex_height,
        descent_velocity=result.descent_velocity,
    )


if __name__ == "__main__":
    # Quick demo
    print("FRC Shot Feasibility Solver")
    print("=" * 60)

    config = ShotConfig(target_x=8.0, target_y=0.0, target_height=2.64)
    print(f"\nTarget: ({config.target_x:.2f}, {config.target_y:.2f}) m, "
          f"height {config.target_height:.2f} m")
    print(f"Speed range: {config.min_speed:.1f}-{config.max_speed:.1f} m/s, "
          f"angle range: {config.min_angle:.0f}-{config.max_angle:.0f}°")

    for drag in (False, True):
        cfg = config.with_overrides(drag_enabled=drag)
        result = evaluate_shot(0.0, 0.0, cfg)
        print(f"\n--- {'With drag' if drag else 'Vacuum'} ---")
        if result is None:
            print("  No valid shot")
            continue
        print(f"  Speed: {result.shot_speed:.2f} m/s")
        print(f"  Hood angle: {result.hood_angle_deg:.1f}°")
        print(f"  Flight time: {result.flight_time:.3f} s")
        print(f"  Apex: {result.apex_height:.2f} m")
        print(f"  Descent: {result.descent_velocity:.2f} m/s at {result.descent_angle_deg:.1f}°")
        print(f"  Height error: {result.height_error * 100:.1f} cm")

    print("\n--- Strafing at 2 m/s ---")
    moving = config.with_platform_velocity(2.0, 0.0)
    result = evaluate_shot(0.0, 0.0, moving)
    if result:
        print(f"  Turret correction: {np.degrees(result.azimuth_rad):+.1f}°")
        print(f"  Lateral drift: {result.lateral_drift * 100:.2f} cm")
    else:
        print("  No valid shot")
