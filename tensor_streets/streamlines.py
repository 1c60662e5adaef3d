"""
Seeded bidirectional streamline tracing over a tensor field.

See 'Interactive Procedural Street Modeling' (Chen et al. 2008) for the
underlying method.
"""

import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional

import structlog

from .config import StreamlineParams, Viewport
from .geo import MercatorProjection
from .grid_storage import GridStorage
from .integrator import DEGENERATE_LENGTH_SQ, FieldIntegrator
from .utils import simplify_polyline
from .vector import Polyline, Vector

logger = structlog.get_logger()


class StreamlinePhase(Enum):
    """Result of one incremental `update()` call."""

    CREATED = "created"  # Tried a seed, generator still running
    DONE = "done"  # Seeding exhausted on this call
    IDLE = "idle"  # Nothing to do


@dataclass
class IntegrationFront:
    """State of one direction of a bidirectional integration."""

    seed: Vector
    original_dir: Vector
    streamline: List[Vector]
    previous_direction: Vector
    previous_point: Vector
    valid: bool = True


class StreamlineGenerator:
    """
    Creates polylines that make up the roads by integrating the tensor field.
    Uses world-space coordinates.
    """

    # Try dangling endpoints of the other hierarchy before random points
    SEED_AT_ENDPOINTS = True

    def __init__(
        self,
        integrator: FieldIntegrator,
        viewport: Viewport,
        params: StreamlineParams,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize generator.

        Args:
            integrator: Field integrator (usually RK4)
            viewport: World rectangle to trace inside
            params: Road hierarchy parameters
            rng: Random source (a fresh unseeded one if None)
        """
        if params.dstep > params.dsep:
            logger.warning("Streamline sample distance bigger than dsep", dstep=params.dstep, dsep=params.dsep)

        self.integrator = integrator
        self.viewport = viewport
        self.origin = viewport.origin
        self.world_dimensions = viewport.world_dimensions
        self.params = params
        self.rng = rng if rng is not None else random.Random()

        self.dsep_sq = params.dsep ** 2
        self.dtest_sq = params.dtest ** 2
        self.dstep_sq = params.dstep ** 2
        self.dcirclejoin_sq = params.dcirclejoin ** 2
        self.dlookahead_sq = params.dlookahead ** 2

        self.major_grid = GridStorage(self.world_dimensions, self.origin, params.dsep)
        self.minor_grid = GridStorage(self.world_dimensions, self.origin, params.dsep)

        self.candidate_seeds_major: List[Vector] = []
        self.candidate_seeds_minor: List[Vector] = []

        self.streamlines_done = True
        self.last_streamline_major = True
        self._consecutive_rejects = 0

        self.all_streamlines: List[Polyline] = []
        self.streamlines_major: List[Polyline] = []
        self.streamlines_minor: List[Polyline] = []
        # Reduced vertex count
        self.all_streamlines_simple: List[Polyline] = []

    def clear_streamlines(self) -> None:
        self.all_streamlines_simple = []
        self.streamlines_major = []
        self.streamlines_minor = []
        self.all_streamlines = []

    def add_existing_streamlines(self, other: "StreamlineGenerator") -> None:
        """Avoid another generator's (already generated) streamlines."""
        self.major_grid.add_all(other.major_grid)
        self.minor_grid.add_all(other.minor_grid)

    def set_grid(self, other: "StreamlineGenerator") -> None:
        """Share grids with another generator."""
        self.major_grid = other.major_grid
        self.minor_grid = other.minor_grid

    # Driving

    def start(self) -> None:
        """Prepare for incremental generation with `update()`."""
        self.streamlines_done = False
        # update() flips before creating, so the first streamline is major
        self.last_streamline_major = False
        self._consecutive_rejects = 0

    def update(self) -> StreamlinePhase:
        """Create at most one streamline."""
        if self.streamlines_done:
            return StreamlinePhase.IDLE

        self.last_streamline_major = not self.last_streamline_major
        if not self.create_streamline(self.last_streamline_major):
            self.streamlines_done = True
            self.join_dangling_streamlines()
            return StreamlinePhase.DONE
        return StreamlinePhase.CREATED

    def create_all_streamlines(self) -> None:
        """All at once; alternates major and minor until seeding fails."""
        self.streamlines_done = False
        self._consecutive_rejects = 0

        major = True
        while self.create_streamline(major):
            major = not major

        self.join_dangling_streamlines()
        self.streamlines_done = True
        logger.info(
            "Streamlines generated",
            major=len(self.streamlines_major),
            minor=len(self.streamlines_minor),
        )

    # Dangling ends

    def join_dangling_streamlines(self) -> None:
        """Extend open streamline ends towards nearby geometry. Edits streamlines."""
        for major in (True, False):
            for streamline in self.streamlines(major):
                # Ignore circles
                if streamline[0] == streamline[-1] or len(streamline) < 5:
                    continue

                new_start = self.get_best_next_point(streamline[0], streamline[4])
                if new_start is not None:
                    points = self.points_between(streamline[0], new_start, self.params.dstep)
                    streamline[0:0] = points[::-1]
                    self.grid(major).add_polyline(points)

                new_end = self.get_best_next_point(streamline[-1], streamline[-4])
                if new_end is not None:
                    points = self.points_between(streamline[-1], new_end, self.params.dstep)
                    streamline.extend(points)
                    self.grid(major).add_polyline(points)

        # Reset simplified streamlines
        self.all_streamlines_simple = [self.simplify_streamline(s) for s in self.all_streamlines]

    def points_between(self, v1: Vector, v2: Vector, dstep: float) -> List[Vector]:
        """
        Points from v1 (exclusive) to v2 separated by at most dstep.
        Stops early at the first degenerate field point.
        """
        n_points = math.floor(v1.distance_to(v2) / dstep)
        if n_points == 0:
            return []

        step_vector = v2.sub(v1)
        out = []
        for i in range(1, n_points + 1):
            next_point = v1.add(step_vector.scale(i / n_points))
            if self.integrator.integrate(next_point, True).length_sq() <= DEGENERATE_LENGTH_SQ * self.dstep_sq:
                break
            out.append(next_point)
        return out

    def get_best_next_point(self, point: Vector, previous_point: Vector) -> Optional[Vector]:
        """
        Best sample to join a dangling end to, or None.

        Args:
            point: Streamline endpoint
            previous_point: A point a few steps back, gives the tangent
        """
        nearby_points = self.major_grid.get_nearby_points(point, self.params.dlookahead)
        nearby_points.extend(self.minor_grid.get_nearby_points(point, self.params.dlookahead))
        direction = point.sub(previous_point)

        closest_sample = None
        closest_distance = math.inf

        for sample in nearby_points:
            if sample == point or sample == previous_point:
                continue

            difference_vector = sample.sub(point)
            if difference_vector.dot(direction) < 0:
                # Backwards
                continue

            distance_to_sample = point.distance_to_sq(sample)
            if distance_to_sample > self.dlookahead_sq:
                continue
            if distance_to_sample < 2 * self.dstep_sq:
                closest_sample = sample
                break

            # Acute angle between vectors (agnostic of CW, ACW)
            angle_between = abs(Vector.angle_between(direction, difference_vector))
            if angle_between < self.params.joinangle and distance_to_sample < closest_distance:
                closest_distance = distance_to_sample
                closest_sample = sample

        # Heuristic: push the join past the target so simplification does
        # not pull the end away from the line it should meet
        if closest_sample is not None:
            closest_sample = closest_sample.add(direction.set_length(self.params.simplify_tolerance * 4))

        return closest_sample

    # Creation

    def simplify_streamline(self, streamline: Polyline) -> Polyline:
        return simplify_polyline(streamline, self.params.simplify_tolerance)

    def create_streamline(self, major: bool) -> bool:
        """
        Find a seed and create a streamline from it.
        Pushes new candidate seeds to the other hierarchy's queue.

        Returns:
            False if no seed was found within `seed_tries`, or too many
            consecutive streamlines were rejected
        """
        seed = self.get_seed(major)
        if seed is None:
            return False

        streamline = self.integrate_streamline(seed, major)
        if not self.valid_streamline(streamline):
            self._consecutive_rejects += 1
            logger.debug("Streamline rejected", points=len(streamline), major=major)
            return self._consecutive_rejects < self.params.seed_tries

        self._consecutive_rejects = 0
        self.add_streamline(streamline, major)
        return True

    def add_streamline(self, streamline: Polyline, major: bool) -> None:
        """Register an accepted streamline in the grid and output lists."""
        self.grid(major).add_polyline(streamline)
        self.streamlines(major).append(streamline)
        self.all_streamlines.append(streamline)
        self.all_streamlines_simple.append(self.simplify_streamline(streamline))

        # Add candidate seeds
        if streamline[0] != streamline[-1]:
            self.candidate_seeds(not major).append(streamline[0])
            self.candidate_seeds(not major).append(streamline[-1])

    def create_streamline_from_data(
        self,
        major: bool,
        feature: Mapping[str, Any],
        projection: MercatorProjection,
    ) -> Optional[Polyline]:
        """Register a streamline projected from a (lon, lat) feature."""
        streamline = projection.project_feature(feature)
        if len(streamline) < 2:
            logger.warning("Feature too short for a streamline", points=len(streamline))
            return None
        self.add_streamline(streamline, major)
        return streamline

    def valid_streamline(self, streamline: Polyline) -> bool:
        return len(streamline) > 5

    def sample_point(self) -> Vector:
        return Vector(
            self.rng.random() * self.world_dimensions.x,
            self.rng.random() * self.world_dimensions.y,
        ).add(self.origin)

    def get_seed(self, major: bool) -> Optional[Vector]:
        """Tries candidate seeds first, then random points."""
        if self.SEED_AT_ENDPOINTS:
            candidates = self.candidate_seeds(major)
            while candidates:
                seed = candidates.pop()
                if self.point_in_bounds(seed) and self.is_valid_sample(major, seed, self.dsep_sq):
                    return seed

        seed = self.sample_point()
        i = 0
        while not self.is_valid_sample(major, seed, self.dsep_sq):
            if i >= self.params.seed_tries:
                return None
            seed = self.sample_point()
            i += 1

        return seed

    def is_valid_sample(self, major: bool, point: Vector, d_sq: float, both_grids: bool = False) -> bool:
        grid_valid = self.grid(major).is_valid_sample(point, d_sq)
        if both_grids:
            grid_valid = grid_valid and self.grid(not major).is_valid_sample(point, d_sq)
        return grid_valid and self.integrator.on_land(point)

    def candidate_seeds(self, major: bool) -> List[Vector]:
        return self.candidate_seeds_major if major else self.candidate_seeds_minor

    def streamlines(self, major: bool) -> List[Polyline]:
        return self.streamlines_major if major else self.streamlines_minor

    def grid(self, major: bool) -> GridStorage:
        return self.major_grid if major else self.minor_grid

    def point_in_bounds(self, v: Vector) -> bool:
        return self.viewport.contains(v)

    # Integration

    def streamline_turned(self, seed: Vector, original_dir: Vector, point: Vector, direction: Vector) -> bool:
        """Whether the streamline has turned through more than 180 degrees."""
        if original_dir.dot(direction) < 0:
            perpendicular_vector = Vector(original_dir.y, -original_dir.x)
            is_left = point.sub(seed).dot(perpendicular_vector) < 0
            direction_up = direction.dot(perpendicular_vector) > 0
            return is_left == direction_up

        return False

    def streamline_integration_step(self, front: IntegrationFront, major: bool, collide_both: bool) -> None:
        """One step of the streamline integration process."""
        if not front.valid:
            return

        front.streamline.append(front.previous_point)
        next_direction = self.integrator.integrate(front.previous_point, major)

        # Stop at degenerate point
        if next_direction.length_sq() < DEGENERATE_LENGTH_SQ * self.dstep_sq:
            front.valid = False
            return

        # Make sure we travel in the same direction
        if next_direction.dot(front.previous_direction) < 0:
            next_direction = next_direction.negate()

        next_point = front.previous_point.add(next_direction)

        if (
            self.point_in_bounds(next_point)
            and self.is_valid_sample(major, next_point, self.dtest_sq, collide_both)
            and not self.streamline_turned(front.seed, front.original_dir, next_point, next_direction)
        ):
            front.previous_point = next_point
            front.previous_direction = next_direction
        else:
            # One more step
            front.streamline.append(next_point)
            front.valid = False

    def integrate_streamline(self, seed: Vector, major: bool) -> Polyline:
        """
        Integrate forwards and backwards from `seed` simultaneously, so that
        the error matches up when a loop closes.
        """
        count = 0
        # True once the two fronts have moved dcirclejoin apart
        points_escaped = False

        # Whether to collide with both major and minor grids
        collide_both = self.rng.random() < self.params.collide_early

        d = self.integrator.integrate(seed, major)

        forward = IntegrationFront(
            seed=seed,
            original_dir=d,
            streamline=[seed],
            previous_direction=d,
            previous_point=seed.add(d),
        )
        forward.valid = self.point_in_bounds(forward.previous_point) and self.is_valid_sample(
            major, forward.previous_point, self.dtest_sq, collide_both
        )

        neg_d = d.negate()
        backward = IntegrationFront(
            seed=seed,
            original_dir=neg_d,
            streamline=[],
            previous_direction=neg_d,
            previous_point=seed.add(neg_d),
        )
        backward.valid = self.point_in_bounds(backward.previous_point) and self.is_valid_sample(
            major, backward.previous_point, self.dtest_sq, collide_both
        )

        while count < self.params.path_iterations and (forward.valid or backward.valid):
            self.streamline_integration_step(forward, major, collide_both)
            self.streamline_integration_step(backward, major, collide_both)

            # Join up circles
            sq_distance_between_points = forward.previous_point.distance_to_sq(backward.previous_point)

            if not points_escaped and sq_distance_between_points > self.dcirclejoin_sq:
                points_escaped = True

            if points_escaped and sq_distance_between_points <= self.dcirclejoin_sq:
                forward.streamline.append(forward.previous_point)
                forward.streamline.append(backward.previous_point)
                backward.streamline.append(backward.previous_point)
                break

            count += 1

        backward.streamline.reverse()
        return backward.streamline + forward.streamline
