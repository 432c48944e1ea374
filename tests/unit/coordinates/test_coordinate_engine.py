"""
Tests for the Vivaldi coordinate engine.

These tests verify that:
1. One sample moves the coordinate part of the way toward the measured RTT
2. Invalid samples are rejected without touching local state
3. Coincident positions, zero RTTs and zero combined error are handled
4. Height stays non-negative and local error stays bounded under noise
5. Non-finite results reset the coordinate instead of corrupting it
6. UCB estimates, convergence checks and precision modes behave as configured
"""

import datetime
import math
import random

import numpy as np
import pytest

from vivaldi_nc.coordinates import NetworkCoordinateEngine
from vivaldi_nc.errors import DimensionMismatchError, InvalidSampleError
from vivaldi_nc.logging.streams import LoggerStream
from vivaldi_nc.models import Coordinate, Vector, VivaldiConfig, estimate_rtt


def make_engine(
    logger: LoggerStream,
    dimensions: int = 2,
    seed: int = 1234,
    coordinate: Coordinate | None = None,
    **overrides,
) -> NetworkCoordinateEngine:
    return NetworkCoordinateEngine(
        config=VivaldiConfig(dimensions=dimensions, **overrides),
        rng=random.Random(seed),
        logger=logger,
        coordinate=coordinate,
    )


class TestSingleUpdate:
    """Test the effect of one RTT sample."""

    def test_origin_scenario(self, file_logger: LoggerStream):
        """
        Both nodes at the origin with zero height and error 1.0; one 100ms
        sample should move the local node part of the way, not all of it.
        """
        origin = Coordinate([0.0, 0.0], height=0.0, local_error=1.0)
        remote = origin.copy()
        engine = make_engine(file_logger, coordinate=origin)

        updated = engine.update(remote, 100.0)

        assert updated.position != Vector.zeros(2)
        assert updated.height > 0.0
        assert 0.0 < estimate_rtt(updated, remote) < 100.0
        assert updated.local_error <= 1.0

    def test_local_error_decreases_on_following_sample(self, file_logger: LoggerStream):
        origin = Coordinate([0.0, 0.0], height=0.0, local_error=1.0)
        remote = origin.copy()
        engine = make_engine(file_logger, coordinate=origin)

        first = engine.update(remote, 100.0)
        second = engine.update(remote, 100.0)

        assert first.local_error <= 1.0
        assert second.local_error < first.local_error

    def test_position_moves_by_force_along_direction(self, file_logger: LoggerStream):
        """
        With equal errors the weight is 0.5, so the step is cc * 0.5 of the
        gap. Zero heights leave the whole step to the position.
        """
        local = Coordinate([10.0, 0.0], height=0.0, local_error=1.0)
        remote = Coordinate([0.0, 0.0], height=0.0, local_error=1.0)
        engine = make_engine(file_logger, coordinate=local)

        updated = engine.update(remote, 50.0)

        # force = 0.25 * 0.5 * (50 - 10) = 5, pushed away from the remote
        assert updated.position.values == pytest.approx((15.0, 0.0))
        assert updated.height == engine.get_config().min_height

    def test_pulls_together_when_estimate_too_large(self, file_logger: LoggerStream):
        local = Coordinate([100.0, 0.0], height=1.0, local_error=1.0)
        remote = Coordinate([0.0, 0.0], height=1.0, local_error=1.0)
        engine = make_engine(file_logger, coordinate=local)

        before = estimate_rtt(local, remote)
        updated = engine.update(remote, 20.0)

        assert 20.0 < estimate_rtt(updated, remote) < before
        assert updated.height < 1.0

    def test_remote_is_not_mutated(self, file_logger: LoggerStream):
        remote = Coordinate([3.0, 4.0], height=2.0, local_error=0.7)
        snapshot = remote.copy()
        engine = make_engine(file_logger)

        engine.update(remote, 80.0)

        assert remote == snapshot

    def test_update_returns_copy(self, file_logger: LoggerStream):
        engine = make_engine(file_logger)

        updated = engine.update(Coordinate([1.0, 1.0]), 30.0)
        updated.height = 1000.0

        assert engine.get_coordinate().height != 1000.0

    def test_timedelta_matches_milliseconds(self, file_logger: LoggerStream):
        remote = Coordinate([5.0, 5.0], height=1.0, local_error=0.5)

        from_float = make_engine(file_logger).update(remote, 250.0)
        from_timedelta = make_engine(file_logger).update(
            remote,
            datetime.timedelta(milliseconds=250),
        )

        assert from_float == from_timedelta

    def test_counts_samples(self, file_logger: LoggerStream):
        engine = make_engine(file_logger)

        for _ in range(3):
            engine.update(Coordinate([1.0, 0.0]), 10.0)

        assert engine.sample_count == 3
        assert engine.rejected_count == 0


class TestInvalidSamples:
    """Test rejection of malformed RTT samples."""

    @pytest.mark.parametrize(
        "measured_rtt",
        [
            -1.0,
            -1e-300,
            math.nan,
            math.inf,
            -math.inf,
            datetime.timedelta(milliseconds=-5),
            "fast",
            None,
            10**400,
        ],
    )
    def test_invalid_sample_leaves_state_unchanged(
        self,
        file_logger: LoggerStream,
        measured_rtt,
    ):
        engine = make_engine(file_logger)
        engine.update(Coordinate([2.0, 2.0], height=1.0, local_error=0.5), 40.0)
        before = engine.get_coordinate()

        with pytest.raises(InvalidSampleError):
            engine.update(Coordinate([7.0, 1.0]), measured_rtt)

        after = engine.get_coordinate()
        assert after == before
        assert after.to_dict() == before.to_dict()
        assert engine.rejected_count == 1
        assert engine.sample_count == 1

    def test_invalid_sample_is_a_value_error(self, file_logger: LoggerStream):
        engine = make_engine(file_logger)

        with pytest.raises(ValueError):
            engine.update(Coordinate([0.0, 0.0]), -10.0)

    def test_rejection_is_logged(self, file_logger: LoggerStream, read_logs):
        engine = make_engine(file_logger)

        with pytest.raises(InvalidSampleError):
            engine.update(Coordinate([0.0, 0.0]), -10.0)

        entries = [log["entry"] for log in read_logs()]
        assert any(
            entry["level"] == "WARN" and entry["measured_rtt_ms"] == -10.0
            for entry in entries
        )

    def test_dimension_mismatch_leaves_state_unchanged(self, file_logger: LoggerStream):
        engine = make_engine(file_logger, dimensions=2)
        before = engine.get_coordinate()

        with pytest.raises(DimensionMismatchError):
            engine.update(Coordinate.create(3), 50.0)

        assert engine.get_coordinate() == before
        assert engine.sample_count == 0

    def test_mismatched_initial_coordinate(self, file_logger: LoggerStream):
        with pytest.raises(DimensionMismatchError):
            make_engine(file_logger, dimensions=2, coordinate=Coordinate.create(3))


class TestDegenerateCases:
    """Test the internally handled degeneracies."""

    def test_coincident_positions_produce_valid_coordinate(self, file_logger: LoggerStream):
        shared = Coordinate([4.0, -4.0], height=2.0, local_error=1.0)
        engine = make_engine(file_logger, coordinate=shared)

        updated = engine.update(shared.copy(), 60.0)

        assert updated.position.is_finite()
        assert updated.position != shared.position
        assert math.isfinite(updated.height) and updated.height >= 0.0
        assert math.isfinite(updated.local_error)

    def test_coincident_positions_are_seed_deterministic(self, file_logger: LoggerStream):
        remote = Coordinate.create(3)

        first = make_engine(file_logger, dimensions=3, seed=5).update(remote, 30.0)
        second = make_engine(file_logger, dimensions=3, seed=5).update(remote, 30.0)

        assert first == second

    def test_zero_rtt_accepted(self, file_logger: LoggerStream):
        engine = make_engine(file_logger)
        engine.update(Coordinate([10.0, 0.0]), 25.0)

        updated = engine.update(Coordinate([10.0, 0.0]), 0.0)

        assert updated.position.is_finite()
        assert updated.height >= 0.0
        assert 0.0 <= updated.local_error <= engine.get_config().max_error

    def test_zero_combined_error_uses_even_weight(self, file_logger: LoggerStream):
        """With both errors at zero the weight falls back to 0.5."""
        local = Coordinate([0.0, 0.0], height=0.0, local_error=0.0)
        remote = Coordinate([0.0, 0.0], height=0.0, local_error=0.0)
        engine = make_engine(file_logger, coordinate=local)

        updated = engine.update(remote, 100.0)

        # force = 0.25 * 0.5 * 100
        assert updated.position.norm() == pytest.approx(12.5)
        # sample error 1.0 blended with weight ce * 0.5
        assert updated.local_error == pytest.approx(0.125)

    def test_non_finite_result_resets_coordinate(
        self,
        file_logger: LoggerStream,
        read_logs,
    ):
        """An overflowing update should reset rather than store inf or NaN."""
        local = Coordinate([1e308, 0.0], height=1.0, local_error=1.0)
        remote = Coordinate([-1e308, 0.0], height=1.0, local_error=1.0)
        engine = make_engine(file_logger, coordinate=local)

        updated = engine.update(remote, 10.0)

        assert updated == Coordinate.create(2, engine.get_config())
        assert engine.sample_count == 0
        assert any(
            log["entry"]["level"] == "WARN" and "resetting" in log["entry"]["message"]
            for log in read_logs()
        )

    def test_reset_discards_earlier_sample_count(self, file_logger: LoggerStream):
        """Samples folded into a coordinate that was reset no longer count."""
        engine = make_engine(file_logger, coordinate=Coordinate([1e308, 0.0]))
        for _ in range(12):
            engine.update(Coordinate([1e308, 5.0], local_error=0.1), 5.0)

        assert engine.sample_count == 12

        engine.update(Coordinate([-1e308, 0.0], height=1.0), 10.0)
        assert engine.sample_count == 0
        assert engine.is_converged() is False

        engine.update(Coordinate.create(2), 5.0)
        assert engine.sample_count == 1


class TestStability:
    """Test invariants under long noisy sequences."""

    def test_height_and_error_bounded_under_noise(self, file_logger: LoggerStream):
        engine = make_engine(file_logger, dimensions=3, seed=99)
        noise = random.Random(2024)
        max_error = engine.get_config().max_error

        for index in range(2000):
            remote = Coordinate(
                [noise.uniform(-1000.0, 1000.0) for _ in range(3)],
                height=noise.uniform(0.0, 500.0),
                local_error=noise.uniform(0.0, 1.5),
            )

            if index % 97 == 0:
                measured_rtt = 0.0
            elif index % 89 == 0:
                measured_rtt = 1e-300
            else:
                measured_rtt = noise.uniform(0.0, 1000.0)

            updated = engine.update(remote, measured_rtt)

            assert updated.height >= 0.0
            assert 0.0 <= updated.local_error <= max_error
            assert updated.position.is_finite()

    def test_two_nodes_converge_to_measured_rtt(self, file_logger: LoggerStream):
        first = make_engine(file_logger, dimensions=3, seed=1)
        second = make_engine(file_logger, dimensions=3, seed=2)

        for _ in range(40):
            first.update(second.get_coordinate(), 250.0)
            second.update(first.get_coordinate(), 250.0)

        estimate = estimate_rtt(first.get_coordinate(), second.get_coordinate())
        assert estimate == pytest.approx(250.0, abs=1.0)
        assert first.is_converged()
        assert second.is_converged()


class TestEngineExtras:
    """Test UCB estimates, convergence checks, reset and precision."""

    def test_fresh_engine_not_converged(self, file_logger: LoggerStream):
        assert make_engine(file_logger).is_converged() is False

    def test_ucb_defaults_without_remote(self, file_logger: LoggerStream):
        engine = make_engine(file_logger)

        # 100ms default + 2.0 * 50ms default sigma
        assert engine.estimate_rtt_ucb_ms(None) == 200.0

    def test_ucb_adds_error_margin(self, file_logger: LoggerStream):
        local = Coordinate([0.0, 0.0], height=0.0, local_error=0.1)
        remote = Coordinate([30.0, 40.0], height=0.0, local_error=0.1)
        engine = make_engine(file_logger, coordinate=local)

        # sigma = (0.1 + 0.1) * 50 = 10, ucb = 50 + 2 * 10
        assert engine.estimate_rtt_ucb_ms(remote) == pytest.approx(70.0)
        assert engine.estimate_rtt_ms(remote) == 50.0
        assert engine.estimate_rtt_seconds(remote) == 0.05

    def test_ucb_is_clamped(self, file_logger: LoggerStream):
        local = Coordinate([0.0, 0.0], height=0.0, local_error=1.5)
        remote = Coordinate([1e6, 0.0], height=0.0, local_error=1.5)
        engine = make_engine(file_logger, coordinate=local)

        assert engine.estimate_rtt_ucb_ms(remote) == engine.get_config().rtt_max_ms

    def test_reset(self, file_logger: LoggerStream):
        engine = make_engine(file_logger)
        engine.update(Coordinate([1.0, 1.0]), 90.0)

        fresh = engine.reset()

        assert fresh == Coordinate.create(2, engine.get_config())
        assert engine.sample_count == 0

    def test_single_precision_rounds_state(self, file_logger: LoggerStream):
        engine = make_engine(file_logger, precision="single")

        updated = engine.update(Coordinate([0.1, 0.7], height=0.3), 33.3)

        for value in (*updated.position.values, updated.height, updated.local_error):
            assert value == float(np.float32(value))

        assert updated.height >= 0.0

    def test_default_rng_uses_config_seed(self, file_logger: LoggerStream):
        config = VivaldiConfig(dimensions=2, random_seed=11)
        remote = Coordinate.create(2)

        first = NetworkCoordinateEngine(config=config, logger=file_logger)
        second = NetworkCoordinateEngine(config=config, logger=file_logger)

        assert first.update(remote, 10.0) == second.update(remote, 10.0)
