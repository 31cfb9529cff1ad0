"""
Tests for the handle-addressed body store.
"""

import numpy as np
import pytest

from nbody_sim.bodies import BodyStore
from nbody_sim.core.errors import MalformedInputError


@pytest.fixture
def three_bodies():
    store = BodyStore()
    store.add_body([0.0, 0.0, 0.0], mass=1.0, name="a")
    store.add_body([1.0, 0.0, 0.0], mass=2.0, name="b")
    store.add_body([0.0, 3.0, 0.0], mass=3.0, name="c")
    return store


class TestHandles:

    def test_handles_are_sequential(self, three_bodies):
        assert three_bodies.handles == (0, 1, 2)
        assert len(three_bodies) == 3
        assert list(three_bodies) == [0, 1, 2]

    def test_handles_not_reused(self, three_bodies):
        three_bodies.remove_body(2)
        handle = three_bodies.add_body([5.0, 5.0, 5.0])
        assert handle == 3
        assert 2 not in three_bodies

    def test_remove_preserves_order(self, three_bodies):
        three_bodies.remove_body(0)
        assert three_bodies.handles == (1, 2)
        assert three_bodies.names == ["b", "c"]
        np.testing.assert_array_equal(three_bodies.masses, [2.0, 3.0])
        assert three_bodies.index_of(2) == 1

    def test_remove_unknown_handle(self, three_bodies):
        with pytest.raises(KeyError):
            three_bodies.remove_body(99)

    def test_lookup(self, three_bodies):
        position, mass = three_bodies.lookup(1)
        np.testing.assert_array_equal(position, [1.0, 0.0, 0.0])
        assert mass == 2.0

        # The snapshot is a copy
        position[0] = 42.0
        assert three_bodies.positions[1, 0] == 1.0

        three_bodies.remove_body(1)
        assert three_bodies.lookup(1) is None


class TestValidation:

    @pytest.mark.parametrize("mass", [0.0, -1.0, np.nan, np.inf])
    def test_rejects_bad_mass(self, mass):
        store = BodyStore()
        with pytest.raises(MalformedInputError, match="mass"):
            store.add_body([0.0, 0.0, 0.0], mass=mass)
        assert store.n_bodies == 0

    @pytest.mark.parametrize("radius", [0.0, -1.0, np.nan, np.inf])
    def test_rejects_bad_radius(self, radius):
        store = BodyStore()
        with pytest.raises(MalformedInputError, match="radius"):
            store.add_body([0.0, 0.0, 0.0], radius=radius)
        assert store.n_bodies == 0

    def test_rejects_non_finite_vectors(self):
        store = BodyStore()
        with pytest.raises(MalformedInputError, match="position"):
            store.add_body([np.nan, 0.0, 0.0])
        with pytest.raises(MalformedInputError, match="velocity"):
            store.add_body([0.0, 0.0, 0.0], velocity=[0.0, np.inf, 0.0])
        with pytest.raises(MalformedInputError, match="angular velocity"):
            store.add_body([0.0, 0.0, 0.0], angular_velocity=[0.0, 0.0, np.nan])
        with pytest.raises(MalformedInputError):
            store.add_body([0.0, 0.0])

    def test_validate_detects_corruption(self, three_bodies):
        three_bodies.validate()
        three_bodies.positions[1, 2] = np.nan
        with pytest.raises(MalformedInputError, match="'b'"):
            three_bodies.validate()

    def test_orientation_is_normalized(self):
        store = BodyStore()
        store.add_body([0.0, 0.0, 0.0], orientation=[0.0, 0.0, 0.0, 3.0])
        np.testing.assert_allclose(store.orientations[0], [0.0, 0.0, 0.0, 1.0])


class TestCommit:

    def test_commit_replaces_all(self, three_bodies):
        new_pos = three_bodies.positions + 1.0
        new_vel = np.ones((3, 3))
        three_bodies.commit(new_pos, new_vel)
        np.testing.assert_array_equal(three_bodies.positions, new_pos)
        np.testing.assert_array_equal(three_bodies.velocities, new_vel)

    def test_commit_shape_mismatch(self, three_bodies):
        with pytest.raises(ValueError):
            three_bodies.commit(np.zeros((2, 3)), np.zeros((3, 3)))
        with pytest.raises(ValueError):
            three_bodies.commit(np.zeros((3, 3)), np.zeros((3, 3)), np.zeros((3, 3)))


class TestAggregates:

    def test_from_arrays_defaults(self):
        store = BodyStore.from_arrays([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]])
        assert store.n_bodies == 2
        np.testing.assert_array_equal(store.masses, [1.0, 1.0])
        np.testing.assert_array_equal(store.velocities, np.zeros((2, 3)))
        np.testing.assert_array_equal(store.radii, [1.0, 1.0])
        assert store.names == ["Unnamed", "Unnamed"]
        np.testing.assert_array_equal(store.orientations, np.tile([0.0, 0.0, 0.0, 1.0], (2, 1)))

    def test_center_of_mass(self, three_bodies):
        np.testing.assert_allclose(three_bodies.center_of_mass(), [2.0 / 6.0, 9.0 / 6.0, 0.0])
        assert three_bodies.total_mass() == 6.0
        np.testing.assert_array_equal(BodyStore().center_of_mass(), np.zeros(3))

    def test_kinetic_energy(self):
        store = BodyStore()
        store.add_body([0.0, 0.0, 0.0], velocity=[3.0, 4.0, 0.0], mass=2.0)
        assert store.kinetic_energy() == pytest.approx(25.0)

    def test_as_dict(self, three_bodies):
        data = three_bodies.as_dict()
        assert set(data) == {
            'handles', 'positions', 'velocities', 'masses',
            'angular_velocities', 'orientations', 'radii',
        }
        assert data['handles'].dtype == np.int64
        assert data['positions'].shape == (3, 3)
        assert data['orientations'].shape == (3, 4)
