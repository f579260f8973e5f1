import math

import numpy as np
import pytest

from nrkit.errors import ConfigurationError
from nrkit.spectral import swsh


def test_goldberg_index_layout():
    l_max = 3
    indices = [swsh.goldberg_mode_index(l_max, ell, m) for ell, m in swsh.goldberg_modes(l_max)]
    assert indices == list(range(swsh.number_of_modes(l_max)))
    assert swsh.goldberg_mode_index(l_max, 2, -1) == 5
    with pytest.raises(ConfigurationError):
        swsh.goldberg_mode_index(l_max, 2, 3)


def test_low_order_harmonics_match_closed_forms():
    theta = np.linspace(0.1, 3.0, 7)
    phi = np.linspace(0.0, 6.0, 7)
    y00 = swsh.spin_weighted_harmonic(0, 0, 0, theta, phi)
    np.testing.assert_allclose(y00, 1.0 / math.sqrt(4.0 * math.pi))
    y10 = swsh.spin_weighted_harmonic(0, 1, 0, theta, phi)
    np.testing.assert_allclose(y10, math.sqrt(3.0 / (4.0 * math.pi)) * np.cos(theta), atol=1e-14)
    assert np.all(swsh.spin_weighted_harmonic(2, 1, 0, theta, phi) == 0.0)


def test_collocation_grid_shape():
    theta, phi = swsh.collocation_grid(4)
    assert theta.shape == phi.shape == (5, 9)
    assert swsh.number_of_collocation_points(4) == 45
    assert np.all((theta > 0.0) & (theta < np.pi))


@pytest.mark.parametrize("spin", [0, 1, -2])
def test_transform_recovers_modes(spin):
    l_max = 5
    rng = np.random.default_rng(7)
    modes = rng.normal(size=swsh.number_of_modes(l_max)) + 1j * rng.normal(size=swsh.number_of_modes(l_max))
    for ell, m in swsh.goldberg_modes(l_max):
        if ell < abs(spin):
            modes[swsh.goldberg_mode_index(l_max, ell, m)] = 0.0
    nodal = swsh.inverse_swsh_transform(l_max, spin, modes)
    assert nodal.shape == (l_max + 1, 2 * l_max + 1)
    np.testing.assert_allclose(swsh.swsh_transform(l_max, spin, nodal), modes, atol=1e-11)


def test_evaluate_modes_matches_grid_values():
    l_max = 3
    modes = np.zeros(swsh.number_of_modes(l_max), dtype=complex)
    modes[swsh.goldberg_mode_index(l_max, 2, 1)] = 0.5 - 0.25j
    modes[swsh.goldberg_mode_index(l_max, 0, 0)] = 1.0
    theta, phi = swsh.collocation_grid(l_max)
    np.testing.assert_allclose(
        swsh.evaluate_modes(l_max, 0, modes, theta, phi),
        swsh.inverse_swsh_transform(l_max, 0, modes),
        atol=1e-13,
    )


def test_transform_rejects_wrong_sizes():
    with pytest.raises(ConfigurationError):
        swsh.swsh_transform(2, 0, np.zeros(10))
    with pytest.raises(ConfigurationError):
        swsh.inverse_swsh_transform(2, 0, np.zeros(8))
