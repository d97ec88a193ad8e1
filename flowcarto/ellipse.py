"""Enclosing ellipses and the density and flux bumps centred on them.

Polygon preprocessing places a smooth density bump on the minimum enclosing
ellipse of every polygon. In normalised ellipse coordinates the bump is a
cubic polynomial of the squared radius. It vanishes at ``r_tilde^2 = XI_SQ``
and beyond ``r_tilde^2 = 4 * XI_SQ``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

from flowcarto.constants import PI, XI_SQ
from flowcarto.geometry import Point, almost_equal


def ellipse_density_prefactor(
    rho_p: float, rho_mean: float, pwh_area: float, nu: float
) -> float:
    """Amplitude of the density bump for a polygon of density ``rho_p``."""
    return nu * pwh_area * (rho_p - rho_mean) / PI


def ellipse_density_polynomial(r_tilde_sq: float) -> float:
    """Shape of the density bump as a function of the squared radius."""
    if r_tilde_sq >= 4 * XI_SQ:
        return 0.0
    return -(
        (r_tilde_sq - XI_SQ)
        * (r_tilde_sq - 4 * XI_SQ)
        * (r_tilde_sq - 4 * XI_SQ)
        / (16 * XI_SQ * XI_SQ * XI_SQ)
    )


def ellipse_flux_prefactor(
    r_tilde_sq: float,
    rho_p: float,
    rho_mean: float,
    pwh_area: float,
    nu: float,
) -> float:
    """Magnitude factor of the flux caused by the density bump."""
    if r_tilde_sq >= 4 * XI_SQ:
        return 0.0
    xi_to_6 = XI_SQ * XI_SQ * XI_SQ
    gap = 4 * XI_SQ - r_tilde_sq
    return (
        nu * pwh_area * (rho_p - rho_mean) * gap * gap * gap
        / (128 * PI * xi_to_6)
    )


@dataclass(frozen=True)
class Ellipse:
    """An ellipse given by its semi-axes, centre and rotation angle.

    ``theta`` is the angle between the x-axis and the semimajor axis. Its
    cosine and sine are cached so that evaluating points needs no
    trigonometry.
    """

    semimajor: float
    semiminor: float
    center: Point
    theta: float = 0.0
    cos_theta: float = field(init=False, repr=False)
    sin_theta: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.center, Point):
            object.__setattr__(
                self, "center", Point(self.center[0], self.center[1])
            )
        object.__setattr__(self, "cos_theta", math.cos(self.theta))
        object.__setattr__(self, "sin_theta", math.sin(self.theta))

    @classmethod
    def from_coefficients(
        cls,
        a: float,
        b: float,
        c: float,
        d: float,
        e: float,
        f: float,
        center_shift: Sequence[float] = (0.0, 0.0),
    ) -> "Ellipse":
        """Ellipse ``a x^2 + b xy + c y^2 + d x + e y + f = 0``.

        ``center_shift`` is added to the centre, for coefficients computed in
        a coordinate system shifted to reduce rounding errors.
        """
        # With a < 0 the axes would be swapped; flip all signs.
        if a < 0:
            a, b, c, d, e, f = -a, -b, -c, -d, -e, -f
        denom = b * b - 4 * a * c
        if denom >= 0.0:
            raise ValueError("coefficients do not describe an ellipse")
        fac1 = a * e * e + c * d * d - b * d * e + (b * b - 4 * a * c) * f
        inner_sqrt = math.sqrt((a - c) * (a - c) + b * b)
        major_term = 2 * fac1 * (a + c + inner_sqrt)
        minor_term = 2 * fac1 * (a + c - inner_sqrt)
        if major_term < 0.0 or minor_term < 0.0:
            raise ValueError("coefficients describe an empty ellipse")
        semimajor = -math.sqrt(major_term) / denom
        semiminor = -math.sqrt(minor_term) / denom
        center = Point(
            (2 * c * d - b * e) / denom + center_shift[0],
            (2 * a * e - b * d) / denom + center_shift[1],
        )
        theta = 0.0 if a < c else PI / 2
        if not almost_equal(b, 0.0):
            theta = math.atan((c - a - inner_sqrt) / b)
        return cls(semimajor, semiminor, center, theta)

    def normalized_radius_sq(self, x: float, y: float) -> float:
        """Squared radius of ``(x, y)`` in coordinates where this is a unit circle."""
        dx = x - self.center.x
        dy = y - self.center.y
        x_tilde = (dx * self.cos_theta + dy * self.sin_theta) / self.semimajor
        y_tilde = (-dx * self.sin_theta + dy * self.cos_theta) / self.semiminor
        return x_tilde * x_tilde + y_tilde * y_tilde