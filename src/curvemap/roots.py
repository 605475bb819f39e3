"""Closed-form real root finding for linear, quadratic and cubic polynomials."""

from __future__ import annotations

import math
from typing import List

from curvemap.consts import DEPRESSED_TERM_EPS, EQUAL_ROOTS_EPS, ZERO_COEFFICIENT_EPS


class RootSolver:
    """Real roots of polynomials up to degree 3.

    Coefficients are given from the highest degree down to the constant.
    Leading coefficients below ZERO_COEFFICIENT_EPS degrade the equation to
    the next lower degree instead of failing. Roots are returned unsorted.
    """

    @staticmethod
    def cube_root(value: float) -> float:
        """Real cube root, negative for negative values."""
        root = abs(value) ** (1.0 / 3.0)
        return -root if value < 0 else root

    @classmethod
    def solve_linear(cls, b: float, c: float) -> List[float]:
        """Roots of b*x + c = 0 (none if b is numerically zero)."""
        if abs(b) < ZERO_COEFFICIENT_EPS:
            return []
        return [-c / b]

    @classmethod
    def solve_quadratic(cls, a: float, b: float, c: float) -> List[float]:
        """Roots of a*x^2 + b*x + c = 0."""
        if abs(a) < ZERO_COEFFICIENT_EPS:
            return cls.solve_linear(b, c)

        d = b * b - 4.0 * a * c
        if abs(d) < EQUAL_ROOTS_EPS:
            return [-b / (2.0 * a)]
        if d > 0:
            sqrt_d = math.sqrt(d)
            return [(-b + sqrt_d) / (2.0 * a), (-b - sqrt_d) / (2.0 * a)]
        return []

    @classmethod
    def solve_cubic(cls, a: float, b: float, c: float, d: float) -> List[float]:
        """
        Roots of a*x^3 + b*x^2 + c*x + d = 0.

        The cubic is depressed with x = t - b/(3a) into t^3 + p*t + q = 0 and
        solved by case:
            p = 0          -> t = cbrt(-q)
            q = 0          -> t * (t^2 + p) = 0
            D = 0          -> double root, two distinct roots
            D > 0          -> one real root (Cardano)
            D < 0          -> three real roots (trigonometric method)
        with D = q^2/4 + p^3/27.

        Args:
            a (float): degree 3 coefficient
            b (float): degree 2 coefficient
            c (float): degree 1 coefficient
            d (float): constant

        Returns:
            List[float]: the real roots
        """
        if abs(a) < ZERO_COEFFICIENT_EPS:
            return cls.solve_quadratic(b, c, d)

        p = (3.0 * a * c - b * b) / (3.0 * a * a)
        q = (2.0 * b**3 - 9.0 * a * b * c + 27.0 * a * a * d) / (27.0 * a**3)

        if abs(p) < DEPRESSED_TERM_EPS:
            roots = [cls.cube_root(-q)]
        elif abs(q) < DEPRESSED_TERM_EPS:
            if p < 0:
                sqrt_neg_p = math.sqrt(-p)
                roots = [0.0, sqrt_neg_p, -sqrt_neg_p]
            else:
                roots = [0.0]
        else:
            qp_ratio = q / p
            discriminant = q * q / 4.0 + p**3 / 27.0
            if abs(discriminant) < EQUAL_ROOTS_EPS:
                roots = [-1.5 * qp_ratio, 3.0 * qp_ratio]
            elif discriminant > 0:
                u = cls.cube_root(-q / 2.0 - math.sqrt(discriminant))
                roots = [u - p / (3.0 * u)]
            else:
                # D < 0 implies p < 0, so the acos argument lies in [-1, 1]
                u = 2.0 * math.sqrt(-p / 3.0)
                angle = math.acos(max(-1.0, min(1.0, 3.0 * qp_ratio / u))) / 3.0
                k = 2.0 * math.pi / 3.0
                roots = [u * math.cos(angle), u * math.cos(angle - k), u * math.cos(angle - 2.0 * k)]

        shift = b / (3.0 * a)
        return [root - shift for root in roots]
