"""
Треугольник сетки и операции над ним.

Содержит:
- барицентрические координаты (скалярные произведения, работает в 2D и 3D)
- проверку принадлежности точки треугольнику
- расстояние от точки до отрезка
- класс Triangle: ближайшее и знаковое расстояние до точки
"""

from typing import Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from mesh_surgery.geometry.aabb import AABB

# Знаменатель барицентрической формулы ниже этого порога → вырожденный треугольник
_DENOM_EPS = 1e-12


def barycentric_coordinates(
    pt: np.ndarray,
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
) -> Optional[Tuple[float, float, float]]:
    """Барицентрические координаты точки относительно треугольника (a, b, c).

    Точка предполагается лежащей в плоскости треугольника (для 3D — уже
    спроецированной). Формула через скалярные произведения одинаково
    работает для 2D и 3D векторов.

    Args:
        pt: точка.
        a, b, c: вершины треугольника.

    Returns:
        (alpha, beta, gamma) — веса вершин a, b, c (сумма равна 1),
        или None если треугольник вырожден.
    """
    v0 = c - a
    v1 = b - a
    v2 = pt - a

    dot00 = np.dot(v0, v0)
    dot01 = np.dot(v0, v1)
    dot02 = np.dot(v0, v2)
    dot11 = np.dot(v1, v1)
    dot12 = np.dot(v1, v2)

    denom = dot00 * dot11 - dot01 * dot01
    if abs(denom) < _DENOM_EPS:
        return None

    inv_denom = 1.0 / denom
    u = (dot11 * dot02 - dot01 * dot12) * inv_denom  # вес c
    v = (dot00 * dot12 - dot01 * dot02) * inv_denom  # вес b
    return float(1.0 - u - v), float(v), float(u)


def point_in_triangle(
    pt: np.ndarray,
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    tolerance: float = 0.0,
) -> bool:
    """Проверить, лежит ли точка внутри треугольника (включая границу).

    Args:
        pt: точка (в плоскости треугольника).
        a, b, c: вершины треугольника.
        tolerance: допуск на отрицательные барицентрические веса.

    Returns:
        True если точка внутри; False для вырожденного треугольника.
    """
    bary = barycentric_coordinates(pt, a, b, c)
    if bary is None:
        return False
    return all(w >= -tolerance for w in bary)


def segment_squared_distance(
    pt: np.ndarray,
    start: np.ndarray,
    end: np.ndarray,
) -> float:
    """Квадрат расстояния от точки до отрезка [start, end].

    Проекция на прямую обрезается концами отрезка. Отрезок нулевой
    длины сводится к расстоянию до точки.
    """
    seg = end - start
    seg_len_sq = float(np.dot(seg, seg))
    to_start = pt - start
    if seg_len_sq < _DENOM_EPS:
        return float(np.dot(to_start, to_start))

    t = float(np.dot(to_start, seg)) / seg_len_sq
    t = min(max(t, 0.0), 1.0)
    diff = pt - (start + t * seg)
    return float(np.dot(diff, diff))


class Triangle:
    """Треугольник сетки с собственным AABB.

    Нормаль, центр масс и площадь вычисляются один раз при создании;
    если вершины сетки сдвинулись, треугольник нужно создать заново.

    Attributes:
        v1, v2, v3: вершины (копии, (3,) float64).
        index: порядковый номер треугольника в индексном буфере.
        normal: единичная нормаль (нулевой вектор для вырожденного).
        centroid: центр масс.
        area: площадь.
    """

    __slots__ = ("v1", "v2", "v3", "index", "normal", "centroid", "area", "_aabb")

    def __init__(
        self,
        v1: Sequence[float],
        v2: Sequence[float],
        v3: Sequence[float],
        index: int,
    ):
        self.v1 = np.array(v1, dtype=np.float64).reshape(3)
        self.v2 = np.array(v2, dtype=np.float64).reshape(3)
        self.v3 = np.array(v3, dtype=np.float64).reshape(3)
        self.index = int(index)

        cross = np.cross(self.v2 - self.v1, self.v3 - self.v1)
        length = float(np.linalg.norm(cross))
        self.area = 0.5 * length
        self.normal = cross / length if length > _DENOM_EPS else np.zeros(3)
        self.centroid = (self.v1 + self.v2 + self.v3) / 3.0
        self._aabb: Optional[AABB] = None

    @property
    def vertices(self) -> NDArray[np.float64]:
        """Вершины формы (3, 3)."""
        return np.stack([self.v1, self.v2, self.v3])

    @property
    def is_degenerate(self) -> bool:
        return not np.any(self.normal)

    def get_aabb(self) -> AABB:
        if self._aabb is None:
            self._aabb = AABB.from_points(self.vertices)
        return self._aabb

    def plane_distance(self, point: Sequence[float]) -> float:
        """Знаковое расстояние от точки до плоскости треугольника."""
        p = np.asarray(point, dtype=np.float64)
        return float(np.dot(p - self.v1, self.normal))

    def project_to_plane(self, point: Sequence[float]) -> NDArray[np.float64]:
        """Ортогональная проекция точки на плоскость треугольника."""
        p = np.asarray(point, dtype=np.float64)
        return p - self.normal * self.plane_distance(p)

    def barycentric(self, point: Sequence[float]) -> Optional[Tuple[float, float, float]]:
        """Барицентрические координаты проекции точки, None если вырожден."""
        if self.is_degenerate:
            return None
        return barycentric_coordinates(self.project_to_plane(point), self.v1, self.v2, self.v3)

    def _projects_inside(self, projected: np.ndarray) -> bool:
        if self.is_degenerate:
            return False
        return point_in_triangle(projected, self.v1, self.v2, self.v3)

    def _edge_squared_distance(self, p: np.ndarray) -> float:
        return min(
            segment_squared_distance(p, self.v1, self.v2),
            segment_squared_distance(p, self.v2, self.v3),
            segment_squared_distance(p, self.v3, self.v1),
        )

    def closest_squared_distance(self, point: Sequence[float]) -> float:
        """Квадрат расстояния от точки до треугольника.

        Если проекция точки попадает внутрь треугольника — квадрат
        расстояния до плоскости, иначе — минимум по трём рёбрам.
        """
        p = np.asarray(point, dtype=np.float64)
        plane_dist = self.plane_distance(p)
        if self._projects_inside(p - self.normal * plane_dist):
            return plane_dist * plane_dist
        return self._edge_squared_distance(p)

    def signed_distance(self, point: Sequence[float]) -> float:
        """Знаковое расстояние (знак — сторона плоскости по нормали)."""
        p = np.asarray(point, dtype=np.float64)
        plane_dist = self.plane_distance(p)
        if self._projects_inside(p - self.normal * plane_dist):
            return plane_dist
        return float(np.sign(plane_dist)) * float(np.sqrt(self._edge_squared_distance(p)))

    def __repr__(self) -> str:
        return f"Triangle(index={self.index}, centroid={self.centroid.tolist()})"
