"""
Плоские полигоны: проекция петли на плоскость и Ear Clipping.

Одно определение «уха» используется и обычным ear clipping, и
advancing front при заделке дыр. Вершина i — ухо, если:
- треугольник (prev, i, next) имеет площадь не меньше DEGENERATE_EPS;
- вершина выпукла относительно ориентации полигона;
- ни одна другая вершина полигона не лежит внутри треугольника или на его границе.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from mesh_surgery import config

logger = logging.getLogger(__name__)

# Вершины ближе этого порога считаются совпадающими при проверке уха
_COINCIDENT_EPS = 1e-10


# ---------------------------------------------------------------------------
# Плоскость петли
# ---------------------------------------------------------------------------

def newell_normal(points: NDArray[np.float64]) -> Optional[NDArray[np.float64]]:
    """Нормаль полигона методом Ньюэлла.

    Устойчива к невыпуклым и слегка неплоским петлям; направлена так,
    что петля обходится против часовой стрелки, если смотреть с конца
    нормали.

    Returns:
        Единичная нормаль или None для вырожденной петли.
    """
    pts = np.asarray(points, dtype=np.float64)
    nxt = np.roll(pts, -1, axis=0)
    normal = np.array([
        np.sum((pts[:, 1] - nxt[:, 1]) * (pts[:, 2] + nxt[:, 2])),
        np.sum((pts[:, 2] - nxt[:, 2]) * (pts[:, 0] + nxt[:, 0])),
        np.sum((pts[:, 0] - nxt[:, 0]) * (pts[:, 1] + nxt[:, 1])),
    ])
    length = float(np.linalg.norm(normal))
    if length < config.DEGENERATE_EPS:
        return None
    return normal / length


def first_edges_normal(points: NDArray[np.float64]) -> Optional[NDArray[np.float64]]:
    """Нормаль по векторному произведению первых двух рёбер петли."""
    pts = np.asarray(points, dtype=np.float64)
    if len(pts) < 3:
        return None
    normal = np.cross(pts[1] - pts[0], pts[2] - pts[1])
    length = float(np.linalg.norm(normal))
    if length < config.DEGENERATE_EPS:
        return None
    return normal / length


def plane_basis(normal: NDArray[np.float64]) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Касательный базис (tangent, bitangent) плоскости с данной нормалью.

    tangent = normal × X (или × Y, если нормаль почти параллельна X),
    bitangent = normal × tangent. Тройка (tangent, bitangent, normal)
    правая, поэтому ориентация полигона в 2D совпадает с 3D.
    """
    tangent = np.cross(normal, [1.0, 0.0, 0.0])
    if np.linalg.norm(tangent) < 1e-6:
        tangent = np.cross(normal, [0.0, 1.0, 0.0])
    tangent = tangent / np.linalg.norm(tangent)
    bitangent = np.cross(normal, tangent)
    return tangent, bitangent


def project_to_plane_2d(
    points: NDArray[np.float64],
    normal: NDArray[np.float64],
    origin: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """Спроецировать точки (N, 3) в 2D координаты плоскости.

    Args:
        points: точки петли.
        normal: единичная нормаль плоскости.
        origin: начало координат в плоскости (по умолчанию центроид).

    Returns:
        Массив (N, 2).
    """
    pts = np.asarray(points, dtype=np.float64)
    if origin is None:
        origin = pts.mean(axis=0)
    tangent, bitangent = plane_basis(normal)
    rel = pts - origin
    return np.column_stack([rel @ tangent, rel @ bitangent])


# ---------------------------------------------------------------------------
# 2D примитивы
# ---------------------------------------------------------------------------

def signed_area_2d(polygon: NDArray[np.float64]) -> float:
    """Знаковая площадь полигона (положительная для CCW)."""
    poly = np.asarray(polygon, dtype=np.float64)
    if len(poly) < 3:
        return 0.0
    x, y = poly[:, 0], poly[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def cross_2d(o: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    """Z-компонента (a - o) × (b - o)."""
    return float((a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0]))


def point_in_triangle_2d(
    p: np.ndarray,
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    tolerance: float = 0.0,
) -> bool:
    """Точка внутри треугольника или на его границе (любая ориентация)."""
    d1 = cross_2d(a, b, p)
    d2 = cross_2d(b, c, p)
    d3 = cross_2d(c, a, p)
    has_neg = d1 < -tolerance or d2 < -tolerance or d3 < -tolerance
    has_pos = d1 > tolerance or d2 > tolerance or d3 > tolerance
    return not (has_neg and has_pos)


def _coincides(p: np.ndarray, q: np.ndarray) -> bool:
    return abs(p[0] - q[0]) < _COINCIDENT_EPS and abs(p[1] - q[1]) < _COINCIDENT_EPS


def is_valid_ear(
    polygon: NDArray[np.float64],
    ring: Sequence[int],
    pos: int,
    ccw: bool,
) -> bool:
    """Проверить, является ли вершина ring[pos] ухом.

    Args:
        polygon: 2D вершины (N, 2).
        ring: индексы ещё не отрезанных вершин, в порядке обхода.
        pos: позиция проверяемой вершины в ring.
        ccw: ориентация исходного полигона.
    """
    n = len(ring)
    i_prev, i_curr, i_next = ring[(pos - 1) % n], ring[pos], ring[(pos + 1) % n]
    a, b, c = polygon[i_prev], polygon[i_curr], polygon[i_next]

    cross = cross_2d(a, b, c)
    if 0.5 * abs(cross) < config.DEGENERATE_EPS:
        return False
    if (cross > 0) != ccw:
        return False

    for j in ring:
        if j in (i_prev, i_curr, i_next):
            continue
        p = polygon[j]
        if _coincides(p, a) or _coincides(p, b) or _coincides(p, c):
            continue
        if point_in_triangle_2d(p, a, b, c):
            return False
    return True


def ear_clip(polygon: NDArray[np.float64]) -> List[Tuple[int, int, int]]:
    """Триангулировать простой полигон методом Ear Clipping.

    Треугольники повторяют ориентацию полигона. Если ухо не найдено
    (самопересечение, вырожденность), возвращается то, что успели
    отрезать: вызывающий сам решает, что делать с неполным результатом.

    Args:
        polygon: 2D вершины (N, 2).

    Returns:
        Список треугольников [(i, j, k), ...] в индексах polygon.
    """
    poly = np.asarray(polygon, dtype=np.float64)
    n = len(poly)
    if n < 3:
        return []

    ccw = signed_area_2d(poly) > 0
    ring = list(range(n))
    triangles: List[Tuple[int, int, int]] = []

    while len(ring) > 3:
        for pos in range(len(ring)):
            if is_valid_ear(poly, ring, pos, ccw):
                m = len(ring)
                triangles.append((ring[(pos - 1) % m], ring[pos], ring[(pos + 1) % m]))
                ring.pop(pos)
                break
        else:
            logger.debug(
                "ear_clip: ухо не найдено, осталось %d вершин, %d треугольников",
                len(ring), len(triangles),
            )
            return triangles

    a, b, c = poly[ring[0]], poly[ring[1]], poly[ring[2]]
    if 0.5 * abs(cross_2d(a, b, c)) >= config.DEGENERATE_EPS:
        triangles.append((ring[0], ring[1], ring[2]))
    return triangles
