"""
Пространственный индекс треугольников сетки (BVH).

Строит BVHTree по треугольникам MeshBuffers и отвечает на запросы
ближайшего треугольника и знакового расстояния. Запросы к дереву
сериализуются блокировкой, как и в остальном пакете: само дерево
не потокобезопасно.

После любого изменения буферов (subdivide_triangle) индекс нужно
построить заново.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import numpy as np

from mesh_surgery import config
from mesh_surgery.geometry.bvh import BVHTree
from mesh_surgery.geometry.regions import TriangleSphereRegion
from mesh_surgery.geometry.triangle import Triangle
from mesh_surgery.logging_config import log_timing
from mesh_surgery.mesh.buffers import MeshBuffers
from mesh_surgery.project_config import SpatialIndexConfig

logger = logging.getLogger(__name__)

_tree_lock = threading.Lock()


def _build_triangles(args) -> List[Triangle]:
    """Создать треугольники для одного блока граней (в пуле потоков)."""
    positions, faces, first_id = args
    return [
        Triangle(positions[f[0]], positions[f[1]], positions[f[2]], first_id + i)
        for i, f in enumerate(faces)
    ]


class TriangleSpatialIndex:
    """Индекс ближайших треугольников поверх BVHTree.

    Attributes:
        start_radius: начальный радиус расширяющегося поиска.
        max_radius: радиус, после которого поиск сдаётся.
        growth: множитель радиуса на каждом шаге.
    """

    def __init__(
        self,
        mesh: MeshBuffers,
        start_radius: Optional[float] = None,
        max_radius: Optional[float] = None,
        growth: Optional[float] = None,
        max_leaf_size: Optional[int] = None,
        parallel: bool = True,
    ) -> None:
        mesh.require()
        self.start_radius = config.SEARCH_START_RADIUS if start_radius is None else start_radius
        self.max_radius = config.SEARCH_MAX_RADIUS if max_radius is None else max_radius
        self.growth = config.SEARCH_GROWTH if growth is None else growth
        if self.start_radius <= 0:
            raise ValueError("start_radius must be > 0")
        if self.growth <= 1.0:
            raise ValueError("growth must be > 1")

        self._tree: BVHTree[Triangle] = BVHTree(max_leaf_size=max_leaf_size)
        with log_timing(logger, "build spatial index", faces=len(mesh.indices)):
            self._triangles = self._make_triangles(mesh, parallel)
            skipped = 0
            for tri in self._triangles:
                if not self._tree.insert(tri):
                    skipped += 1

        if skipped:
            logger.warning("Пропущено %d треугольников с некорректным AABB", skipped)
        logger.debug(
            "Индекс построен: %d треугольников, глубина %d",
            len(self._tree), self._tree.depth(),
        )

    @classmethod
    def from_config(
        cls,
        mesh: MeshBuffers,
        settings: Optional[SpatialIndexConfig] = None,
    ) -> 'TriangleSpatialIndex':
        """Построить индекс с параметрами из секции spatial_index."""
        if settings is None:
            return cls(mesh)
        index = cls(
            mesh,
            start_radius=settings.start_radius,
            max_radius=settings.max_radius,
            growth=settings.growth,
            max_leaf_size=settings.max_leaf_size,
            parallel=settings.parallel_build,
        )
        index.tree.max_depth = settings.max_depth
        return index

    @staticmethod
    def _make_triangles(mesh: MeshBuffers, parallel: bool) -> List[Triangle]:
        positions = mesh.positions
        faces = mesh.indices
        chunk = config.INDEX_BUILD_CHUNK
        args = [
            (positions, faces[start:start + chunk], start)
            for start in range(0, len(faces), chunk)
        ]
        if parallel and len(args) > 1:
            with ThreadPoolExecutor() as executor:
                blocks = list(executor.map(_build_triangles, args))
        else:
            blocks = [_build_triangles(a) for a in args]
        return [tri for block in blocks for tri in block]

    # ------------------------------------------------------------------
    # Свойства
    # ------------------------------------------------------------------

    @property
    def triangles(self) -> List[Triangle]:
        """Все треугольники в порядке индексного буфера."""
        return list(self._triangles)

    @property
    def tree(self) -> BVHTree[Triangle]:
        return self._tree

    def __len__(self) -> int:
        return len(self._tree)

    # ------------------------------------------------------------------
    # Запросы
    # ------------------------------------------------------------------

    def query_sphere(self, center: Sequence[float], radius: float) -> List[Triangle]:
        """Треугольники, ближайшая точка которых не дальше radius от center."""
        region = TriangleSphereRegion(center, radius)
        with _tree_lock:
            return self._tree.query(region)

    def find_closest_triangle(self, point: Sequence[float]) -> Optional[Triangle]:
        """Найти ближайший треугольник расширяющейся сферой.

        Радиус начинается со start_radius и умножается на growth, пока
        сфера не захватит хотя бы один треугольник. Из захваченных
        возвращается ближайший.

        Returns:
            Ближайший треугольник или None, если радиус дошёл до max_radius.
        """
        p = np.asarray(point, dtype=np.float64).reshape(3)
        if self._tree.is_empty():
            return None

        region = TriangleSphereRegion(p, self.start_radius)
        radius = self.start_radius
        with _tree_lock:
            while radius < self.max_radius:
                candidates = self._tree.query(region)
                if candidates:
                    return min(candidates, key=lambda t: t.closest_squared_distance(p))
                radius *= self.growth
                region.radius = radius

        logger.debug("Треугольник не найден в радиусе %.3g от %s", self.max_radius, p.tolist())
        return None

    def find_closest_triangle_exhaustive(self, point: Sequence[float]) -> Optional[Triangle]:
        """Ближайший треугольник полным перебором (эталон для проверки)."""
        p = np.asarray(point, dtype=np.float64).reshape(3)
        if not self._triangles:
            return None
        return min(self._triangles, key=lambda t: t.closest_squared_distance(p))

    def signed_distance(self, point: Sequence[float]) -> float:
        """Знаковое расстояние до ближайшего треугольника.

        Returns:
            Расстояние (знак по нормали треугольника) или +inf,
            если треугольник не найден.
        """
        tri = self.find_closest_triangle(point)
        if tri is None:
            return float('inf')
        return tri.signed_distance(point)
