"""
Deletion-consistent export.

Points deleted during a session stay in the scene as tombstones. On export
they must disappear from the points stream, and every image feature that
still references one of them must be rewritten to the "not triangulated"
sentinel. Images triangulated before the deletion are the easy case to miss,
so the plan is computed once for the whole scene and every writer asks it.

Workflow:
    1. Partition points into kept and tombstoned
    2. Collect the ids of tombstoned points
    3. Writers emit kept points only, with point_id(index)
    4. Writers pass every feature reference through remap_point3d_id()
"""

from dataclasses import dataclass, field
from typing import List, Set
import logging

from .diagnostics import Diagnostics
from .scene import INVALID_POINT3D_ID, Scene, TrackElement

logger = logging.getLogger(__name__)


@dataclass
class ExportPlan:
    """
    Which points are written and how feature references are rewritten.

    Attributes:
        scene: Scene being exported (never modified)
        kept_indices: Indices of points written, in scene order
        deleted_ids: Ids of tombstoned points
        live_ids: Ids of kept points
    """
    scene: Scene
    kept_indices: List[int] = field(default_factory=list)
    deleted_ids: Set[int] = field(default_factory=set)
    live_ids: Set[int] = field(default_factory=set)
    remapped_references: int = 0
    unresolved_references: int = 0

    @classmethod
    def from_scene(cls, scene: Scene) -> "ExportPlan":
        """Partition the scene's points into kept and tombstoned."""
        plan = cls(scene=scene)

        for index, point in enumerate(scene.points):
            point_id = scene.point_id(index)
            if point.is_tombstoned:
                plan.deleted_ids.add(point_id)
            else:
                plan.kept_indices.append(index)
                plan.live_ids.add(point_id)

        # An id shared by a kept and a deleted point stays valid
        plan.deleted_ids -= plan.live_ids

        logger.debug(
            f"Export plan: {len(plan.kept_indices)} kept, "
            f"{len(plan.deleted_ids)} tombstoned ids"
        )
        return plan

    @property
    def num_kept(self) -> int:
        return len(self.kept_indices)

    @property
    def num_dropped(self) -> int:
        return len(self.scene.points) - len(self.kept_indices)

    def point_id(self, index: int) -> int:
        return self.scene.point_id(index)

    def point_error(self, index: int) -> float:
        if self.scene.has_metadata(index):
            return float(self.scene.metadata[index].error)
        return 0.0

    def point_track(self, index: int) -> List[TrackElement]:
        if self.scene.has_metadata(index):
            return self.scene.metadata[index].track
        return []

    def remap_point3d_id(self, point3d_id: int) -> int:
        """
        Reference to write for a feature.

        Args:
            point3d_id: Reference stored in the scene

        Returns:
            INVALID_POINT3D_ID if the point was deleted, else point3d_id
        """
        if point3d_id == INVALID_POINT3D_ID:
            return point3d_id
        if point3d_id in self.deleted_ids:
            self.remapped_references += 1
            return INVALID_POINT3D_ID
        if point3d_id not in self.live_ids:
            self.unresolved_references += 1
        return point3d_id

    def reset_counters(self) -> None:
        self.remapped_references = 0
        self.unresolved_references = 0

    def report_references(self, diagnostics: Diagnostics, source: str) -> None:
        """Record how many feature references were rewritten."""
        if self.remapped_references:
            diagnostics.info(
                source,
                f"Rewrote {self.remapped_references} references to deleted points "
                f"as untriangulated",
            )
        if self.unresolved_references:
            diagnostics.info(
                source,
                f"{self.unresolved_references} feature references point to ids "
                f"not present in the scene; written unchanged",
            )
