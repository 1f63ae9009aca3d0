"""
beds.py — Bed Registry (Ward → Room → Bed)

Builds the fixed facility hierarchy from facility_config.WARD_LAYOUTS and
tracks occupancy.  The registry owns every Ward/Room/Bed; a bed's
patient_id is a non-owning reference into the directory.

All mutations run under the registry's own RLock.  Callers that must keep
the directory in step (admit / discharge / transfer) hold the directory
lock first, then this one — see facility.HospitalSystem.
"""

import logging
import threading
from typing import Dict, Iterator, List, Optional

from hospital_admin.errors import ConflictError, NotFoundError
from hospital_admin.facility_config import ISOLATION_ROOMS, WARD_LAYOUTS
from hospital_admin.models import Bed, CareLevel, Room, Ward

logger = logging.getLogger(__name__)


def build_wards(
    layouts: Optional[List[Dict]] = None,
    isolation_rooms: Optional[set] = None,
) -> List[Ward]:
    """Create the ward hierarchy. Bed ids are '<room>-<n>' with n starting at 1."""
    layouts = layouts if layouts is not None else WARD_LAYOUTS
    isolation_rooms = isolation_rooms if isolation_rooms is not None else ISOLATION_ROOMS

    wards: List[Ward] = []
    for ward_index, layout in enumerate(layouts):
        ward = Ward(
            ward_id=layout["ward_id"],
            name=layout["name"],
            specialization=CareLevel(layout["specialization"]),
            index=ward_index,
        )
        for room_num, bed_count in enumerate(layout["beds_per_room"], start=1):
            room_id = f"{layout['room_prefix']}{room_num}"
            isolation = room_id in isolation_rooms
            room = Room(room_id=room_id, ward_id=ward.ward_id, isolation_capable=isolation)
            for pos in range(bed_count):
                room.beds.append(Bed(
                    bed_id=f"{room_id}-{pos + 1}",
                    room_id=room_id,
                    ward_id=ward.ward_id,
                    position=pos,
                    isolation_capable=isolation,
                ))
            ward.rooms.append(room)
        wards.append(ward)
    return wards


class BedRegistry:
    """Fixed set of wards, rooms and beds with occupancy tracking."""

    def __init__(
        self,
        layouts: Optional[List[Dict]] = None,
        isolation_rooms: Optional[set] = None,
    ):
        self.lock = threading.RLock()
        self.wards: List[Ward] = build_wards(layouts, isolation_rooms)
        self._beds: Dict[str, Bed] = {b.bed_id: b for b in self.iter_beds()}
        self._rooms: Dict[str, Room] = {
            r.room_id: r for w in self.wards for r in w.rooms
        }
        logger.info(
            f"Bed registry built: {len(self.wards)} wards, "
            f"{len(self._rooms)} rooms, {len(self._beds)} beds"
        )

    # -----------------------------------------------------------------------
    # Lookup
    # -----------------------------------------------------------------------

    def iter_beds(self) -> Iterator[Bed]:
        """Beds in (ward, room, position) order — the finder's tie-break order."""
        for ward in self.wards:
            for room in ward.rooms:
                yield from room.beds

    def find_bed(self, bed_id: str) -> Optional[Bed]:
        return self._beds.get(bed_id)

    def get_bed(self, bed_id: str) -> Bed:
        bed = self._beds.get(bed_id)
        if bed is None:
            raise NotFoundError(f"Bed not found: {bed_id}")
        return bed

    def room_of(self, bed: Bed) -> Room:
        return self._rooms[bed.room_id]

    def ward_of(self, bed: Bed) -> Ward:
        for ward in self.wards:
            if ward.ward_id == bed.ward_id:
                return ward
        raise NotFoundError(f"Ward not found: {bed.ward_id}")

    def free_beds(self) -> List[Bed]:
        with self.lock:
            return [b for b in self.iter_beds() if not b.occupied]

    # -----------------------------------------------------------------------
    # Occupancy
    # -----------------------------------------------------------------------

    def total_beds(self) -> int:
        return len(self._beds)

    def occupied_count(self) -> int:
        with self.lock:
            return sum(1 for b in self._beds.values() if b.occupied)

    def ward_occupancy(self, ward_id: str) -> float:
        """Fraction 0..1 of the ward's beds that are occupied."""
        with self.lock:
            beds = [b for b in self._beds.values() if b.ward_id == ward_id]
            if not beds:
                return 0.0
            return sum(1 for b in beds if b.occupied) / len(beds)

    def occupancy_rate(self) -> float:
        """Occupied beds as a percentage of all beds."""
        total = self.total_beds()
        return (self.occupied_count() * 100.0 / total) if total else 0.0

    # -----------------------------------------------------------------------
    # Mutation
    # -----------------------------------------------------------------------

    def assign(self, bed_id: str, patient_id: str) -> Bed:
        with self.lock:
            bed = self.get_bed(bed_id)
            if bed.occupied:
                raise ConflictError(
                    f"Bed {bed_id} is already occupied by {bed.patient_id}"
                )
            bed.patient_id = patient_id
            logger.debug(f"Bed {bed_id} ← {patient_id}")
            return bed

    def release(self, bed_id: str) -> str:
        """Empty the bed and return the id of the patient that held it."""
        with self.lock:
            bed = self.get_bed(bed_id)
            if not bed.occupied:
                raise ConflictError(f"Bed {bed_id} is already empty")
            patient_id = bed.patient_id
            bed.patient_id = None
            logger.debug(f"Bed {bed_id} released ({patient_id})")
            return patient_id

    # -----------------------------------------------------------------------
    # Snapshot
    # -----------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Optional[str]]:
        """{bed_id: patient_id | None} in registry order."""
        with self.lock:
            return {b.bed_id: b.patient_id for b in self.iter_beds()}

    def restore(self, occupancy: Dict[str, Optional[str]]) -> None:
        """Replace occupancy wholesale. Unknown bed ids are skipped with a warning."""
        with self.lock:
            for bed in self._beds.values():
                bed.patient_id = None
            for bed_id, patient_id in occupancy.items():
                bed = self._beds.get(bed_id)
                if bed is None:
                    logger.warning(f"Snapshot references unknown bed {bed_id} — skipped")
                    continue
                bed.patient_id = patient_id
