# services/snapshot_store.py
"""
Implementación SQLAlchemy de los almacenes que consume el generador de snapshots:
planes/bloques del planner y tabla de snapshots.

Cada lote se confirma por separado: una corrida que falla a la mitad deja
escritos los lotes previos.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Sequence, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.plan import PlanInventario, PlanBloque
from models.snapshot import SnapshotInventario
from schemas.snapshot import BloquePlan, PlanInfo, SnapshotRow
from services.proyeccion_inventario_service import InventorySnapshotGenerator
from services.snapshot_lifecycle_service import SnapshotLifecycleManager


class SqlAlchemyPlanStore:

    def __init__(self, db: Session):
        self.db = db

    def get_plan(self, plan_id: int) -> Optional[PlanInfo]:
        plan = self.db.get(PlanInventario, plan_id)
        if not plan:
            return None

        ultimo_bloque = (
            self.db.query(func.max(PlanBloque.updated_at))
            .filter(PlanBloque.plan_id == plan_id)
            .scalar()
        )
        last_mutation_at = max(filter(None, [plan.updated_at, ultimo_bloque]), default=None)

        return PlanInfo(
            plan_id=plan.plan_id,
            nombre=plan.nombre,
            activo=plan.activo,
            last_mutation_at=last_mutation_at,
        )

    def list_blocks(self, plan_id: int, version_id: Optional[str] = None) -> List[BloquePlan]:
        query = self.db.query(PlanBloque).filter(PlanBloque.plan_id == plan_id)
        if version_id:
            query = query.filter(PlanBloque.version_id == version_id)

        return [
            BloquePlan(
                plan_bloque_id=b.plan_bloque_id,
                estanque_id=b.estanque_id,
                version_id=b.version_id,
                generacion_codigo=b.generacion_codigo,
                estado=b.estado,
                poblacion=b.poblacion,
                peso_promedio_g=b.peso_promedio_g,
                densidad=b.densidad,
                semana_inicio=b.semana_inicio,
                duracion_semanas=b.duracion_semanas,
                fecha_cosecha=b.fecha_cosecha,
                peso_cosecha_g=b.peso_cosecha_g,
            )
            for b in query.order_by(PlanBloque.plan_bloque_id.asc()).all()
        ]


class SqlAlchemySnapshotStore:

    def __init__(self, db: Session):
        self.db = db

    def _plan_query(self, plan_id: int):
        return self.db.query(SnapshotInventario).filter(SnapshotInventario.plan_id == plan_id)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def delete_range(self, plan_id: int, start: date, end: date, version_id: Optional[str] = None) -> int:
        query = self._plan_query(plan_id).filter(
            SnapshotInventario.fecha_semana >= start,
            SnapshotInventario.fecha_semana <= end,
        )
        if version_id:
            query = query.filter(SnapshotInventario.version_id == version_id)
        deleted = query.delete(synchronize_session=False)
        self._commit()
        return deleted

    def batch_insert(self, rows: Sequence[SnapshotRow]) -> int:
        self.db.add_all([SnapshotInventario(**row.model_dump()) for row in rows])
        self._commit()
        return len(rows)

    def _key_query(self, plan_id: int, key: tuple):
        """Filas con la llave (version_id, estanque_id, fecha_semana, talla_comercial, source_block_id)."""
        version_id, estanque_id, fecha_semana, talla_comercial, source_block_id = key
        query = self._plan_query(plan_id).filter(
            SnapshotInventario.estanque_id == estanque_id,
            SnapshotInventario.fecha_semana == fecha_semana,
            SnapshotInventario.talla_comercial == talla_comercial,
        )
        if version_id is None:
            query = query.filter(SnapshotInventario.version_id.is_(None))
        else:
            query = query.filter(SnapshotInventario.version_id == version_id)
        if source_block_id is None:
            query = query.filter(SnapshotInventario.source_block_id.is_(None))
        else:
            query = query.filter(SnapshotInventario.source_block_id == source_block_id)
        return query

    def batch_update(self, rows: Sequence[SnapshotRow]) -> int:
        updated = 0
        for row in rows:
            for snap in self._key_query(row.plan_id, row.key).all():
                snap.inventario_total_kg = row.inventario_total_kg
                snap.block_info = row.block_info
                snap.snapshot_date = row.snapshot_date
                updated += 1
        self._commit()
        return updated

    def existing_keys(self, plan_id: int, start: date, end: date, version_id: Optional[str] = None) -> Set[tuple]:
        query = self.db.query(
            SnapshotInventario.version_id,
            SnapshotInventario.estanque_id,
            SnapshotInventario.fecha_semana,
            SnapshotInventario.talla_comercial,
            SnapshotInventario.source_block_id,
        ).filter(
            SnapshotInventario.plan_id == plan_id,
            SnapshotInventario.fecha_semana >= start,
            SnapshotInventario.fecha_semana <= end,
        )
        if version_id:
            query = query.filter(SnapshotInventario.version_id == version_id)
        return {tuple(r) for r in query.all()}

    def delete_keys(self, plan_id: int, keys: Set[tuple]) -> int:
        deleted = 0
        for key in keys:
            deleted += self._key_query(plan_id, key).delete(synchronize_session=False)
        self._commit()
        return deleted

    def query_latest(self, plan_id: int) -> Optional[datetime]:
        return (
            self.db.query(func.max(SnapshotInventario.snapshot_date))
            .filter(SnapshotInventario.plan_id == plan_id)
            .scalar()
        )

    def count(self, plan_id: int) -> int:
        return self._plan_query(plan_id).count()

    def delete_older_than(self, plan_id: int, cutoff: datetime) -> int:
        deleted = (
            self._plan_query(plan_id)
            .filter(SnapshotInventario.snapshot_date < cutoff)
            .delete(synchronize_session=False)
        )
        self._commit()
        return deleted

    def list_for_plan(self, plan_id: int, start: Optional[date] = None, end: Optional[date] = None) -> List[SnapshotInventario]:
        query = self._plan_query(plan_id)
        if start:
            query = query.filter(SnapshotInventario.fecha_semana >= start)
        if end:
            query = query.filter(SnapshotInventario.fecha_semana <= end)
        return query.order_by(
            SnapshotInventario.fecha_semana.asc(),
            SnapshotInventario.estanque_id.asc(),
            SnapshotInventario.talla_comercial.asc(),
        ).all()


def build_generator(db: Session) -> InventorySnapshotGenerator:
    return InventorySnapshotGenerator(SqlAlchemyPlanStore(db), SqlAlchemySnapshotStore(db))


def build_lifecycle(db: Session, plan_id: int) -> SnapshotLifecycleManager:
    return SnapshotLifecycleManager(plan_id, SqlAlchemyPlanStore(db), SqlAlchemySnapshotStore(db))
