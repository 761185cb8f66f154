from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models import Medicine, Symptom, SymptomCategory

MEDICINE_SEARCH_LIMIT = 50


def list_symptom_categories(db: Session) -> List[Dict[str, Any]]:
    rows = db.query(SymptomCategory).order_by(SymptomCategory.name.asc()).all()
    return [{"id": c.id, "name": c.name} for c in rows]


def list_symptoms_by_category(db: Session, category_id: int) -> List[Dict[str, Any]]:
    rows = (
        db.query(Symptom)
        .filter(Symptom.category_id == category_id)
        .order_by(Symptom.name.asc())
        .all()
    )
    return [{"id": s.id, "name": s.name, "categoryId": s.category_id} for s in rows]


def search_medicines(db: Session, search: Optional[str] = None) -> List[Dict[str, Any]]:
    """Medicines whose name contains ``search`` (case-insensitive), first 50 by name."""
    query = db.query(Medicine)
    term = (search or "").strip()
    if term:
        query = query.filter(Medicine.name.ilike(f"%{term}%"))
    rows = query.order_by(Medicine.name.asc()).limit(MEDICINE_SEARCH_LIMIT).all()
    return [{"id": m.id, "name": m.name} for m in rows]
